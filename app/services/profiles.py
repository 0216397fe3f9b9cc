"""
Domain records used by the matching pipeline.

Request payloads and ORM rows are converted into these dataclasses at the
boundary, so the scorer only ever sees one shape.  Unknown study styles or
experience levels are represented as ``None`` and scored neutrally.
"""
from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

from app.models.database_models import (
    Availability,
    BlindSpot,
    BuddyMatch,
    ExperienceLevel,
    MatchStatus,
    StudyStyle,
    User,
)
from app.models.schemas import MatchRequest

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value: Any) -> Optional[E]:
    """Return the enum member for *value*, or None when missing / unknown."""
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            logger.debug("Unknown %s value %r treated as unknown", enum_cls.__name__, value)
    return None


@dataclasses.dataclass(frozen=True)
class KnowledgeGap:
    topic: str
    confidence: float


@dataclasses.dataclass
class UserProfile:
    """The requesting learner, built per request and discarded afterwards."""

    user_id: int
    preferred_subjects: List[str]
    study_style: Optional[StudyStyle]
    availability: Optional[Availability]
    experience_level: Optional[ExperienceLevel]
    knowledge_gaps: List[KnowledgeGap] = dataclasses.field(default_factory=list)

    @classmethod
    def from_request(cls, body: MatchRequest) -> "UserProfile":
        patterns = body.learning_patterns
        return cls(
            user_id=body.user_id,
            preferred_subjects=list(patterns.preferred_subjects),
            study_style=patterns.study_style,
            availability=patterns.availability,
            experience_level=patterns.experience_level,
            knowledge_gaps=[
                KnowledgeGap(topic=g.topic, confidence=g.confidence)
                for g in body.knowledge_gaps
            ],
        )


@dataclasses.dataclass
class CandidateRecord:
    """A stored user considered as a potential study partner."""

    user_id: int
    interest_tags: List[str] = dataclasses.field(default_factory=list)
    study_style: Optional[StudyStyle] = None
    availability: Optional[Availability] = None
    experience_level: Optional[ExperienceLevel] = None
    name: Optional[str] = None
    email: Optional[str] = None

    @property
    def learning_style_label(self) -> str:
        return self.study_style.value if self.study_style else "unknown"

    @property
    def availability_label(self) -> str:
        return self.availability.value if self.availability else "flexible"

    @classmethod
    def from_orm(cls, user: User) -> "CandidateRecord":
        """
        Build from a ``users`` row.

        ``study_style`` and ``availability`` are JSON objects
        (``{"learning_type": ...}`` / ``{"time": ...}``); plain strings are
        accepted too.
        """
        style_raw = user.study_style
        if isinstance(style_raw, dict):
            style_raw = style_raw.get("learning_type")
        time_raw = user.availability
        if isinstance(time_raw, dict):
            time_raw = time_raw.get("time")

        tags = user.interest_tags or []
        if not isinstance(tags, list):
            tags = []

        return cls(
            user_id=user.id,
            interest_tags=[str(t) for t in tags if t],
            study_style=parse_enum(StudyStyle, style_raw),
            availability=parse_enum(Availability, time_raw),
            experience_level=parse_enum(ExperienceLevel, user.experience_level),
            name=user.name,
            email=user.email,
        )


@dataclasses.dataclass
class BlindSpotRecord:
    topic: str
    confidence: float
    user_id: Optional[int] = None
    id: Optional[int] = None
    ai_analysis: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_orm(cls, spot: BlindSpot) -> "BlindSpotRecord":
        return cls(
            topic=spot.topic,
            confidence=float(spot.confidence),
            user_id=spot.user_id,
            id=spot.id,
            ai_analysis=spot.ai_analysis,
            created_at=spot.created_at,
        )


@dataclasses.dataclass
class RankedMatch:
    """A retained candidate with its score and suggestions."""

    candidate: CandidateRecord
    compatibility_score: float
    common_topics: List[str] = dataclasses.field(default_factory=list)
    suggested_activities: List[str] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class StoredMatch:
    """A ``buddy_matches`` row."""

    id: int
    requester_id: int
    candidate_id: int
    compatibility_score: float
    common_topics: List[str]
    suggested_activities: List[str]
    status: MatchStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    partner: Optional[CandidateRecord] = None

    def partner_id(self, user_id: int) -> int:
        return self.candidate_id if self.requester_id == user_id else self.requester_id

    @classmethod
    def from_orm(cls, row: BuddyMatch) -> "StoredMatch":
        return cls(
            id=row.id,
            requester_id=row.user_id1,
            candidate_id=row.user_id2,
            compatibility_score=float(row.compatibility_score),
            common_topics=list(row.common_topics or []),
            suggested_activities=list(row.suggested_activities or []),
            status=MatchStatus(row.status),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
