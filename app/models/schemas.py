"""
Pydantic schemas for request/response validation.

Field names are snake_case in Python and camelCase on the wire
(``userId``, ``learningPatterns``, ``compatibilityScore`` ...).
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum

from app.models.database_models import (
    Availability,
    ExperienceLevel,
    MatchStatus,
    StudyStyle,
)


class CamelModel(BaseModel):
    """Base schema: camelCase aliases, populate by either name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _lower_enum_value(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


class MatchStatusUpdate(str, Enum):
    """Statuses a caller may request; ``pending`` is creation-only."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ACTIVE = "active"


# ---------------------------------------------------------------------------
# Match request
# ---------------------------------------------------------------------------

class KnowledgeGapSchema(CamelModel):
    """A self-assessed topic with a confidence in [0, 1]."""

    topic: str = Field(..., min_length=1, max_length=255)
    confidence: float = Field(..., ge=0.0, le=1.0)


class LearningPatternsSchema(CamelModel):
    """Learning preferences of the requesting user."""

    preferred_subjects: List[str] = Field(..., min_length=1)
    study_style: StudyStyle
    availability: Availability
    experience_level: ExperienceLevel

    @field_validator("study_style", "availability", "experience_level", mode="before")
    @classmethod
    def _normalise_enum(cls, value: Any) -> Any:
        return _lower_enum_value(value)

    @field_validator("preferred_subjects")
    @classmethod
    def _strip_subjects(cls, value: List[str]) -> List[str]:
        subjects = [s.strip() for s in value if s and s.strip()]
        if not subjects:
            raise ValueError("at least one non-empty subject is required")
        return subjects


class MatchRequest(CamelModel):
    """Body of POST /api/match: the requester's profile."""

    user_id: int
    learning_patterns: LearningPatternsSchema
    knowledge_gaps: List[KnowledgeGapSchema]


# ---------------------------------------------------------------------------
# Match responses
# ---------------------------------------------------------------------------

class MatchResultResponse(CamelModel):
    """One ranked candidate."""

    user_id: int
    compatibility_score: float
    common_topics: List[str] = []
    learning_style: str = "unknown"
    availability: str = "flexible"
    suggested_activities: List[str] = []


class SuggestedTopicResponse(CamelModel):
    topic: str
    reason: str


class MatchingResponse(CamelModel):
    """Response of POST /api/match."""

    matches: List[MatchResultResponse]
    suggested_topics: List[SuggestedTopicResponse]


class StoredMatchResponse(CamelModel):
    """A persisted match as seen by one of its two users."""

    id: int
    user_id: int  # the partner
    compatibility_score: float
    common_topics: List[str] = []
    suggested_activities: List[str] = []
    learning_style: str = "unknown"
    availability: str = "flexible"
    status: MatchStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MatchListResponse(CamelModel):
    matches: List[StoredMatchResponse]


class MatchStatusUpdateResponse(CamelModel):
    success: bool = True
    match_id: int
    status: MatchStatus


# ---------------------------------------------------------------------------
# Users & blind spots
# ---------------------------------------------------------------------------

class UserCreateRequest(CamelModel):
    """Register a learner who can be matched."""

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    interest_tags: List[str] = []
    study_style: Optional[StudyStyle] = None
    availability: Optional[Availability] = None
    experience_level: Optional[ExperienceLevel] = None

    @field_validator("study_style", "availability", "experience_level", mode="before")
    @classmethod
    def _normalise_enum(cls, value: Any) -> Any:
        return _lower_enum_value(value)


class UserResponse(CamelModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    interest_tags: List[str] = []
    study_style: Optional[StudyStyle] = None
    availability: Optional[Availability] = None
    experience_level: Optional[ExperienceLevel] = None


class BlindSpotCreateRequest(CamelModel):
    topic: str = Field(..., min_length=1, max_length=255)
    confidence: float = Field(..., ge=0.0, le=1.0)
    ai_analysis: Optional[Dict[str, Any]] = None


class BlindSpotResponse(CamelModel):
    id: Optional[int] = None
    user_id: int
    topic: str
    confidence: float
    ai_analysis: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class AnalyzeRequest(CamelModel):
    """Study content to scan for blind spots, with optional self-assessment."""

    content: str
    user_assessment: Optional[Dict[str, float]] = None

    @field_validator("user_assessment")
    @classmethod
    def _check_assessment(cls, value: Optional[Dict[str, float]]) -> Optional[Dict[str, float]]:
        if value is not None and any(not 0.0 <= v <= 1.0 for v in value.values()):
            raise ValueError("assessment confidences must be between 0 and 1")
        return value


class AnalyzedTopicResponse(CamelModel):
    topic: str
    confidence: float
    is_blind_spot: bool


class AnalysisSummaryResponse(CamelModel):
    topics: List[AnalyzedTopicResponse]
    analysis: str
    recommendations: List[str] = []


class AnalysisResponse(CamelModel):
    """Response of POST /api/users/{id}/analyze."""

    blind_spots: List[BlindSpotResponse]
    analysis: AnalysisSummaryResponse


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class HealthCheckResponse(BaseModel):
    """Schema for health check response."""

    status: str
    database: str
    ollama: str
    timestamp: datetime
