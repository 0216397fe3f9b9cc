"""
Study-activity and discussion-topic suggestions.

Two tiers: ask the text-generation collaborator first, and fall back to
local templates when it fails for any reason.  Callers always receive a
well-formed list; collaborator failures are logged here and never
propagate into the ranking pipeline.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Protocol, Sequence

from app.config import settings
from app.services.profiles import CandidateRecord, UserProfile

if TYPE_CHECKING:
    from app.services.operation_log import OperationLogger

logger = logging.getLogger(__name__)

GENERIC_ACTIVITIES = (
    "Schedule regular study sessions",
    "Share study resources and notes",
)


class SuggestionClient(Protocol):
    async def generate_study_activities(
        self, profile: UserProfile, candidate: CandidateRecord, common_topics: Sequence[str]
    ) -> List[str]: ...

    async def generate_discussion_topics(self, profile: UserProfile) -> List[Dict[str, str]]: ...


@dataclasses.dataclass
class SuggestedTopic:
    topic: str
    reason: str


def topic_activities(common_topics: Sequence[str]) -> List[str]:
    """Templated lines for the first common topic (empty without one)."""
    if not common_topics:
        return []
    first = common_topics[0]
    return [f"Study {first} together", f"Work on {first} problems"]


def fallback_activities(common_topics: Sequence[str], limit: int = 5) -> List[str]:
    return (topic_activities(common_topics) + list(GENERIC_ACTIVITIES))[:limit]


def fallback_discussion_topics(profile: UserProfile) -> List[SuggestedTopic]:
    return [
        SuggestedTopic(
            topic=f"Latest developments in {subject}",
            reason=f"You're interested in {subject}",
        )
        for subject in profile.preferred_subjects
    ]


class SuggestionAdapter:
    """Delegate-then-template suggestion generation."""

    def __init__(
        self,
        client: Optional[SuggestionClient],
        operation_log: Optional["OperationLogger"] = None,
        max_activities: int = settings.MATCH_MAX_ACTIVITIES,
    ) -> None:
        self.client = client
        self.operation_log = operation_log
        self.max_activities = max_activities

    async def suggest_activities(
        self,
        profile: UserProfile,
        candidate: CandidateRecord,
        common_topics: Sequence[str],
    ) -> List[str]:
        """At most ``max_activities`` lines, never empty."""
        activities = topic_activities(common_topics)
        try:
            if self.client is None:
                raise RuntimeError("no text-generation client configured")
            generated = await self.client.generate_study_activities(
                profile, candidate, list(common_topics)
            )
            generated = [a for a in generated if a]
            if not generated:
                raise ValueError("collaborator returned no activities")
            activities.extend(generated)
        except Exception as exc:
            logger.error(
                "Failed to generate AI study activities for %s↔%s: %s",
                profile.user_id,
                candidate.user_id,
                exc,
            )
            self._fallback("activities")
            return fallback_activities(common_topics, self.max_activities)

        return activities[: self.max_activities]

    async def suggest_discussion_topics(self, profile: UserProfile) -> List[SuggestedTopic]:
        try:
            if self.client is None:
                raise RuntimeError("no text-generation client configured")
            raw = await self.client.generate_discussion_topics(profile)
            topics = [
                SuggestedTopic(
                    topic=item["topic"],
                    reason=item.get("reason") or f"Based on your interest in {item['topic']}",
                )
                for item in raw
                if item.get("topic")
            ]
            if not topics:
                raise ValueError("collaborator returned no topics")
            return topics
        except Exception as exc:
            logger.error("Failed to generate discussion topics for %s: %s", profile.user_id, exc)
            self._fallback("discussion_topics")
            return fallback_discussion_topics(profile)

    def _fallback(self, kind: str) -> None:
        if self.operation_log is not None:
            self.operation_log.fallback_used(kind)
