"""
Content analysis: turns a learner's study notes into blind-spot rows.

The text-generation collaborator lists the topics the content covers with a
confidence and a blind-spot flag.  Every flagged topic is stored as a
``BlindSpot`` row carrying the full analysis plus per-topic recommendations,
so later match requests can use it for gap complementarity.  There is no
template fallback here; collaborator errors propagate.
"""
from __future__ import annotations

import dataclasses
import logging
import time
from typing import Any, Dict, List, Optional, Protocol, Sequence

from app.errors import NotFoundError, ValidationError
from app.services.operation_log import OperationLogger
from app.services.profiles import BlindSpotRecord
from app.services.repository import StudyRepository

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 10_000
STRONG_TOPIC_CONFIDENCE = 0.7
MANY_BLIND_SPOTS = 3


class ContentAnalysisClient(Protocol):
    async def analyze_content(
        self, content: str, user_assessment: Optional[Dict[str, float]] = None
    ) -> Dict[str, Any]: ...


@dataclasses.dataclass
class AnalyzedTopic:
    topic: str
    confidence: float
    is_blind_spot: bool


@dataclasses.dataclass
class AnalysisOutcome:
    """Returned by BlindSpotAnalyzer.analyze()."""

    blind_spots: List[BlindSpotRecord]
    topics: List[AnalyzedTopic]
    analysis: str
    recommendations: List[str]


def topic_recommendations(topic: str, confidence: float) -> List[str]:
    """Two next steps for one topic, pitched at the learner's confidence."""
    if confidence < 0.3:
        return [
            f"Start with basic concepts of {topic}",
            f"Find beginner-friendly resources for {topic}",
        ]
    if confidence < 0.6:
        return [
            f"Practice more exercises on {topic}",
            f"Review intermediate concepts of {topic}",
        ]
    return [
        f"Focus on advanced applications of {topic}",
        f"Teach others about {topic} to reinforce learning",
    ]


def overall_recommendations(topics: Sequence[AnalyzedTopic]) -> List[str]:
    blind = [t.topic for t in topics if t.is_blind_spot]
    strong = [
        t.topic for t in topics if not t.is_blind_spot and t.confidence > STRONG_TOPIC_CONFIDENCE
    ]

    recommendations: List[str] = []
    if blind:
        recommendations.append(f"Focus on these areas: {', '.join(blind)}")
    if strong:
        recommendations.append(f"Build on your strengths in: {', '.join(strong)}")
    if len(blind) > MANY_BLIND_SPOTS:
        recommendations.append(
            "Consider breaking down complex topics into smaller, manageable parts"
        )
    return recommendations


class BlindSpotAnalyzer:
    """Analyses study content for one user and records the blind spots found."""

    def __init__(
        self,
        repository: StudyRepository,
        client: ContentAnalysisClient,
        operation_log: Optional[OperationLogger] = None,
    ) -> None:
        self.repository = repository
        self.client = client
        self.operation_log = operation_log or OperationLogger()

    async def analyze(
        self,
        user_id: int,
        content: str,
        user_assessment: Optional[Dict[str, float]] = None,
    ) -> AnalysisOutcome:
        if not content or not content.strip():
            raise ValidationError("Content cannot be empty")
        if len(content) > MAX_CONTENT_LENGTH:
            raise ValidationError("Content too long. Maximum 10,000 characters allowed.")
        if await self.repository.get_user(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")

        t0 = time.monotonic()
        logger.info("Starting content analysis for user=%s (%d chars)", user_id, len(content))
        try:
            result = await self.client.analyze_content(content.strip(), user_assessment)
        except Exception:
            self.operation_log.ai_call("analyze_content", False, _ms_since(t0))
            raise
        self.operation_log.ai_call("analyze_content", True, _ms_since(t0))

        topics = [
            AnalyzedTopic(
                topic=t["topic"],
                confidence=float(t["confidence"]),
                is_blind_spot=bool(t["is_blind_spot"]),
            )
            for t in result["topics"]
        ]
        analysis = result.get("analysis", "")
        stored_topics = [
            {"topic": t.topic, "confidence": t.confidence, "isBlindSpot": t.is_blind_spot}
            for t in topics
        ]

        t1 = time.monotonic()
        blind_spots: List[BlindSpotRecord] = []
        try:
            for topic in topics:
                if not topic.is_blind_spot:
                    continue
                blind_spots.append(
                    await self.repository.add_blind_spot(
                        user_id,
                        topic.topic,
                        topic.confidence,
                        {
                            "topics": stored_topics,
                            "analysis": analysis,
                            "recommendations": topic_recommendations(topic.topic, topic.confidence),
                        },
                    )
                )
        except Exception:
            self.operation_log.database_operation("insert", "blind_spots", False, _ms_since(t1))
            raise
        if blind_spots:
            self.operation_log.database_operation("insert", "blind_spots", True, _ms_since(t1))

        logger.info(
            "Content analysis for user=%s: %d topics, %d blind spots (%.2f ms)",
            user_id,
            len(topics),
            len(blind_spots),
            _ms_since(t0),
        )
        return AnalysisOutcome(
            blind_spots=blind_spots,
            topics=topics,
            analysis=analysis,
            recommendations=overall_recommendations(topics),
        )


def _ms_since(t0: float) -> float:
    return (time.monotonic() - t0) * 1000
