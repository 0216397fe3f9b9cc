"""
Knowledge-gap complementarity between a requester and a candidate.

A pairing is rewarded when one side is weak in what the other knows well:

    weak   = every submitted / stored topic (lower-cased)
    strong = topics with confidence > MATCH_STRONG_CONFIDENCE

    complementarity = min(1, J(req_weak, cand_strong) + J(cand_weak, req_strong))

The candidate's blind spots come from the store.  A failed lookup yields the
neutral 0.5; this sub-score never raises.
"""
from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, List, Optional, Sequence

from app.config import settings
from app.services.compatibility import NEUTRAL_SCORE, jaccard_overlap
from app.services.profiles import BlindSpotRecord, KnowledgeGap, UserProfile

if TYPE_CHECKING:
    from app.services.operation_log import OperationLogger
    from app.services.repository import StudyRepository

logger = logging.getLogger(__name__)


def gap_complementarity(
    requester_gaps: Sequence[KnowledgeGap],
    candidate_spots: Sequence[BlindSpotRecord],
    strong_confidence: float = 0.7,
) -> float:
    """Pure complementarity measure in [0, 1]; empty inputs give 0."""
    requester_weak = [g.topic for g in requester_gaps]
    requester_strong = [g.topic for g in requester_gaps if g.confidence > strong_confidence]
    candidate_weak = [s.topic for s in candidate_spots]
    candidate_strong = [s.topic for s in candidate_spots if s.confidence > strong_confidence]

    score = (
        jaccard_overlap(requester_weak, candidate_strong)
        + jaccard_overlap(candidate_weak, requester_strong)
    )
    return min(score, 1.0)


class GapComplementarityEstimator:
    """Fetches a candidate's blind spots and scores them against the requester's gaps."""

    def __init__(
        self,
        repository: "StudyRepository",
        operation_log: Optional["OperationLogger"] = None,
        strong_confidence: float = settings.MATCH_STRONG_CONFIDENCE,
    ) -> None:
        self.repository = repository
        self.operation_log = operation_log
        self.strong_confidence = strong_confidence

    async def estimate(self, profile: UserProfile, candidate_id: int) -> float:
        t0 = time.monotonic()
        try:
            spots: List[BlindSpotRecord] = await self.repository.list_blind_spots(candidate_id)
        except Exception as exc:
            logger.error(
                "Blind-spot lookup for candidate %s failed, using neutral complementarity: %s",
                candidate_id,
                exc,
            )
            self._record(False, t0)
            return NEUTRAL_SCORE

        self._record(True, t0)
        return gap_complementarity(profile.knowledge_gaps, spots, self.strong_confidence)

    def _record(self, success: bool, t0: float) -> None:
        if self.operation_log is not None:
            self.operation_log.database_operation(
                "select", "blind_spots", success, (time.monotonic() - t0) * 1000
            )
