"""
Study-buddy matching service.

Pipeline for one request
------------------------
1. Load every candidate except the requester            (failure is fatal)
2. Score each candidate in population order             compatibility.py
   (gap complementarity per candidate)                  complementarity.py
3. Keep candidates scoring strictly above MATCH_MIN_SCORE
4. Common topics + suggested activities per kept one    suggestions.py
5. Stable sort by score, descending (optional seeded perturbation)
6. Persist the whole kept set as pending rows           (failure is logged)
7. Return the top MATCH_RESULT_LIMIT plus discussion topics

Status updates go through the transition table in match_status.py.
"""
from __future__ import annotations

import dataclasses
import logging
import random
import time
from typing import List, Optional

from app.config import settings
from app.errors import DatabaseError, InvalidTransitionError, NotFoundError
from app.models.database_models import MatchStatus
from app.services.compatibility import NEUTRAL_SCORE, compute_compatibility, find_common_topics
from app.services.complementarity import GapComplementarityEstimator
from app.services.match_status import ensure_transition, is_terminal
from app.services.operation_log import OperationLogger
from app.services.profiles import RankedMatch, StoredMatch, UserProfile
from app.services.repository import StudyRepository
from app.services.suggestions import SuggestedTopic, SuggestionAdapter

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class MatchingOutcome:
    """Returned by MatchingService.find_matches()."""

    matches: List[RankedMatch]                 # top N, best first
    suggested_topics: List[SuggestedTopic]
    candidates_considered: int
    retained_count: int                        # everything above the threshold
    persisted_count: int


def rank_matches(matches: List[RankedMatch]) -> List[RankedMatch]:
    """Sort by score, highest first; ties keep population order."""
    return sorted(matches, key=lambda m: m.compatibility_score, reverse=True)


def perturb_ranking(
    matches: List[RankedMatch],
    jitter: float,
    seed: Optional[int] = None,
) -> List[RankedMatch]:
    """
    Re-order ranked matches by score plus uniform noise in [-jitter, jitter].

    Exploration only: stored scores are left untouched and the same seed
    always yields the same order.
    """
    if jitter <= 0 or len(matches) < 2:
        return list(matches)
    rng = random.Random(seed)
    keyed = [(m.compatibility_score + rng.uniform(-jitter, jitter), i, m) for i, m in enumerate(matches)]
    keyed.sort(key=lambda item: (-item[0], item[1]))
    return [m for _, _, m in keyed]


class MatchingService:
    """Scores, ranks, persists and updates buddy matches."""

    def __init__(
        self,
        repository: StudyRepository,
        suggestions: SuggestionAdapter,
        operation_log: Optional[OperationLogger] = None,
        *,
        min_score: float = settings.MATCH_MIN_SCORE,
        result_limit: int = settings.MATCH_RESULT_LIMIT,
        ranking_jitter: float = settings.MATCH_RANKING_JITTER,
        ranking_seed: Optional[int] = settings.MATCH_RANKING_SEED,
        estimator: Optional[GapComplementarityEstimator] = None,
    ) -> None:
        self.repository = repository
        self.suggestions = suggestions
        self.operation_log = operation_log or OperationLogger()
        self.min_score = min_score
        self.result_limit = result_limit
        self.ranking_jitter = ranking_jitter
        self.ranking_seed = ranking_seed
        self.estimator = estimator or GapComplementarityEstimator(repository, self.operation_log)

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    async def find_matches(self, profile: UserProfile) -> MatchingOutcome:
        t0 = time.monotonic()
        logger.info("Starting buddy matching for user=%s", profile.user_id)

        try:
            candidates = await self.repository.list_candidates(exclude_user_id=profile.user_id)
        except DatabaseError:
            self.operation_log.database_operation("select", "users", False, _ms_since(t0))
            raise
        self.operation_log.database_operation("select", "users", True, _ms_since(t0))

        retained: List[RankedMatch] = []
        for candidate in candidates:
            if candidate.user_id == profile.user_id:
                continue

            complementarity = await self._complementarity(profile, candidate.user_id)
            score = compute_compatibility(profile, candidate, complementarity)
            if score <= self.min_score:
                continue

            common_topics = find_common_topics(profile.preferred_subjects, candidate.interest_tags)
            activities = await self.suggestions.suggest_activities(profile, candidate, common_topics)
            retained.append(
                RankedMatch(
                    candidate=candidate,
                    compatibility_score=score,
                    common_topics=common_topics,
                    suggested_activities=activities,
                )
            )

        ranked = rank_matches(retained)
        if self.ranking_jitter > 0:
            ranked = perturb_ranking(ranked, self.ranking_jitter, self.ranking_seed)

        suggested_topics = await self.suggestions.suggest_discussion_topics(profile)
        persisted = await self._store_matches(profile.user_id, ranked)

        top = ranked[: self.result_limit]
        self.operation_log.match_run(
            profile.user_id, len(candidates), len(ranked), len(top), _ms_since(t0)
        )
        return MatchingOutcome(
            matches=top,
            suggested_topics=suggested_topics,
            candidates_considered=len(candidates),
            retained_count=len(ranked),
            persisted_count=persisted,
        )

    async def _complementarity(self, profile: UserProfile, candidate_id: int) -> float:
        try:
            return await self.estimator.estimate(profile, candidate_id)
        except Exception as exc:
            logger.error(
                "Complementarity for candidate %s failed, using neutral value: %s",
                candidate_id,
                exc,
            )
            return NEUTRAL_SCORE

    async def _store_matches(self, requester_id: int, ranked: List[RankedMatch]) -> int:
        """Persist the full ranked set; failures are logged, never raised."""
        t0 = time.monotonic()
        try:
            written = await self.repository.save_pending_matches(requester_id, ranked)
        except Exception as exc:
            logger.error("Failed to store matches for user=%s: %s", requester_id, exc)
            self.operation_log.database_operation("insert", "buddy_matches", False, _ms_since(t0))
            return 0
        self.operation_log.database_operation("insert", "buddy_matches", True, _ms_since(t0))
        return written

    # ------------------------------------------------------------------
    # Stored matches
    # ------------------------------------------------------------------

    async def get_user_matches(self, user_id: int) -> List[StoredMatch]:
        """Stored matches where *user_id* is either side, with partner details."""
        if await self.repository.get_user(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")

        matches = await self.repository.list_matches_for_user(user_id)
        partners = await self.repository.get_users(m.partner_id(user_id) for m in matches)
        for match in matches:
            match.partner = partners.get(match.partner_id(user_id))
        return matches

    async def update_match_status(self, match_id: int, status: MatchStatus) -> StoredMatch:
        match = await self.repository.get_match(match_id)
        if match is None:
            raise NotFoundError(f"Match {match_id} not found")

        ensure_transition(match.status, status)

        updated = await self.repository.transition_match_status(match_id, match.status, status)
        if not updated:
            # Someone else moved it first
            current = await self.repository.get_match(match_id)
            if current is None:
                raise NotFoundError(f"Match {match_id} not found")
            raise InvalidTransitionError(
                current.status.value, status.value, is_terminal(current.status)
            )

        logger.info("Match %s: %s → %s", match_id, match.status.value, status.value)
        refreshed = await self.repository.get_match(match_id)
        return refreshed or dataclasses.replace(match, status=status)


def _ms_since(t0: float) -> float:
    return (time.monotonic() - t0) * 1000
