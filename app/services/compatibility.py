"""
Compatibility scoring between a requesting learner and one candidate.

Four weighted sub-scores, each in [0, 1]:

    subject overlap        0.4   Jaccard of subjects vs interest tags
    study style            0.2   compatible-style table
    experience level       0.2   1 - 0.3 * |level difference|
    gap complementarity    0.2   supplied by GapComplementarityEstimator

The weights sum to 1.0, so the weighted sum is already normalised; it is
rounded to SCORE_PRECISION decimals, so threshold comparisons see 0.3 rather
than 0.30000000000000004, and clamped to [0, 1].  Everything here is pure and
deterministic.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from app.models.database_models import ExperienceLevel, StudyStyle
from app.services.profiles import CandidateRecord, UserProfile
from app.utils.helpers import lowercase_set

logger = logging.getLogger(__name__)

SUBJECT_WEIGHT = 0.4
STYLE_WEIGHT = 0.2
LEVEL_WEIGHT = 0.2
GAP_WEIGHT = 0.2

NEUTRAL_SCORE = 0.5
PARTIAL_STYLE_SCORE = 0.3
LEVEL_STEP_PENALTY = 0.3
SCORE_PRECISION = 10

# Keyed by the requester's style
COMPATIBLE_STYLES: Dict[StudyStyle, FrozenSet[StudyStyle]] = {
    StudyStyle.VISUAL: frozenset({StudyStyle.VISUAL, StudyStyle.HANDS_ON}),
    StudyStyle.HANDS_ON: frozenset({StudyStyle.HANDS_ON, StudyStyle.VISUAL, StudyStyle.KINESTHETIC}),
    StudyStyle.READING: frozenset({StudyStyle.READING, StudyStyle.AUDITORY}),
    StudyStyle.AUDITORY: frozenset({StudyStyle.AUDITORY, StudyStyle.READING}),
    StudyStyle.KINESTHETIC: frozenset({StudyStyle.KINESTHETIC, StudyStyle.HANDS_ON}),
}

LEVEL_ORDER: List[ExperienceLevel] = [
    ExperienceLevel.BEGINNER,
    ExperienceLevel.INTERMEDIATE,
    ExperienceLevel.ADVANCED,
    ExperienceLevel.EXPERT,
]


@dataclasses.dataclass
class CompatibilityBreakdown:
    subject_overlap: float
    style: float
    level: float
    gap_complementarity: float

    @property
    def total(self) -> float:
        score = (
            self.subject_overlap * SUBJECT_WEIGHT
            + self.style * STYLE_WEIGHT
            + self.level * LEVEL_WEIGHT
            + self.gap_complementarity * GAP_WEIGHT
        )
        return clamp(round(score, SCORE_PRECISION))


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def jaccard_overlap(first: Iterable[str], second: Iterable[str]) -> float:
    """Case-insensitive |A ∩ B| / |A ∪ B|; 0.0 when either side is empty."""
    a = lowercase_set(first)
    b = lowercase_set(second)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def style_compatibility(
    requester: Optional[StudyStyle], candidate: Optional[StudyStyle]
) -> float:
    if requester is None or candidate is None:
        return NEUTRAL_SCORE
    compatible = COMPATIBLE_STYLES.get(requester, frozenset())
    return 1.0 if candidate in compatible else PARTIAL_STYLE_SCORE


def level_compatibility(
    requester: Optional[ExperienceLevel], candidate: Optional[ExperienceLevel]
) -> float:
    if requester is None or candidate is None:
        return NEUTRAL_SCORE
    diff = abs(LEVEL_ORDER.index(requester) - LEVEL_ORDER.index(candidate))
    return max(0.0, 1.0 - diff * LEVEL_STEP_PENALTY)


def find_common_topics(subjects: Iterable[str], interest_tags: Iterable[str]) -> List[str]:
    """
    Requester subjects that substring-match any candidate tag, either way
    round, case-insensitively.  Keeps the requester's order, no duplicates.
    """
    tags = [t.lower() for t in interest_tags if t]
    common: List[str] = []
    seen = set()
    for subject in subjects:
        key = subject.lower()
        if not key or key in seen:
            continue
        if any(key in tag or tag in key for tag in tags):
            common.append(subject)
            seen.add(key)
    return common


def _sub_score(name: str, fn: Callable[[], float]) -> float:
    try:
        return clamp(fn())
    except Exception as exc:
        logger.error("Sub-score %s failed, using neutral value: %s", name, exc)
        return NEUTRAL_SCORE


def score_breakdown(
    profile: UserProfile,
    candidate: CandidateRecord,
    gap_complementarity: float,
) -> CompatibilityBreakdown:
    """
    Sub-scores for one pair.  *gap_complementarity* is already computed by
    the caller, which owns its neutral fallback; it is only clamped here.
    """
    return CompatibilityBreakdown(
        subject_overlap=_sub_score(
            "subject_overlap",
            lambda: jaccard_overlap(profile.preferred_subjects, candidate.interest_tags),
        ),
        style=_sub_score(
            "style",
            lambda: style_compatibility(profile.study_style, candidate.study_style),
        ),
        level=_sub_score(
            "level",
            lambda: level_compatibility(profile.experience_level, candidate.experience_level),
        ),
        gap_complementarity=clamp(gap_complementarity),
    )


def compute_compatibility(
    profile: UserProfile,
    candidate: CandidateRecord,
    gap_complementarity: float,
) -> float:
    """Composite compatibility in [0, 1]."""
    return score_breakdown(profile, candidate, gap_complementarity).total
