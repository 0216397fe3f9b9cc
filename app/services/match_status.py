"""
Match status state machine.

    pending  → accepted | rejected
    accepted → active
    rejected, active: terminal

``pending`` is the creation state only; nothing transitions back into it.
"""
from __future__ import annotations

from typing import Dict, FrozenSet

from app.errors import InvalidTransitionError
from app.models.database_models import MatchStatus

ALLOWED_TRANSITIONS: Dict[MatchStatus, FrozenSet[MatchStatus]] = {
    MatchStatus.PENDING: frozenset({MatchStatus.ACCEPTED, MatchStatus.REJECTED}),
    MatchStatus.ACCEPTED: frozenset({MatchStatus.ACTIVE}),
    MatchStatus.REJECTED: frozenset(),
    MatchStatus.ACTIVE: frozenset(),
}


def can_transition(current: MatchStatus, requested: MatchStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: MatchStatus, requested: MatchStatus) -> None:
    """Raise InvalidTransitionError unless *current* → *requested* is allowed."""
    if not can_transition(current, requested):
        raise InvalidTransitionError(current.value, requested.value, is_terminal(current))


def is_terminal(status: MatchStatus) -> bool:
    return not ALLOWED_TRANSITIONS.get(status)
