"""
Persistence for users, blind spots and buddy matches.

``StudyRepository`` is the interface the matching service talks to;
``SqlStudyRepository`` implements it on a request-scoped ``AsyncSession``.
SQLAlchemy failures are re-raised as ``DatabaseError`` so callers decide
whether a failure is fatal (candidate reads, status updates) or best-effort
(persisting a freshly computed match set).
"""
from __future__ import annotations

import abc
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from app.errors import DatabaseError, ValidationError
from app.models.database_models import BlindSpot, BuddyMatch, MatchStatus, User
from app.services.profiles import (
    BlindSpotRecord,
    CandidateRecord,
    RankedMatch,
    StoredMatch,
)

logger = logging.getLogger(__name__)


class StudyRepository(abc.ABC):
    """Store operations used by the matching pipeline and the user endpoints."""

    # Users -------------------------------------------------------------

    @abc.abstractmethod
    async def create_user(
        self,
        *,
        name: str,
        email: str,
        interest_tags: List[str],
        study_style: Optional[str],
        availability: Optional[str],
        experience_level: Optional[str],
    ) -> CandidateRecord: ...

    @abc.abstractmethod
    async def get_user(self, user_id: int) -> Optional[CandidateRecord]: ...

    @abc.abstractmethod
    async def get_users(self, user_ids: Iterable[int]) -> Dict[int, CandidateRecord]: ...

    @abc.abstractmethod
    async def list_candidates(self, exclude_user_id: int) -> List[CandidateRecord]: ...

    # Blind spots -------------------------------------------------------

    @abc.abstractmethod
    async def add_blind_spot(
        self,
        user_id: int,
        topic: str,
        confidence: float,
        ai_analysis: Optional[Dict[str, Any]] = None,
    ) -> BlindSpotRecord: ...

    @abc.abstractmethod
    async def list_blind_spots(self, user_id: int) -> List[BlindSpotRecord]: ...

    @abc.abstractmethod
    async def get_blind_spot(self, user_id: int, spot_id: int) -> Optional[BlindSpotRecord]: ...

    @abc.abstractmethod
    async def delete_blind_spot(self, user_id: int, spot_id: int) -> bool:
        """True when a row owned by *user_id* was removed."""

    # Matches -----------------------------------------------------------

    @abc.abstractmethod
    async def save_pending_matches(self, requester_id: int, matches: List[RankedMatch]) -> int:
        """Upsert pending rows keyed on the unordered pair; returns rows written."""

    @abc.abstractmethod
    async def list_matches_for_user(self, user_id: int) -> List[StoredMatch]: ...

    @abc.abstractmethod
    async def get_match(self, match_id: int) -> Optional[StoredMatch]: ...

    @abc.abstractmethod
    async def transition_match_status(
        self, match_id: int, expected: MatchStatus, new_status: MatchStatus
    ) -> bool:
        """Compare-and-set on status; False when the row no longer has *expected*."""


def _style_json(value: Optional[str]) -> Optional[Dict[str, str]]:
    return {"learning_type": value} if value else None


def _availability_json(value: Optional[str]) -> Optional[Dict[str, str]]:
    return {"time": value} if value else None


class SqlStudyRepository(StudyRepository):
    """SQLAlchemy implementation over a request-scoped session."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(
        self,
        *,
        name: str,
        email: str,
        interest_tags: List[str],
        study_style: Optional[str],
        availability: Optional[str],
        experience_level: Optional[str],
    ) -> CandidateRecord:
        user = User(
            name=name,
            email=email,
            interest_tags=list(interest_tags),
            study_style=_style_json(study_style),
            availability=_availability_json(availability),
            experience_level=experience_level,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(user)
                await self.db.flush()
        except IntegrityError as exc:
            raise ValidationError(f"Email {email!r} is already registered") from exc
        except SQLAlchemyError as exc:
            logger.error("Failed to create user %r: %s", email, exc)
            raise DatabaseError("Failed to create user") from exc

        logger.info("Created user id=%d email=%s", user.id, user.email)
        return CandidateRecord.from_orm(user)

    async def get_user(self, user_id: int) -> Optional[CandidateRecord]:
        try:
            result = await self.db.execute(select(User).where(User.id == user_id))
        except SQLAlchemyError as exc:
            logger.error("Failed to load user %s: %s", user_id, exc)
            raise DatabaseError("Failed to load user") from exc
        user = result.scalar_one_or_none()
        return CandidateRecord.from_orm(user) if user is not None else None

    async def get_users(self, user_ids: Iterable[int]) -> Dict[int, CandidateRecord]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        try:
            result = await self.db.execute(select(User).where(User.id.in_(ids)))
        except SQLAlchemyError as exc:
            logger.error("Failed to load users %s: %s", ids, exc)
            raise DatabaseError("Failed to load users") from exc
        return {u.id: CandidateRecord.from_orm(u) for u in result.scalars().all()}

    async def list_candidates(self, exclude_user_id: int) -> List[CandidateRecord]:
        try:
            result = await self.db.execute(
                select(User).where(User.id != exclude_user_id).order_by(User.id)
            )
        except SQLAlchemyError as exc:
            logger.error("Failed to enumerate candidates: %s", exc)
            raise DatabaseError("Failed to load candidate users") from exc
        return [CandidateRecord.from_orm(u) for u in result.scalars().all()]

    # ------------------------------------------------------------------
    # Blind spots
    # ------------------------------------------------------------------

    async def add_blind_spot(
        self,
        user_id: int,
        topic: str,
        confidence: float,
        ai_analysis: Optional[Dict[str, Any]] = None,
    ) -> BlindSpotRecord:
        spot = BlindSpot(
            user_id=user_id,
            topic=topic,
            confidence=confidence,
            ai_analysis=ai_analysis,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(spot)
                await self.db.flush()
                await self.db.refresh(spot)
        except SQLAlchemyError as exc:
            logger.error("Failed to add blind spot for user %s: %s", user_id, exc)
            raise DatabaseError("Failed to store blind spot") from exc
        return BlindSpotRecord.from_orm(spot)

    async def list_blind_spots(self, user_id: int) -> List[BlindSpotRecord]:
        try:
            result = await self.db.execute(
                select(BlindSpot).where(BlindSpot.user_id == user_id).order_by(BlindSpot.id)
            )
        except SQLAlchemyError as exc:
            raise DatabaseError(f"Failed to load blind spots for user {user_id}") from exc
        return [BlindSpotRecord.from_orm(s) for s in result.scalars().all()]

    async def get_blind_spot(self, user_id: int, spot_id: int) -> Optional[BlindSpotRecord]:
        try:
            result = await self.db.execute(
                select(BlindSpot).where(BlindSpot.id == spot_id, BlindSpot.user_id == user_id)
            )
        except SQLAlchemyError as exc:
            logger.error("Failed to load blind spot %s for user %s: %s", spot_id, user_id, exc)
            raise DatabaseError("Failed to retrieve blind spot") from exc
        spot = result.scalar_one_or_none()
        return BlindSpotRecord.from_orm(spot) if spot is not None else None

    async def delete_blind_spot(self, user_id: int, spot_id: int) -> bool:
        try:
            result = await self.db.execute(
                delete(BlindSpot).where(BlindSpot.id == spot_id, BlindSpot.user_id == user_id)
            )
        except SQLAlchemyError as exc:
            logger.error("Failed to delete blind spot %s for user %s: %s", spot_id, user_id, exc)
            raise DatabaseError("Failed to delete blind spot") from exc
        return (result.rowcount or 0) > 0

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    async def save_pending_matches(self, requester_id: int, matches: List[RankedMatch]) -> int:
        if not matches:
            return 0

        candidate_ids = [m.candidate.user_id for m in matches]
        written = 0
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(
                    select(BuddyMatch).where(
                        or_(
                            and_(
                                BuddyMatch.user_id1 == requester_id,
                                BuddyMatch.user_id2.in_(candidate_ids),
                            ),
                            and_(
                                BuddyMatch.user_id2 == requester_id,
                                BuddyMatch.user_id1.in_(candidate_ids),
                            ),
                        )
                    )
                )
                existing: Dict[int, List[BuddyMatch]] = defaultdict(list)
                for row in result.scalars().all():
                    partner = row.user_id2 if row.user_id1 == requester_id else row.user_id1
                    existing[partner].append(row)

                for match in matches:
                    rows = existing.get(match.candidate.user_id, [])
                    if any(MatchStatus(r.status) != MatchStatus.PENDING for r in rows):
                        # Pair already decided; keep its history untouched
                        continue
                    if rows:
                        row = rows[0]
                        row.compatibility_score = match.compatibility_score
                        row.common_topics = list(match.common_topics)
                        row.suggested_activities = list(match.suggested_activities)
                    else:
                        self.db.add(
                            BuddyMatch(
                                user_id1=requester_id,
                                user_id2=match.candidate.user_id,
                                compatibility_score=match.compatibility_score,
                                common_topics=list(match.common_topics),
                                suggested_activities=list(match.suggested_activities),
                                status=MatchStatus.PENDING,
                            )
                        )
                    written += 1
                await self.db.flush()
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to store matches") from exc

        return written

    async def list_matches_for_user(self, user_id: int) -> List[StoredMatch]:
        try:
            result = await self.db.execute(
                select(BuddyMatch)
                .where(or_(BuddyMatch.user_id1 == user_id, BuddyMatch.user_id2 == user_id))
                .order_by(BuddyMatch.compatibility_score.desc(), BuddyMatch.id)
            )
        except SQLAlchemyError as exc:
            logger.error("Failed to retrieve matches for user %s: %s", user_id, exc)
            raise DatabaseError("Failed to retrieve matches") from exc
        return [StoredMatch.from_orm(row) for row in result.scalars().all()]

    async def get_match(self, match_id: int) -> Optional[StoredMatch]:
        try:
            result = await self.db.execute(
                select(BuddyMatch)
                .where(BuddyMatch.id == match_id)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as exc:
            raise DatabaseError("Failed to load match") from exc
        row = result.scalar_one_or_none()
        return StoredMatch.from_orm(row) if row is not None else None

    async def transition_match_status(
        self, match_id: int, expected: MatchStatus, new_status: MatchStatus
    ) -> bool:
        try:
            result = await self.db.execute(
                update(BuddyMatch)
                .where(BuddyMatch.id == match_id, BuddyMatch.status == expected)
                .values(status=new_status, updated_at=func.now())
            )
        except SQLAlchemyError as exc:
            logger.error("Failed to update match %s status: %s", match_id, exc)
            raise DatabaseError("Failed to update match status") from exc
        return (result.rowcount or 0) > 0
