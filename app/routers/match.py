"""
Study-buddy matching endpoints.

Route summary
-------------
POST /api/match                          rank candidates for a learner profile
GET  /api/match?userId={id}              stored matches for a user
PUT  /api/match?matchId={id}&status={s}  accept / reject / activate a match
"""
import logging

from fastapi import APIRouter, Depends, Query

from app.dependencies.services import get_matching_service
from app.models.database_models import MatchStatus
from app.models.schemas import (
    MatchingResponse,
    MatchListResponse,
    MatchRequest,
    MatchResultResponse,
    MatchStatusUpdate,
    MatchStatusUpdateResponse,
    StoredMatchResponse,
    SuggestedTopicResponse,
)
from app.services.matching import MatchingService
from app.services.profiles import RankedMatch, StoredMatch, UserProfile

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_result(match: RankedMatch) -> MatchResultResponse:
    return MatchResultResponse(
        user_id=match.candidate.user_id,
        compatibility_score=match.compatibility_score,
        common_topics=match.common_topics,
        learning_style=match.candidate.learning_style_label,
        availability=match.candidate.availability_label,
        suggested_activities=match.suggested_activities,
    )


def _to_stored(match: StoredMatch, user_id: int) -> StoredMatchResponse:
    partner = match.partner
    return StoredMatchResponse(
        id=match.id,
        user_id=match.partner_id(user_id),
        compatibility_score=match.compatibility_score,
        common_topics=match.common_topics,
        suggested_activities=match.suggested_activities,
        learning_style=partner.learning_style_label if partner else "unknown",
        availability=partner.availability_label if partner else "flexible",
        status=match.status,
        created_at=match.created_at,
        updated_at=match.updated_at,
    )


@router.post("", response_model=MatchingResponse)
async def request_matches(
    body: MatchRequest,
    service: MatchingService = Depends(get_matching_service),
) -> MatchingResponse:
    """Score every other user against the submitted profile and return the best matches."""
    logger.info(
        "Match request user=%s subjects=%d gaps=%d",
        body.user_id,
        len(body.learning_patterns.preferred_subjects),
        len(body.knowledge_gaps),
    )
    outcome = await service.find_matches(UserProfile.from_request(body))

    return MatchingResponse(
        matches=[_to_result(m) for m in outcome.matches],
        suggested_topics=[
            SuggestedTopicResponse(topic=t.topic, reason=t.reason)
            for t in outcome.suggested_topics
        ],
    )


@router.get("", response_model=MatchListResponse)
async def list_matches(
    user_id: int = Query(..., alias="userId"),
    service: MatchingService = Depends(get_matching_service),
) -> MatchListResponse:
    """Stored matches involving the user, highest score first."""
    matches = await service.get_user_matches(user_id)
    return MatchListResponse(matches=[_to_stored(m, user_id) for m in matches])


@router.put("", response_model=MatchStatusUpdateResponse)
async def update_match_status(
    match_id: int = Query(..., alias="matchId"),
    new_status: MatchStatusUpdate = Query(..., alias="status"),
    service: MatchingService = Depends(get_matching_service),
) -> MatchStatusUpdateResponse:
    """Move a match along pending → accepted/rejected, accepted → active."""
    match = await service.update_match_status(match_id, MatchStatus(new_status.value))
    return MatchStatusUpdateResponse(success=True, match_id=match.id, status=match.status)
