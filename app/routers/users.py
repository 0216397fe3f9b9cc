"""
User and blind-spot endpoints.

Registers learners who can be matched and records the topics they are weak
or confident in, either directly or by analysing study content.  These rows
feed the matching pipeline.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, status

from app.dependencies.services import get_analysis_service, get_repository
from app.errors import NotFoundError
from app.models.schemas import (
    AnalysisResponse,
    AnalysisSummaryResponse,
    AnalyzedTopicResponse,
    AnalyzeRequest,
    BlindSpotCreateRequest,
    BlindSpotResponse,
    UserCreateRequest,
    UserResponse,
)
from app.services.analysis import BlindSpotAnalyzer
from app.services.profiles import BlindSpotRecord, CandidateRecord
from app.services.repository import StudyRepository

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_user(record: CandidateRecord) -> UserResponse:
    return UserResponse(
        id=record.user_id,
        name=record.name,
        email=record.email,
        interest_tags=record.interest_tags,
        study_style=record.study_style,
        availability=record.availability,
        experience_level=record.experience_level,
    )


def _to_spot(record: BlindSpotRecord, user_id: int) -> BlindSpotResponse:
    return BlindSpotResponse(
        id=record.id,
        user_id=record.user_id if record.user_id is not None else user_id,
        topic=record.topic,
        confidence=record.confidence,
        ai_analysis=record.ai_analysis,
        created_at=record.created_at,
    )


async def _require_user(repository: StudyRepository, user_id: int) -> CandidateRecord:
    user = await repository.get_user(user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreateRequest,
    repository: StudyRepository = Depends(get_repository),
) -> UserResponse:
    record = await repository.create_user(
        name=body.name,
        email=body.email,
        interest_tags=[t.strip() for t in body.interest_tags if t.strip()],
        study_style=body.study_style.value if body.study_style else None,
        availability=body.availability.value if body.availability else None,
        experience_level=body.experience_level.value if body.experience_level else None,
    )
    return _to_user(record)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    repository: StudyRepository = Depends(get_repository),
) -> UserResponse:
    return _to_user(await _require_user(repository, user_id))


@router.post(
    "/{user_id}/blind-spots",
    response_model=BlindSpotResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_blind_spot(
    user_id: int,
    body: BlindSpotCreateRequest,
    repository: StudyRepository = Depends(get_repository),
) -> BlindSpotResponse:
    await _require_user(repository, user_id)
    record = await repository.add_blind_spot(
        user_id, body.topic.strip(), body.confidence, body.ai_analysis
    )
    logger.info("Blind spot %r (%.2f) recorded for user=%s", record.topic, record.confidence, user_id)
    return _to_spot(record, user_id)


@router.get("/{user_id}/blind-spots", response_model=List[BlindSpotResponse])
async def list_blind_spots(
    user_id: int,
    repository: StudyRepository = Depends(get_repository),
) -> List[BlindSpotResponse]:
    await _require_user(repository, user_id)
    spots = await repository.list_blind_spots(user_id)
    return [_to_spot(s, user_id) for s in spots]


@router.get("/{user_id}/blind-spots/{spot_id}", response_model=BlindSpotResponse)
async def get_blind_spot(
    user_id: int,
    spot_id: int,
    repository: StudyRepository = Depends(get_repository),
) -> BlindSpotResponse:
    record = await repository.get_blind_spot(user_id, spot_id)
    if record is None:
        raise NotFoundError(f"Blind spot {spot_id} not found")
    return _to_spot(record, user_id)


@router.delete(
    "/{user_id}/blind-spots/{spot_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_model=None,
)
async def delete_blind_spot(
    user_id: int,
    spot_id: int,
    repository: StudyRepository = Depends(get_repository),
) -> None:
    if not await repository.delete_blind_spot(user_id, spot_id):
        raise NotFoundError(f"Blind spot {spot_id} not found")
    logger.info("Deleted blind spot id=%d for user=%d", spot_id, user_id)


@router.post("/{user_id}/analyze", response_model=AnalysisResponse)
async def analyze_content(
    user_id: int,
    body: AnalyzeRequest,
    analyzer: BlindSpotAnalyzer = Depends(get_analysis_service),
) -> AnalysisResponse:
    """
    Scan study content for blind spots and store each one found.

    Returns the stored rows plus the full topic breakdown.  Empty content or
    content over 10,000 characters is a 400; a failing text-generation
    service is a 502.
    """
    outcome = await analyzer.analyze(user_id, body.content, body.user_assessment)
    return AnalysisResponse(
        blind_spots=[_to_spot(s, user_id) for s in outcome.blind_spots],
        analysis=AnalysisSummaryResponse(
            topics=[
                AnalyzedTopicResponse(
                    topic=t.topic, confidence=t.confidence, is_blind_spot=t.is_blind_spot
                )
                for t in outcome.topics
            ],
            analysis=outcome.analysis,
            recommendations=outcome.recommendations,
        ),
    )
