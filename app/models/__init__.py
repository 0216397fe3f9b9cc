"""Database and schema models for StudyBuddy."""
from app.models.database_models import (
    User,
    BlindSpot,
    BuddyMatch,
    MatchStatus,
    StudyStyle,
    ExperienceLevel,
    Availability,
)
from app.models.schemas import (
    MatchRequest,
    MatchingResponse,
    MatchListResponse,
    MatchStatusUpdateResponse,
    UserCreateRequest,
    UserResponse,
    BlindSpotCreateRequest,
    BlindSpotResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "User",
    "BlindSpot",
    "BuddyMatch",
    "MatchStatus",
    "StudyStyle",
    "ExperienceLevel",
    "Availability",
    # Pydantic schemas
    "MatchRequest",
    "MatchingResponse",
    "MatchListResponse",
    "MatchStatusUpdateResponse",
    "UserCreateRequest",
    "UserResponse",
    "BlindSpotCreateRequest",
    "BlindSpotResponse",
    "HealthCheckResponse",
]
