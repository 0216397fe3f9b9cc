"""
Service wiring for FastAPI routes.

Long-lived collaborators (the Ollama client and the operation log) live in a
``ServiceContainer`` built once in the application lifespan and stored on
``app.state.services``.  Request-scoped objects (repository, matching
service, content analyzer) are assembled per request from it and the DB
session.
"""
from __future__ import annotations

import dataclasses
import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.analysis import BlindSpotAnalyzer
from app.services.llm_client import OllamaSuggestionClient
from app.services.matching import MatchingService
from app.services.operation_log import OperationLogger
from app.services.repository import SqlStudyRepository, StudyRepository
from app.services.suggestions import SuggestionAdapter, SuggestionClient

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class ServiceContainer:
    suggestion_client: SuggestionClient
    operation_log: OperationLogger

    async def aclose(self) -> None:
        closer = getattr(self.suggestion_client, "aclose", None)
        if closer is not None:
            await closer()
        self.operation_log.close()


def build_services() -> ServiceContainer:
    """Create the app-lifetime services.  Called from the lifespan."""
    return ServiceContainer(
        suggestion_client=OllamaSuggestionClient(),
        operation_log=OperationLogger(),
    )


async def get_services(request: Request) -> ServiceContainer:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services are not initialised yet.",
        )
    return services


async def get_repository(db: AsyncSession = Depends(get_db)) -> StudyRepository:
    return SqlStudyRepository(db)


async def get_matching_service(
    repository: StudyRepository = Depends(get_repository),
    services: ServiceContainer = Depends(get_services),
) -> MatchingService:
    return MatchingService(
        repository=repository,
        suggestions=SuggestionAdapter(services.suggestion_client, services.operation_log),
        operation_log=services.operation_log,
    )


async def get_analysis_service(
    repository: StudyRepository = Depends(get_repository),
    services: ServiceContainer = Depends(get_services),
) -> BlindSpotAnalyzer:
    return BlindSpotAnalyzer(
        repository=repository,
        client=services.suggestion_client,
        operation_log=services.operation_log,
    )
