"""Health check endpoints."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_person_service
from core.person_cache import get_person_cache
from services.person_service import PersonService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    directory: str
    cache: str


@router.get("/health", response_model=HealthResponse)
async def health_check(
    service: PersonService = Depends(get_person_service),
) -> HealthResponse:
    """Check directory connectivity, mapped attributes, and the distributed cache."""
    directory_status = "healthy"
    try:
        await service.check_connection()
        await service.assert_attributes_exist()
    except Exception:
        logger.exception("Directory health check failed")
        directory_status = "unhealthy"

    person_cache = get_person_cache()
    cache_healthy = person_cache is not None and await person_cache.ping()
    cache_status = "healthy" if cache_healthy else "unhealthy"

    return HealthResponse(
        status="healthy" if directory_status == "healthy" else "degraded",
        directory=directory_status,
        cache=cache_status,
    )
