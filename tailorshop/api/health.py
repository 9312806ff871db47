"""Health check endpoints.

Liveness and readiness probes for the tailor shop API.
"""

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tailorshop.infrastructure.config import settings

logger = structlog.get_logger()

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response schema."""

    status: str
    storage: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health.

    Returns:
        Health status with service name and version.
    """
    return HealthResponse(
        status="healthy",
        service="tailorshop-api",
        version=settings.api_version,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check():
    """Check if service is ready to accept requests.

    With the postgres backend the database must answer a ping.
    """
    if settings.storage_backend != "postgres":
        return ReadinessResponse(status="ready", storage=settings.storage_backend)

    from tailorshop.infrastructure.database import ping_database

    if await ping_database():
        return ReadinessResponse(status="ready", storage="postgres")

    logger.warning("Database not reachable")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "unavailable", "storage": "postgres"},
    )
