"""Liveness and readiness checks."""

from fastapi import APIRouter, Request

from learnmate.config import get_settings
from learnmate.core.database import AsyncCassandraConnection
from learnmate.core.redis import OutlineCache


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Ready once the enrollment service exists.

    The outline cache is reported but never makes the API unready.
    """
    services_up = getattr(request.app.state, "enrollment_service", None) is not None
    return {
        "status": "ready" if services_up else "degraded",
        "environment": get_settings().environment,
        "cassandra": AsyncCassandraConnection.is_connected(),
        "redis": OutlineCache.is_connected(),
    }


@router.get("")
async def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
