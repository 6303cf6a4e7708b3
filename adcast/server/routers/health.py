"""
Health check endpoints.
"""

from fastapi import APIRouter, Depends

from adcast.common.config import get_settings
from adcast.common.database import db
from adcast.schemas.response import HealthResponse
from adcast.server.runtime import SyncRuntime, get_runtime

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(runtime: SyncRuntime = Depends(get_runtime)) -> HealthResponse:
    """
    Health check endpoint.

    Returns service status and dependency health.
    """
    settings = get_settings()

    db_healthy = await db.health_check()
    broker_healthy = await runtime.health_check()

    status = "healthy" if (db_healthy and broker_healthy) else "degraded"

    return HealthResponse(
        status=status,
        version=settings.app_version,
        database=db_healthy,
        broker=broker_healthy,
    )


@router.get("/ping")
async def ping() -> dict:
    """Simple ping endpoint."""
    return {"pong": True}


@router.get("/ready")
async def readiness_check(runtime: SyncRuntime = Depends(get_runtime)) -> dict:
    """Readiness check for Kubernetes."""
    db_healthy = await db.health_check()
    broker_healthy = await runtime.health_check()

    if not db_healthy or not broker_healthy:
        return {"ready": False, "reason": "Dependencies not ready"}

    return {"ready": True}


@router.get("/live")
async def liveness_check() -> dict:
    """Liveness check for Kubernetes."""
    return {"alive": True}
