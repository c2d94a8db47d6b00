"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request

from hub_shared.observability import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get(
    "/health",
    summary="Health check",
    description="Basic health check endpoint.",
)
async def health():
    """Basic health check."""
    return {"status": "healthy", "service": "registration-hub"}


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the controllers are ready to act on hub state.",
)
async def ready(request: Request):
    """Readiness check.

    Verifies the Redis audit channel and that every informer cache has
    completed its initial list.
    """
    checks = {
        "redis": False,
        "informers": False,
    }

    redis = getattr(request.app.state, "redis", None)
    if redis is not None:
        try:
            health_result = await redis.health_check()
            checks["redis"] = health_result.get("status") == "healthy"
        except Exception as e:
            logger.warning("Redis readiness check failed", error=str(e))

    manager = getattr(request.app.state, "manager", None)
    checks["informers"] = manager is not None and manager.synced

    all_ready = all(checks.values())

    return {
        "status": "ready" if all_ready else "not_ready",
        "checks": checks,
    }
