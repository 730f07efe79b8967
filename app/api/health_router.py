"""
Health check endpoints for monitoring and orchestration.

Provides:
- Liveness probe: Is the app running?
- Readiness probe: Can the app serve traffic?
- Detailed health check: Status of all dependencies
"""

import time
from typing import Any

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.config import settings

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Health"])


async def check_database(request: Request) -> dict[str, Any]:
    start = time.perf_counter()
    try:
        async with request.app.state.db.session() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("health_check_failed", dependency="database", error=str(e))
        return {"status": "unhealthy", "error": str(e)}
    return {"status": "healthy", "response_time_ms": round((time.perf_counter() - start) * 1000, 2)}


async def check_redis(request: Request) -> dict[str, Any]:
    cache = getattr(request.app.state, "redis", None)
    if cache is None or not cache.available:
        return {"status": "unavailable"}

    start = time.perf_counter()
    try:
        await cache.client.ping()
    except Exception as e:
        logger.warning("health_check_failed", dependency="redis", error=str(e))
        return {"status": "unhealthy", "error": str(e)}
    return {"status": "healthy", "response_time_ms": round((time.perf_counter() - start) * 1000, 2)}


@router.get("/health/live")
async def liveness() -> dict:
    """
    Liveness probe.

    Returns:
        200: Application is running
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(request: Request) -> JSONResponse:
    """
    Readiness probe.

    Only the database gates readiness: Redis backs rate limiting and the
    plan cache, both of which degrade gracefully.

    Returns:
        200: Ready to serve traffic
        503: Not ready (database unavailable)
    """
    checks = {
        "database": await check_database(request),
        "redis": await check_redis(request),
    }
    is_ready = checks["database"]["status"] == "healthy"

    return JSONResponse(
        status_code=status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if is_ready else "not_ready",
            "checks": checks,
        },
    )


@router.get("/health")
async def health(request: Request) -> dict:
    """
    Detailed health check with dependency status.

    Reports "degraded" when any dependency is unhealthy.
    """
    cache = request.app.state.orgname_cache
    checks: dict[str, Any] = {
        "database": await check_database(request),
        "redis": await check_redis(request),
        "orgname_cache": {
            "status": "healthy" if cache.running else "stopped",
            "entries": len(cache),
        },
    }

    overall_status = "healthy"
    if any(check["status"] == "unhealthy" for check in checks.values()):
        overall_status = "degraded"

    return {
        "status": overall_status,
        "version": settings.app_version,
        "environment": settings.environment,
        "payment_gateway": request.app.state.payment_gateway.name,
        "checks": checks,
    }
