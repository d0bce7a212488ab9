"""Health check endpoints router for monitoring service availability."""

from typing import Any

from fastapi import APIRouter, Depends, status
from starlette.concurrency import run_in_threadpool
from starlette.responses import JSONResponse

from books_api.api.http.app_data import ApplicationDependencies
from books_api.api.http.deps import get_app_dependencies

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health() -> dict[str, str]:
    """Liveness probe: 200 as long as the process is serving requests."""
    return {"status": "healthy", "service": "books-api"}


@router.get("/ready", response_model=None)
async def readiness(
    app_deps: ApplicationDependencies = Depends(get_app_dependencies),
) -> dict[str, Any] | JSONResponse:
    """Readiness probe.

    Only the database is critical. The cache falls back to the store and
    events are best-effort, so either being down is reported as degraded
    without failing the probe.
    """
    checks: dict[str, dict[str, Any]] = {}

    db_healthy = await run_in_threadpool(app_deps.database_service.health_check)
    checks["database"] = {"status": "healthy" if db_healthy else "unhealthy"}

    cache = app_deps.cache_storage
    if cache.backend == "redis":
        cache_healthy = await app_deps.redis_service.health_check()
    else:
        cache_healthy = cache.is_available()
    checks["cache"] = {
        "status": "healthy" if cache_healthy else "degraded",
        "type": cache.backend,
    }

    notifier = app_deps.notifier
    notifier_healthy = await notifier.health_check()
    checks["notifier"] = {
        "status": "healthy" if notifier_healthy else "degraded",
        "type": notifier.backend,
    }

    body = {"status": "ready" if db_healthy else "not_ready", "checks": checks}
    if not db_healthy:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body
