"""Health check endpoints."""

from fastapi import APIRouter, Request, Response, status

from coursehub.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])

REQUIRED_SERVICES = (
    "entitlement_service",
    "enrollment_service",
    "progress_service",
    "analytics_service",
)


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness check: whether the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request, response: Response) -> dict[str, str | bool]:
    """Readiness check: 503 until every engine service is wired up."""
    settings = get_settings()
    ready = all(
        getattr(request.app.state, name, None) is not None for name in REQUIRED_SERVICES
    )
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "ready" if ready else "not_ready",
        "storage_backend": settings.storage_backend,
        "environment": settings.environment,
        "debug": settings.debug,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
