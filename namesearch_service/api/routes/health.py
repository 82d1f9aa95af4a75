"""
Health check route
"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ...config import Settings, get_settings
from ...domain.models import RateLimitResult
from ...schemas import HealthResponse, ServiceStatus
from ..dependencies import rate_limit


router = APIRouter(prefix="/api", tags=["Health"])

SERVICE_NAMES = {
    "whatsmyname": "WhatsMyName API",
    "google": "Google Custom Search",
    "openrouter": "OpenRouter AI",
}


def overall_status(services: dict) -> str:
    """healthy when every service is available, unhealthy when none is"""
    available = sum(1 for service in services.values() if service.status == "available")
    if available == len(services):
        return "healthy"
    if available == 0:
        return "unhealthy"
    return "degraded"


@router.get(
    "/health",
    responses={
        200: {"model": HealthResponse},
        503: {"model": HealthResponse, "description": "No upstream service is configured"},
    },
)
async def health_check(
    limit: RateLimitResult = Depends(rate_limit("health")),
    settings: Settings = Depends(get_settings),
):
    """Report which upstream services are configured"""
    services = {}
    for key, name in SERVICE_NAMES.items():
        configured = settings.service_configured(key)
        services[key] = ServiceStatus(
            name=name,
            status="available" if configured else "unavailable",
            configured=configured,
            model=settings.OPENROUTER_MODEL if key == "openrouter" else None,
        )

    health = HealthResponse(
        status=overall_status(services),
        timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        services=services,
    )
    return JSONResponse(
        status_code=(
            status.HTTP_503_SERVICE_UNAVAILABLE
            if health.status == "unhealthy"
            else status.HTTP_200_OK
        ),
        content=health.model_dump(exclude_none=True),
        headers=limit.headers(),
    )
