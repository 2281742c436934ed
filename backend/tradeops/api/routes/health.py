from fastapi import APIRouter

from tradeops.config import settings
from tradeops.core.observability import uptime_seconds, utc_now_iso

router = APIRouter(tags=["health"])


@router.get("/health", summary="Healthcheck")
@router.get("/healthz", include_in_schema=False)
def healthcheck():
    """Liveness probe; keep the payload stable for monitoring systems."""
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.environment,
        "time": utc_now_iso(),
        "uptime_seconds": round(uptime_seconds(), 2),
        "version": getattr(settings, "build_version", None),
    }
