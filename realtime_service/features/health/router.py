"""Health check endpoint.

``/health`` reports ``healthy`` when the realtime manager is running and has
seen activity within the stale threshold, ``degraded`` otherwise. It always
answers 200 so the process is not restarted for an upstream outage.
"""

from __future__ import annotations

from datetime import UTC, datetime
import time

from fastapi import APIRouter, Request

# Runtime import so FastAPI can resolve the Annotated[..., Depends(...)] metadata
from realtime_service.core.dependencies.realtime import OptionalRealtimeManager  # noqa: TC001
from realtime_service.core.settings import get_app_settings
from realtime_service.features.health.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health",
)
async def health_check(request: Request, manager: OptionalRealtimeManager) -> HealthResponse:
    settings = get_app_settings()
    started_at = getattr(request.app.state, "started_at", None) or time.time()

    realtime_up = manager is not None
    realtime_fresh = realtime_up and not manager.is_stale
    checks = {"realtime": realtime_up, "realtime_fresh": realtime_fresh}

    return HealthResponse(
        status="healthy" if all(checks.values()) else "degraded",
        timestamp=datetime.now(UTC),
        service=settings.service_name,
        version=settings.version,
        environment=settings.environment,
        uptime_seconds=max(0.0, time.time() - started_at),
        checks=checks,
    )
