"""Router registry and setup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from realtime_service.core.settings import get_app_settings
from realtime_service.features.health.router import router as health_router
from realtime_service.features.metrics.router import router as metrics_router
from realtime_service.features.realtime.router import router as realtime_router

if TYPE_CHECKING:
    from fastapi import FastAPI

    from realtime_service.core.settings.app import AppSettings

logger = logging.getLogger(__name__)


def setup_routers(app: FastAPI, app_settings: AppSettings | None = None) -> None:
    """Register all feature routers with the application.

    Args:
        app: FastAPI application instance.
        app_settings: Optional application settings override for the API prefix.
    """
    app_settings = app_settings or get_app_settings()
    api_prefix = app_settings.api_prefix

    # Operational endpoints (no prefix - accessible at /metrics and /health)
    app.include_router(metrics_router, tags=["observability"])
    app.include_router(health_router, tags=["health"])

    # Feature routers
    app.include_router(realtime_router, prefix=api_prefix, tags=["realtime"])

    logger.debug("Routers registered", extra={"api_prefix": api_prefix})
