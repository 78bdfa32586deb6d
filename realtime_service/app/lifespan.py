"""Application lifespan management.

Startup Order:
1. Core (logging, metrics) - always runs first
2. Realtime manager - conditional on configuration

Shutdown Order: Reverse of startup.

The realtime manager is stored on ``app.state.realtime_manager`` (None when
realtime is disabled or Supabase credentials are missing) and handed to
route handlers through ``RealtimeManagerDep``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time
from typing import TYPE_CHECKING

from realtime_service.core.settings import (
    get_app_settings,
    get_logging_settings,
    get_realtime_settings,
    get_supabase_settings,
)
from realtime_service.infra.logging.config import setup_logging
from realtime_service.infra.metrics import tracking

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


# =============================================================================
# Startup functions
# =============================================================================


async def _startup_core(app: FastAPI) -> None:
    """Initialize core services: logging and metrics."""
    settings = get_app_settings()

    setup_logging(log_settings=get_logging_settings(), force=True)
    logger.info(
        "Application starting",
        extra={"service": settings.service_name, "environment": settings.environment},
    )

    tracking.set_application_info(
        version=settings.version,
        service=settings.service_name,
        environment=settings.environment,
    )
    app.state.started_at = time.time()
    logger.info("Application metrics initialized", extra={"metrics_endpoint": "/metrics"})


async def _startup_realtime(app: FastAPI) -> None:
    """Build the realtime manager when enabled and configured."""
    from realtime_service.infra.realtime import RealtimeError, create_realtime_manager

    realtime = get_realtime_settings()
    supabase = get_supabase_settings()

    app.state.realtime_manager = None

    if not realtime.enabled:
        logger.info("Realtime disabled by configuration")
        return
    if not supabase.is_configured:
        logger.warning(
            "Supabase credentials missing, realtime features disabled",
            extra={"required": ["NEXT_PUBLIC_SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_ANON_KEY"]},
        )
        return

    try:
        app.state.realtime_manager = await create_realtime_manager(supabase, realtime)
    except (RealtimeError, OSError) as e:
        logger.warning(
            "Failed to start realtime manager, realtime features disabled",
            extra={"error": str(e)},
        )


# =============================================================================
# Shutdown functions
# =============================================================================


async def _shutdown_realtime(app: FastAPI) -> None:
    manager = getattr(app.state, "realtime_manager", None)
    if manager is None:
        return

    stats = manager.get_stats()
    await manager.aclose()
    app.state.realtime_manager = None
    logger.info(
        "Realtime manager stopped",
        extra={
            "total_messages": stats.total_messages,
            "reconnections": stats.reconnections,
            "errors": stats.errors,
        },
    )


# =============================================================================
# Main lifespan context manager
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    # 1. Core services (logging, metrics)
    await _startup_core(app)

    # 2. Realtime manager
    await _startup_realtime(app)

    settings = get_app_settings()
    logger.info(
        "Application startup complete - listening on %s:%s",
        settings.host,
        settings.port,
        extra={
            "service": settings.service_name,
            "environment": settings.environment,
            "version": settings.version,
            "realtime_enabled": app.state.realtime_manager is not None,
        },
    )

    yield

    logger.info("Application shutting down", extra={"service": settings.service_name})

    # 2. Realtime manager
    await _shutdown_realtime(app)

    logger.info("Application shutdown complete", extra={"service": settings.service_name})
