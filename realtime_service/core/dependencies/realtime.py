"""Realtime dependencies for FastAPI route handlers.

Usage:
    from realtime_service.core.dependencies.realtime import RealtimeManagerDep

    @router.get("/stats")
    async def stats(manager: RealtimeManagerDep):
        return manager.get_stats()
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from realtime_service.core.exceptions import ServiceUnavailableException
from realtime_service.infra.realtime import RealtimeManager


def get_realtime_manager(request: Request) -> RealtimeManager | None:
    """Return the manager built by the lifespan, or None if there is none."""
    manager = getattr(request.app.state, "realtime_manager", None)
    if manager is None or manager.destroyed:
        return None
    return manager


async def require_realtime_manager(
    manager: Annotated[RealtimeManager | None, Depends(get_realtime_manager)],
) -> RealtimeManager:
    """Dependency that requires the realtime manager to be available.

    Raises:
        ServiceUnavailableException: 503 if realtime is disabled or not configured.
    """
    if manager is None:
        raise ServiceUnavailableException(
            detail="Realtime manager is not available",
            type="realtime-unavailable",
        )
    return manager


RealtimeManagerDep = Annotated[RealtimeManager, Depends(require_realtime_manager)]
"""Realtime manager dependency that requires it to be available."""

OptionalRealtimeManager = Annotated[RealtimeManager | None, Depends(get_realtime_manager)]
"""Realtime manager dependency that is None when realtime is unavailable."""


__all__ = [
    "OptionalRealtimeManager",
    "RealtimeManagerDep",
    "get_realtime_manager",
    "require_realtime_manager",
]
