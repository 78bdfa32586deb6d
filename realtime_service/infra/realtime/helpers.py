"""Convenience wrappers around :class:`RealtimeManager`."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from realtime_service.infra.metrics import tracking
from realtime_service.infra.realtime.types import SubscriptionConfig, SubscriptionHandler

if TYPE_CHECKING:
    from collections.abc import Callable

    from realtime_service.infra.realtime.manager import RealtimeManager
    from realtime_service.infra.realtime.types import ChangeEventType

logger = logging.getLogger(__name__)


def user_subscription_id(user_id: str | int, table: str) -> str:
    return f"user_{user_id}_{table}"


def project_subscription_id(project_id: str | int, table: str) -> str:
    return f"project_{project_id}_{table}"


async def create_user_subscription(
    manager: RealtimeManager,
    user_id: str | int,
    table: str,
    handler: SubscriptionHandler | None = None,
) -> str:
    """Subscribe to the rows of ``table`` owned by one user.

    Returns:
        The subscription id, ``user_<user_id>_<table>``.
    """
    subscription_id = user_subscription_id(user_id, table)
    await manager.subscribe(
        subscription_id,
        SubscriptionConfig(
            table=table,
            schema=manager.settings.default_schema,
            filter=f"user_id=eq.{user_id}",
        ),
        handler or SubscriptionHandler(),
    )
    return subscription_id


async def create_project_subscription(
    manager: RealtimeManager,
    project_id: str | int,
    table: str,
    handler: SubscriptionHandler | None = None,
) -> str:
    """Subscribe to the rows of ``table`` belonging to one project.

    Returns:
        The subscription id, ``project_<project_id>_<table>``.
    """
    subscription_id = project_subscription_id(project_id, table)
    await manager.subscribe(
        subscription_id,
        SubscriptionConfig(
            table=table,
            schema=manager.settings.default_schema,
            filter=f"project_id=eq.{project_id}",
        ),
        handler or SubscriptionHandler(),
    )
    return subscription_id


def create_optimistic_update_with_rollback(
    manager: RealtimeManager,
    subscription_id: str,
    update_type: ChangeEventType | str,
    data: Any,
    rollback: Callable[[], Any],
    timeout: float | None = None,
) -> str:
    """Add an optimistic update that is undone if not confirmed in time.

    After ``timeout`` seconds (``manager.settings.rollback_timeout`` when
    omitted) the update is looked up; if it is still pending it is removed
    from the ledger and ``rollback`` is called. The check is cancelled when
    the subscription is removed or the manager is destroyed.

    Returns:
        The update id.
    """
    if timeout is None:
        timeout = manager.settings.rollback_timeout
    update_id = manager.add_optimistic_update(subscription_id, update_type, data)

    def _check() -> None:
        pending = manager.get_pending_optimistic_updates(subscription_id)
        if not any(update.id == update_id for update in pending):
            return

        manager.remove_optimistic_update(subscription_id, update_id)
        tracking.track_optimistic_update("rolled_back")
        logger.warning(
            "Optimistic update not confirmed, rolling back",
            extra={
                "subscription_id": subscription_id,
                "update_id": update_id,
                "timeout": timeout,
            },
        )
        rollback()

    manager.timers.schedule(("rollback", subscription_id, update_id), timeout, _check)
    return update_id
