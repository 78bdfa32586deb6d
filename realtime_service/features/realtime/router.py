"""Realtime operations router.

Endpoints:
- GET /realtime/stats: Manager counters and stale flag
- GET /realtime/subscriptions: Registered subscriptions
- POST /realtime/subscriptions: Open a monitored subscription
- GET /realtime/subscriptions/{subscription_id}: One subscription
- DELETE /realtime/subscriptions/{subscription_id}: Unsubscribe
- GET /realtime/subscriptions/{subscription_id}/optimistic-updates: Ledger listing
- POST /realtime/subscriptions/{subscription_id}/optimistic-updates: Record an update
- POST .../optimistic-updates/{update_id}/confirm: Confirm an update
- DELETE .../optimistic-updates/{update_id}: Drop an update
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Query, Response, status

# Runtime import so FastAPI can resolve the Annotated[..., Depends(...)] metadata
from realtime_service.core.dependencies.realtime import RealtimeManagerDep  # noqa: TC001
from realtime_service.core.exceptions import NotFoundException, ServiceUnavailableException
from realtime_service.features.realtime.schemas import (
    OptimisticUpdateConfirmed,
    OptimisticUpdateCreate,
    OptimisticUpdateCreated,
    OptimisticUpdateListResponse,
    OptimisticUpdateResponse,
    RealtimeStatsResponse,
    SubscriptionCreate,
    SubscriptionListResponse,
    SubscriptionResponse,
)
from realtime_service.infra.logging import set_log_context
from realtime_service.infra.realtime import (
    ChangeEvent,
    RealtimeManager,
    SubscriptionConfig,
    SubscriptionError,
    SubscriptionHandler,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/realtime", tags=["realtime"])


def _require_subscription(manager: RealtimeManager, subscription_id: str) -> SubscriptionResponse:
    info = manager.get_subscription(subscription_id)
    if info is None:
        raise NotFoundException(
            detail=f"Subscription {subscription_id} not found",
            type="subscription-not-found",
            extra={"subscription_id": subscription_id},
        )
    return SubscriptionResponse.from_info(info)


def _monitoring_handler(subscription_id: str) -> SubscriptionHandler:
    """Handler for API-created subscriptions: events are only logged."""

    def _log_event(event: ChangeEvent) -> None:
        logger.info(
            "Realtime change received",
            extra={
                "subscription_id": subscription_id,
                "event_type": event.event_type.value,
                "table": event.table,
                "commit_timestamp": event.commit_timestamp,
            },
        )

    def _log_error(error: Exception) -> None:
        logger.warning(
            "Monitored subscription reported an error",
            extra={"subscription_id": subscription_id, "error": str(error)},
        )

    return SubscriptionHandler(
        on_insert=_log_event,
        on_update=_log_event,
        on_delete=_log_event,
        on_error=_log_error,
    )


@router.get(
    "/stats",
    response_model=RealtimeStatsResponse,
    summary="Get realtime statistics",
)
async def get_stats(manager: RealtimeManagerDep) -> RealtimeStatsResponse:
    return RealtimeStatsResponse.from_stats(manager.get_stats(), stale=manager.is_stale)


@router.get(
    "/subscriptions",
    response_model=SubscriptionListResponse,
    summary="List subscriptions",
)
async def list_subscriptions(manager: RealtimeManagerDep) -> SubscriptionListResponse:
    subscriptions = [SubscriptionResponse.from_info(info) for info in manager.list_subscriptions()]
    return SubscriptionListResponse(subscriptions=subscriptions, total=len(subscriptions))


@router.post(
    "/subscriptions",
    response_model=SubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={503: {"description": "The transport did not confirm the subscription"}},
    summary="Open a monitored subscription",
    description=(
        "Subscribes to row changes and logs every event. Replaces any "
        "subscription registered under the same id."
    ),
)
async def create_subscription(
    payload: SubscriptionCreate,
    manager: RealtimeManagerDep,
) -> SubscriptionResponse:
    set_log_context(subscription_id=payload.subscription_id)
    config = SubscriptionConfig(
        table=payload.table,
        schema=payload.db_schema or manager.settings.default_schema,
        event=payload.event,
        filter=payload.filter,
    )

    try:
        await manager.subscribe(
            payload.subscription_id,
            config,
            _monitoring_handler(payload.subscription_id),
        )
    except SubscriptionError as e:
        raise ServiceUnavailableException(
            detail=str(e),
            type="subscription-failed",
            extra={"subscription_id": payload.subscription_id, "transport_status": e.status},
        ) from e

    return _require_subscription(manager, payload.subscription_id)


@router.get(
    "/subscriptions/{subscription_id}",
    response_model=SubscriptionResponse,
    responses={404: {"description": "Subscription not found"}},
    summary="Get a subscription",
)
async def get_subscription(subscription_id: str, manager: RealtimeManagerDep) -> SubscriptionResponse:
    return _require_subscription(manager, subscription_id)


@router.delete(
    "/subscriptions/{subscription_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Subscription not found"}},
    summary="Unsubscribe",
)
async def delete_subscription(subscription_id: str, manager: RealtimeManagerDep) -> Response:
    if not manager.unsubscribe(subscription_id):
        raise NotFoundException(
            detail=f"Subscription {subscription_id} not found",
            type="subscription-not-found",
            extra={"subscription_id": subscription_id},
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/subscriptions/{subscription_id}/optimistic-updates",
    response_model=OptimisticUpdateListResponse,
    responses={404: {"description": "Subscription not found"}},
    summary="List optimistic updates",
)
async def list_optimistic_updates(
    subscription_id: str,
    manager: RealtimeManagerDep,
    pending_only: Annotated[
        bool, Query(description="Only return updates not yet confirmed"),
    ] = False,
) -> OptimisticUpdateListResponse:
    _require_subscription(manager, subscription_id)
    updates = (
        manager.get_pending_optimistic_updates(subscription_id)
        if pending_only
        else manager.get_optimistic_updates(subscription_id)
    )
    return OptimisticUpdateListResponse(
        updates=[OptimisticUpdateResponse.from_update(u) for u in updates],
        total=len(updates),
    )


@router.post(
    "/subscriptions/{subscription_id}/optimistic-updates",
    response_model=OptimisticUpdateCreated,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Subscription not found"}},
    summary="Record an optimistic update",
)
async def add_optimistic_update(
    subscription_id: str,
    payload: OptimisticUpdateCreate,
    manager: RealtimeManagerDep,
) -> OptimisticUpdateCreated:
    _require_subscription(manager, subscription_id)
    update_id = manager.add_optimistic_update(
        subscription_id,
        payload.type,
        payload.data,
        payload.update_id,
    )
    logger.info(
        "Optimistic update recorded",
        extra={
            "subscription_id": subscription_id,
            "update_id": update_id,
            "update_type": payload.type.value,
        },
    )
    return OptimisticUpdateCreated(update_id=update_id)


@router.post(
    "/subscriptions/{subscription_id}/optimistic-updates/{update_id}/confirm",
    response_model=OptimisticUpdateConfirmed,
    responses={404: {"description": "Optimistic update not found"}},
    summary="Confirm an optimistic update",
)
async def confirm_optimistic_update(
    subscription_id: str,
    update_id: str,
    manager: RealtimeManagerDep,
) -> OptimisticUpdateConfirmed:
    if not manager.confirm_optimistic_update(subscription_id, update_id):
        raise NotFoundException(
            detail=f"Optimistic update {update_id} not found",
            type="optimistic-update-not-found",
            extra={"subscription_id": subscription_id, "update_id": update_id},
        )
    return OptimisticUpdateConfirmed(update_id=update_id)


@router.delete(
    "/subscriptions/{subscription_id}/optimistic-updates/{update_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Optimistic update not found"}},
    summary="Drop an optimistic update",
)
async def remove_optimistic_update(
    subscription_id: str,
    update_id: str,
    manager: RealtimeManagerDep,
) -> Response:
    if not manager.remove_optimistic_update(subscription_id, update_id):
        raise NotFoundException(
            detail=f"Optimistic update {update_id} not found",
            type="optimistic-update-not-found",
            extra={"subscription_id": subscription_id, "update_id": update_id},
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
