"""Request and response schemas for the realtime operations API."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from realtime_service.infra.realtime.types import (
    ChangeEventType,
    EventFilter,
    SubscriptionState,
)

if TYPE_CHECKING:
    from realtime_service.infra.realtime.types import (
        OptimisticUpdate,
        RealtimeStats,
        SubscriptionInfo,
    )


def _to_datetime(epoch: float) -> datetime:
    return datetime.fromtimestamp(epoch, tz=UTC)


class RealtimeStatsResponse(BaseModel):
    """Process-wide realtime counters."""

    active_subscriptions: int = Field(..., ge=0)
    total_messages: int = Field(..., ge=0)
    reconnections: int = Field(..., ge=0)
    errors: int = Field(..., ge=0)
    last_activity: datetime = Field(..., description="Time of the last received change event")
    stale: bool = Field(..., description="No activity within the stale threshold")

    @classmethod
    def from_stats(cls, stats: RealtimeStats, *, stale: bool) -> RealtimeStatsResponse:
        return cls(
            active_subscriptions=stats.active_subscriptions,
            total_messages=stats.total_messages,
            reconnections=stats.reconnections,
            errors=stats.errors,
            last_activity=_to_datetime(stats.last_activity),
            stale=stale,
        )


class SubscriptionCreate(BaseModel):
    """Request to open a monitored subscription."""

    subscription_id: str = Field(
        ...,
        min_length=1,
        max_length=200,
        pattern=r"^[A-Za-z0-9_.:-]+$",
        description="Caller-chosen subscription id",
    )
    table: str = Field(..., min_length=1, max_length=100, description="Table to listen to")
    db_schema: str | None = Field(
        default=None,
        alias="schema",
        max_length=100,
        description="Database schema (defaults to the configured schema)",
    )
    event: EventFilter = Field(default=EventFilter.ALL, description="Event filter")
    filter: str | None = Field(
        default=None,
        max_length=500,
        description="Row filter expression, e.g. user_id=eq.42",
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "subscription_id": "user_42_orders",
                "table": "orders",
                "schema": "public",
                "event": "*",
                "filter": "user_id=eq.42",
            }
        },
    )


class SubscriptionResponse(BaseModel):
    """Summary of a registered subscription."""

    subscription_id: str
    table: str
    db_schema: str = Field(..., alias="schema")
    event: EventFilter
    filter: str | None = None
    state: SubscriptionState
    active: bool
    reconnect_attempts: int = Field(..., ge=0)
    pending_updates: int = Field(..., ge=0)
    created_at: datetime

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_info(cls, info: SubscriptionInfo) -> SubscriptionResponse:
        return cls(
            subscription_id=info.subscription_id,
            table=info.config.table,
            db_schema=info.config.schema,
            event=info.config.event,
            filter=info.config.filter,
            state=info.state,
            active=info.active,
            reconnect_attempts=info.reconnect_attempts,
            pending_updates=info.pending_updates,
            created_at=_to_datetime(info.created_at),
        )


class SubscriptionListResponse(BaseModel):
    subscriptions: list[SubscriptionResponse] = Field(default_factory=list)
    total: int = Field(..., ge=0)


class OptimisticUpdateCreate(BaseModel):
    """Request to record an optimistic update."""

    type: ChangeEventType = Field(..., description="Mutation kind")
    data: dict[str, Any] = Field(..., description="Row data; must carry the identity field")
    update_id: str | None = Field(
        default=None,
        min_length=1,
        max_length=200,
        description="Caller-supplied id; generated when omitted",
    )


class OptimisticUpdateCreated(BaseModel):
    update_id: str


class OptimisticUpdateResponse(BaseModel):
    """A ledger entry."""

    id: str
    type: ChangeEventType
    data: Any
    timestamp: datetime
    confirmed: bool

    @classmethod
    def from_update(cls, update: OptimisticUpdate) -> OptimisticUpdateResponse:
        return cls(
            id=update.id,
            type=update.type,
            data=update.data,
            timestamp=_to_datetime(update.timestamp),
            confirmed=update.confirmed,
        )


class OptimisticUpdateListResponse(BaseModel):
    updates: list[OptimisticUpdateResponse] = Field(default_factory=list)
    total: int = Field(..., ge=0)


class OptimisticUpdateConfirmed(BaseModel):
    update_id: str
    confirmed: bool = True
