"""Realtime subscription management over Supabase Realtime."""

from __future__ import annotations

from .exceptions import (
    RealtimeConfigurationError,
    RealtimeError,
    SubscriptionClosedError,
    SubscriptionError,
    SubscriptionSupersededError,
    SubscriptionTimeoutError,
)
from .helpers import (
    create_optimistic_update_with_rollback,
    create_project_subscription,
    create_user_subscription,
)
from .manager import RealtimeManager, create_realtime_manager
from .transport import ChannelFactory, ChannelHandle, ChannelStatus
from .types import (
    ChangeEvent,
    ChangeEventType,
    EventFilter,
    OptimisticUpdate,
    RealtimeStats,
    SubscriptionConfig,
    SubscriptionHandler,
    SubscriptionInfo,
    SubscriptionState,
)

__all__ = [
    "ChangeEvent",
    "ChangeEventType",
    "ChannelFactory",
    "ChannelHandle",
    "ChannelStatus",
    "EventFilter",
    "OptimisticUpdate",
    "RealtimeConfigurationError",
    "RealtimeError",
    "RealtimeManager",
    "RealtimeStats",
    "SubscriptionClosedError",
    "SubscriptionConfig",
    "SubscriptionError",
    "SubscriptionHandler",
    "SubscriptionInfo",
    "SubscriptionState",
    "SubscriptionSupersededError",
    "SubscriptionTimeoutError",
    "create_optimistic_update_with_rollback",
    "create_project_subscription",
    "create_realtime_manager",
    "create_user_subscription",
]
