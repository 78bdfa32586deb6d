"""Subscription registry: subscription id to config, handler and channel."""

from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import TYPE_CHECKING

from realtime_service.infra.realtime.types import SubscriptionState

if TYPE_CHECKING:
    import asyncio

    from realtime_service.infra.realtime.transport import ChannelHandle
    from realtime_service.infra.realtime.types import SubscriptionConfig, SubscriptionHandler


@dataclass(eq=False)
class SubscriptionEntry:
    """Everything the manager keeps for one subscription id.

    Entries compare by identity: a channel callback holding an entry that is
    no longer the registered one belongs to a superseded subscription.
    """

    subscription_id: str
    config: SubscriptionConfig
    handler: SubscriptionHandler
    state: SubscriptionState = SubscriptionState.SUBSCRIBING
    channel: ChannelHandle | None = None
    waiter: asyncio.Future[bool] | None = None
    created_at: float = field(default_factory=time.time)

    @property
    def is_live(self) -> bool:
        return self.state is SubscriptionState.LIVE


class SubscriptionRegistry:
    """Insertion-ordered map of subscription entries."""

    def __init__(self) -> None:
        self._entries: dict[str, SubscriptionEntry] = {}

    def add(self, entry: SubscriptionEntry) -> None:
        self._entries[entry.subscription_id] = entry

    def get(self, subscription_id: str) -> SubscriptionEntry | None:
        return self._entries.get(subscription_id)

    def pop(self, subscription_id: str) -> SubscriptionEntry | None:
        return self._entries.pop(subscription_id, None)

    def is_current(self, entry: SubscriptionEntry) -> bool:
        return self._entries.get(entry.subscription_id) is entry

    def ids(self) -> list[str]:
        return list(self._entries)

    def live_ids(self) -> list[str]:
        return [sid for sid, entry in self._entries.items() if entry.is_live]

    def entries(self) -> list[SubscriptionEntry]:
        return list(self._entries.values())

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, subscription_id: object) -> bool:
        return subscription_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
