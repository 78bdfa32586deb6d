"""Optimistic update ledger.

Tracks local mutations that were applied before the backend confirmed them.
Each entry expires a fixed time after it was added; callers treat an entry
that disappears while still unconfirmed as "never took effect" and roll back
their local state.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from realtime_service.infra.metrics import tracking
from realtime_service.infra.realtime.types import ChangeEventType, OptimisticUpdate

if TYPE_CHECKING:
    from collections.abc import Callable

    from realtime_service.infra.realtime.scheduler import TimerRegistry

logger = logging.getLogger(__name__)

DEFAULT_UPDATE_TIMEOUT = 10.0


def generate_update_id(now: float) -> str:
    """Timestamp plus random suffix.

    Unique enough for same-millisecond calls in practice; callers that need
    strict uniqueness pass their own id.
    """
    return f"optimistic_{int(now * 1000)}_{uuid4().hex[:12]}"


class OptimisticUpdateLedger:
    """Per-subscription lists of optimistic updates, in insertion order."""

    def __init__(
        self,
        timers: TimerRegistry,
        clock: Callable[[], float],
        timeout: float = DEFAULT_UPDATE_TIMEOUT,
    ) -> None:
        self._timers = timers
        self._clock = clock
        self._timeout = timeout
        self._updates: dict[str, list[OptimisticUpdate]] = {}

    @property
    def timeout(self) -> float:
        return self._timeout

    def add(
        self,
        subscription_id: str,
        update_type: ChangeEventType | str,
        data: Any,
        update_id: str | None = None,
    ) -> str:
        now = self._clock()
        update = OptimisticUpdate(
            id=update_id or generate_update_id(now),
            type=(
                update_type
                if isinstance(update_type, ChangeEventType)
                else ChangeEventType(update_type.upper())
            ),
            data=data,
            timestamp=now,
        )

        updates = self._updates.setdefault(subscription_id, [])
        if update_id is not None and self._find(updates, update_id) is not None:
            logger.debug(
                "Replacing optimistic update with duplicate id",
                extra={"subscription_id": subscription_id, "update_id": update_id},
            )
            self.remove(subscription_id, update_id)
            updates = self._updates.setdefault(subscription_id, [])
        updates.append(update)

        self._timers.schedule(
            self._timer_key(subscription_id, update.id),
            self._timeout,
            lambda: self._expire(subscription_id, update.id),
        )
        tracking.track_optimistic_update("added")
        return update.id

    def confirm(self, subscription_id: str, update_id: str) -> bool:
        update = self._find(self._updates.get(subscription_id, []), update_id)
        if update is None:
            return False
        if not update.confirmed:
            update.confirmed = True
            tracking.track_optimistic_update("confirmed")
        return True

    def remove(self, subscription_id: str, update_id: str) -> bool:
        updates = self._updates.get(subscription_id)
        if not updates:
            return False
        for index, update in enumerate(updates):
            if update.id == update_id:
                del updates[index]
                break
        else:
            return False

        if not updates:
            del self._updates[subscription_id]
        self._timers.cancel(self._timer_key(subscription_id, update_id))
        return True

    def get(self, subscription_id: str) -> list[OptimisticUpdate]:
        return list(self._updates.get(subscription_id, ()))

    def pending(self, subscription_id: str) -> list[OptimisticUpdate]:
        return [u for u in self._updates.get(subscription_id, ()) if not u.confirmed]

    def find(self, subscription_id: str, update_id: str) -> OptimisticUpdate | None:
        return self._find(self._updates.get(subscription_id, []), update_id)

    def clear(self, subscription_id: str) -> int:
        """Drop a subscription's entries and their expiry timers."""
        updates = self._updates.pop(subscription_id, [])
        self._timers.cancel_prefix(("optimistic", subscription_id))
        return len(updates)

    def clear_all(self) -> None:
        self._updates.clear()
        self._timers.cancel_prefix(("optimistic",))

    def __len__(self) -> int:
        return sum(len(updates) for updates in self._updates.values())

    def _expire(self, subscription_id: str, update_id: str) -> None:
        update = self.find(subscription_id, update_id)
        if update is None:
            return
        self.remove(subscription_id, update_id)

        if update.confirmed:
            tracking.track_optimistic_update("aged_out")
            return

        tracking.track_optimistic_update("expired")
        logger.debug(
            "Optimistic update expired unconfirmed",
            extra={
                "subscription_id": subscription_id,
                "update_id": update_id,
                "update_type": update.type.value,
                "age_seconds": self._clock() - update.timestamp,
            },
        )

    @staticmethod
    def _find(updates: list[OptimisticUpdate], update_id: str) -> OptimisticUpdate | None:
        return next((u for u in updates if u.id == update_id), None)

    @staticmethod
    def _timer_key(subscription_id: str, update_id: str) -> tuple[str, str, str]:
        return ("optimistic", subscription_id, update_id)
