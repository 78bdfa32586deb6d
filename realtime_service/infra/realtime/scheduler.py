"""Timer scheduling for the realtime manager.

All delayed work the manager does (optimistic update expiry, reconnect
backoff, heartbeat, rollback checks) goes through a single
:class:`TimerRegistry`. Timers are keyed by tuples such as
``("optimistic", subscription_id, update_id)`` so they can be cancelled one
by one, per subscription, or all at once on shutdown.

The registry sits on top of a :class:`Scheduler`, which is the event loop in
production and a virtual clock in tests.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable

logger = logging.getLogger(__name__)

TimerKey = tuple["Hashable", ...]


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock plus delayed-call primitive."""

    def time(self) -> float:
        """Current wall-clock time in seconds."""
        ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Cancellable:
        """Run ``callback(*args)`` after ``delay`` seconds."""
        ...


class LoopScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def time(self) -> float:
        return time.time()

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> asyncio.TimerHandle:
        return self._loop.call_later(delay, callback, *args)


class TimerRegistry:
    """Arena of pending timeouts keyed by tuple.

    Scheduling under an existing key replaces the earlier timer. A timer is
    forgotten as soon as it fires or is cancelled, so ``cancel`` on a fired
    key is a no-op.
    """

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._timers: dict[TimerKey, Cancellable] = {}

    def schedule(self, key: TimerKey, delay: float, callback: Callable[[], Any]) -> None:
        self.cancel(key)
        self._timers[key] = self._scheduler.call_later(delay, self._fire, key, callback)

    def cancel(self, key: TimerKey) -> bool:
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_prefix(self, prefix: TimerKey) -> int:
        """Cancel every timer whose key starts with ``prefix``."""
        size = len(prefix)
        keys = [key for key in self._timers if key[:size] == prefix]
        for key in keys:
            self.cancel(key)
        return len(keys)

    def cancel_all(self) -> int:
        count = len(self._timers)
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        return count

    def is_scheduled(self, key: TimerKey) -> bool:
        return key in self._timers

    def __len__(self) -> int:
        return len(self._timers)

    def _fire(self, key: TimerKey, callback: Callable[[], Any]) -> None:
        self._timers.pop(key, None)
        try:
            callback()
        except Exception:
            logger.exception("Timer callback failed", extra={"timer": repr(key)})
