"""Heartbeat that flags the realtime connection as stale."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from realtime_service.infra.metrics import tracking

if TYPE_CHECKING:
    from collections.abc import Callable

    from realtime_service.infra.realtime.scheduler import TimerRegistry

logger = logging.getLogger(__name__)

_HEARTBEAT_KEY = ("heartbeat",)


class HealthMonitor:
    """Recurring check of the time since the last observed event.

    When no activity was seen for longer than ``stale_after`` seconds the
    monitor logs a warning, marks itself stale and runs ``probe``. The probe
    is advisory; nothing is reconnected from here.
    """

    def __init__(
        self,
        timers: TimerRegistry,
        clock: Callable[[], float],
        last_activity: Callable[[], float],
        probe: Callable[[], None],
        interval: float = 30.0,
        stale_after: float = 120.0,
    ) -> None:
        self._timers = timers
        self._clock = clock
        self._last_activity = last_activity
        self._probe = probe
        self.interval = interval
        self.stale_after = stale_after
        self._stale = False
        self._running = False

    @property
    def is_stale(self) -> bool:
        return self._stale

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running or self.interval <= 0:
            return
        self._running = True
        self._arm()
        logger.debug(
            "Realtime heartbeat started",
            extra={"interval": self.interval, "stale_after": self.stale_after},
        )

    def stop(self) -> None:
        self._running = False
        self._timers.cancel(_HEARTBEAT_KEY)

    def mark_activity(self) -> None:
        if self._stale:
            self._stale = False
            tracking.set_realtime_stale(False)
            logger.info("Realtime activity resumed")

    def check(self) -> bool:
        """Run one staleness check and return whether the connection is stale."""
        idle = self._clock() - self._last_activity()
        if idle <= self.stale_after:
            return False

        if not self._stale:
            self._stale = True
            tracking.set_realtime_stale(True)
        logger.warning(
            "Realtime connection appears stale, checking subscriptions",
            extra={"idle_seconds": round(idle, 3), "stale_after": self.stale_after},
        )
        self._probe()
        return True

    def _tick(self) -> None:
        if not self._running:
            return
        try:
            self.check()
        finally:
            self._arm()

    def _arm(self) -> None:
        self._timers.schedule(_HEARTBEAT_KEY, self.interval, self._tick)
