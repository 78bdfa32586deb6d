"""Realtime subscription manager with optimistic update reconciliation.

This module provides a manager that:
- Multiplexes named, filtered change subscriptions over one transport client
- Tracks optimistic updates and confirms them from inbound change events
- Reopens failed channels with exponential backoff (1s, 2s, 4s, 8s, 16s)
- Runs a heartbeat that flags the connection as stale after a quiet period
- Keeps process-wide counters for observability

Events flow one way: transport -> registry -> reconciliation -> user hooks.
All state is owned by the event loop; nothing here needs a lock.
"""

from __future__ import annotations

import asyncio
import dataclasses
import functools
import inspect
import logging
from typing import TYPE_CHECKING, Any

from realtime_service.core.settings import get_realtime_settings, get_supabase_settings
from realtime_service.infra.metrics import tracking
from realtime_service.infra.realtime.exceptions import (
    RealtimeConfigurationError,
    RealtimeError,
    SubscriptionClosedError,
    SubscriptionError,
    SubscriptionSupersededError,
    SubscriptionTimeoutError,
)
from realtime_service.infra.realtime.health import HealthMonitor
from realtime_service.infra.realtime.ledger import OptimisticUpdateLedger
from realtime_service.infra.realtime.reconciliation import ReconciliationEngine
from realtime_service.infra.realtime.reconnect import ReconnectController
from realtime_service.infra.realtime.registry import SubscriptionEntry, SubscriptionRegistry
from realtime_service.infra.realtime.scheduler import LoopScheduler, TimerRegistry
from realtime_service.infra.realtime.transport import ChannelStatus
from realtime_service.infra.realtime.types import (
    RealtimeStats,
    SubscriptionHandler,
    SubscriptionInfo,
    SubscriptionState,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Coroutine

    from realtime_service.core.settings.realtime import RealtimeSettings
    from realtime_service.core.settings.supabase import SupabaseSettings
    from realtime_service.infra.realtime.scheduler import Scheduler
    from realtime_service.infra.realtime.transport import ChannelFactory, ChannelHandle
    from realtime_service.infra.realtime.types import (
        ChangeEvent,
        ChangeEventType,
        OptimisticUpdate,
        SubscriptionConfig,
    )

logger = logging.getLogger(__name__)


@dataclasses.dataclass(eq=False)
class _Generation:
    """Identifies one channel opened for an entry.

    Callbacks from a channel that failed, closed or was replaced carry an
    outdated generation and are dropped.
    """

    entry: SubscriptionEntry
    number: int


class RealtimeManager:
    """Coordinates realtime subscriptions against a single channel factory.

    Must be constructed inside a running event loop: the heartbeat starts
    immediately.

    Example:
        factory = await SupabaseChannelFactory.connect(url, key)
        manager = RealtimeManager(factory)

        await manager.subscribe(
            "user_42_orders",
            SubscriptionConfig(table="orders", filter="user_id=eq.42"),
            SubscriptionHandler(on_insert=handle_insert),
        )
        update_id = manager.add_optimistic_update("user_42_orders", "INSERT", {"id": "o1"})
        ...
        manager.destroy()
    """

    def __init__(
        self,
        channel_factory: ChannelFactory,
        settings: RealtimeSettings | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            channel_factory: Transport adapter used to open channels.
            settings: Realtime settings. Loaded from the environment if None.
            scheduler: Clock and timer source. Defaults to the running loop.
        """
        self._factory = channel_factory
        self._settings = settings or get_realtime_settings()
        self._scheduler = scheduler or LoopScheduler()
        self._timers = TimerRegistry(self._scheduler)

        self._registry = SubscriptionRegistry()
        self._ledger = OptimisticUpdateLedger(
            self._timers,
            self._scheduler.time,
            timeout=self._settings.optimistic_update_timeout,
        )
        self._reconciler = ReconciliationEngine(self._ledger, self._settings.identity_field)
        self._reconnect = ReconnectController(
            max_attempts=self._settings.max_reconnect_attempts,
            base_delay=self._settings.reconnect_base_delay,
            max_delay=self._settings.reconnect_max_delay,
            jitter=self._settings.reconnect_jitter,
        )
        self._stats = RealtimeStats(last_activity=self._scheduler.time())
        # entry id -> generation of its current channel
        self._generations: dict[str, _Generation] = {}

        self._reconnect_tasks: set[asyncio.Task[Any]] = set()
        self._handler_tasks: set[asyncio.Task[Any]] = set()
        self._close_tasks: set[asyncio.Task[Any]] = set()
        self._destroyed = False

        self._health = HealthMonitor(
            self._timers,
            self._scheduler.time,
            lambda: self._stats.last_activity,
            self._check_subscription_health,
            interval=self._settings.heartbeat_interval,
            stale_after=self._settings.stale_threshold,
        )
        self._health.start()
        tracking.set_active_subscriptions(0)

    # ------------------------------------------------------------------
    # Subscription registry
    # ------------------------------------------------------------------

    async def subscribe(
        self,
        subscription_id: str,
        config: SubscriptionConfig,
        handler: SubscriptionHandler | None = None,
    ) -> bool:
        """Open a subscription and wait for the transport to confirm it.

        Any subscription already registered under ``subscription_id`` is torn
        down first, including one whose handshake is still pending; that
        earlier caller gets :class:`SubscriptionSupersededError`.

        Args:
            subscription_id: Caller-chosen id, unique within the process.
            config: Table, schema, event and row filter to listen to.
            handler: Hooks invoked for events and errors.

        Returns:
            True once the channel reports SUBSCRIBED.

        Raises:
            SubscriptionTimeoutError: The transport reported TIMED_OUT.
            SubscriptionError: The channel errored or could not be opened.
            RealtimeError: The manager has been destroyed.
        """
        if self._destroyed:
            msg = "Realtime manager has been destroyed"
            raise RealtimeError(msg)

        self._teardown(subscription_id, superseded=True)

        entry = SubscriptionEntry(
            subscription_id=subscription_id,
            config=config,
            handler=handler or SubscriptionHandler(),
        )
        self._registry.add(entry)
        self._reconnect.reset(subscription_id)

        logger.info(
            "Opening realtime subscription",
            extra={
                "subscription_id": subscription_id,
                "table": config.table,
                "schema": config.schema,
                "event": config.event.value,
                "filter": config.filter,
            },
        )
        return await self._open(entry)

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription and all of its bookkeeping.

        The channel is closed in the background; this call does not wait.

        Returns:
            True if a subscription was registered under the id, else False.
        """
        return self._teardown(subscription_id)

    def is_subscription_active(self, subscription_id: str) -> bool:
        entry = self._registry.get(subscription_id)
        return entry is not None and entry.is_live

    def get_active_subscriptions(self) -> list[str]:
        return self._registry.live_ids()

    def get_subscription(self, subscription_id: str) -> SubscriptionInfo | None:
        """Snapshot of a registered subscription, live or not."""
        entry = self._registry.get(subscription_id)
        return self._info(entry) if entry is not None else None

    def list_subscriptions(self) -> list[SubscriptionInfo]:
        return [self._info(entry) for entry in self._registry.entries()]

    def _info(self, entry: SubscriptionEntry) -> SubscriptionInfo:
        subscription_id = entry.subscription_id
        return SubscriptionInfo(
            subscription_id=subscription_id,
            config=entry.config,
            state=entry.state,
            reconnect_attempts=self._reconnect.attempts(subscription_id),
            pending_updates=len(self._ledger.pending(subscription_id)),
            created_at=entry.created_at,
            optimistic_updates=self._ledger.get(subscription_id),
        )

    # ------------------------------------------------------------------
    # Optimistic updates
    # ------------------------------------------------------------------

    def add_optimistic_update(
        self,
        subscription_id: str,
        update_type: ChangeEventType | str,
        data: Any,
        update_id: str | None = None,
    ) -> str:
        """Record a local mutation awaiting confirmation.

        The entry is evicted ``optimistic_update_timeout`` seconds later.

        Returns:
            The update id (generated when not supplied).
        """
        return self._ledger.add(subscription_id, update_type, data, update_id)

    def confirm_optimistic_update(self, subscription_id: str, update_id: str) -> bool:
        return self._ledger.confirm(subscription_id, update_id)

    def remove_optimistic_update(self, subscription_id: str, update_id: str) -> bool:
        removed = self._ledger.remove(subscription_id, update_id)
        if removed:
            tracking.track_optimistic_update("removed")
        return removed

    def get_optimistic_updates(self, subscription_id: str) -> list[OptimisticUpdate]:
        return self._ledger.get(subscription_id)

    def get_pending_optimistic_updates(self, subscription_id: str) -> list[OptimisticUpdate]:
        return self._ledger.pending(subscription_id)

    # ------------------------------------------------------------------
    # Stats and lifecycle
    # ------------------------------------------------------------------

    def get_stats(self) -> RealtimeStats:
        return dataclasses.replace(self._stats)

    @property
    def is_stale(self) -> bool:
        return self._health.is_stale

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def timers(self) -> TimerRegistry:
        return self._timers

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def settings(self) -> RealtimeSettings:
        return self._settings

    def destroy(self) -> None:
        """Tear down every subscription and cancel every timer.

        Safe to call more than once.
        """
        if self._destroyed:
            return
        self._destroyed = True

        for subscription_id in self._registry.ids():
            self._teardown(subscription_id)

        self._health.stop()
        self._timers.cancel_all()
        for task in (*self._reconnect_tasks, *self._handler_tasks):
            task.cancel()

        self._ledger.clear_all()
        self._reconnect.clear()
        self._registry.clear()
        self._generations.clear()

        logger.info(
            "Realtime manager destroyed",
            extra={
                "total_messages": self._stats.total_messages,
                "reconnections": self._stats.reconnections,
                "errors": self._stats.errors,
            },
        )

    async def aclose(self) -> None:
        """Destroy the manager, then wait for channel closes and release the client."""
        self.destroy()
        if self._close_tasks:
            await asyncio.gather(*self._close_tasks, return_exceptions=True)
        await self._factory.close()

    # ------------------------------------------------------------------
    # Channel lifecycle
    # ------------------------------------------------------------------

    async def _open(self, entry: SubscriptionEntry) -> bool:
        """Open a channel for ``entry`` and wait for its handshake."""
        waiter: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        entry.waiter = waiter
        entry.state = SubscriptionState.SUBSCRIBING
        generation = self._next_generation(entry)

        try:
            channel = await self._factory.open(
                entry.subscription_id,
                entry.config,
                functools.partial(self._on_event, generation),
                functools.partial(self._on_status, generation),
            )
        except Exception as e:
            if self._is_current(generation):
                error = SubscriptionError(
                    entry.subscription_id,
                    f"Failed to open realtime channel: {e}",
                )
                error.__cause__ = e
                self._handle_failure(entry, error)
            else:
                self._settle(waiter, SubscriptionClosedError(entry.subscription_id))
            return await waiter

        if self._is_current(generation):
            entry.channel = channel
        else:
            # Replaced, removed or already failed while the handshake ran
            self._close_channel(channel)
        return await waiter

    def _on_status(
        self,
        generation: _Generation,
        status: ChannelStatus | str,
        error: Exception | None = None,
    ) -> None:
        if not self._is_current(generation):
            logger.debug(
                "Ignoring status from a retired channel",
                extra={"subscription_id": generation.entry.subscription_id, "status": str(status)},
            )
            return

        entry = generation.entry
        status = ChannelStatus(status)
        if status is ChannelStatus.SUBSCRIBED:
            self._handle_subscribed(entry)
        elif status is ChannelStatus.TIMED_OUT:
            self._handle_failure(entry, SubscriptionTimeoutError(entry.subscription_id))
        elif status is ChannelStatus.CHANNEL_ERROR:
            detail = f"Realtime channel error: {error}" if error else "Realtime channel error"
            failure = SubscriptionError(entry.subscription_id, detail, status=status.value)
            if error is not None:
                failure.__cause__ = error
            self._handle_failure(entry, failure)
        elif status is ChannelStatus.CLOSED:
            self._handle_closed(entry)

    def _handle_subscribed(self, entry: SubscriptionEntry) -> None:
        resumed = self._reconnect.attempts(entry.subscription_id) > 0
        if not entry.is_live:
            entry.state = SubscriptionState.LIVE
            self._stats.active_subscriptions += 1
            tracking.set_active_subscriptions(self._stats.active_subscriptions)
        self._reconnect.reset(entry.subscription_id)
        self._settle(entry.waiter, True)

        logger.info(
            "Realtime subscription resumed" if resumed else "Realtime subscription active",
            extra={
                "subscription_id": entry.subscription_id,
                "active_subscriptions": self._stats.active_subscriptions,
            },
        )

    def _handle_failure(self, entry: SubscriptionEntry, error: SubscriptionError) -> None:
        logger.error(
            "Realtime subscription error",
            extra={
                "subscription_id": entry.subscription_id,
                "status": error.status,
                "error": str(error),
            },
        )
        self._stats.errors += 1
        tracking.track_realtime_error("transport")

        self._mark_down(entry, close_channel=True)
        self._settle(entry.waiter, error)
        self._notify_error(entry, error)
        self._schedule_reconnect(entry)

    def _handle_closed(self, entry: SubscriptionEntry) -> None:
        logger.warning(
            "Realtime subscription closed",
            extra={"subscription_id": entry.subscription_id},
        )
        self._mark_down(entry, close_channel=False)
        self._settle(
            entry.waiter,
            SubscriptionError(
                entry.subscription_id,
                "Realtime channel closed before confirmation",
                status=ChannelStatus.CLOSED.value,
            ),
        )
        self._schedule_reconnect(entry)

    def _mark_down(self, entry: SubscriptionEntry, *, close_channel: bool) -> None:
        if entry.is_live:
            self._stats.active_subscriptions -= 1
            tracking.set_active_subscriptions(self._stats.active_subscriptions)
        entry.state = SubscriptionState.FAILED
        self._generations.pop(entry.subscription_id, None)

        channel, entry.channel = entry.channel, None
        if close_channel and channel is not None:
            self._close_channel(channel)

    # ------------------------------------------------------------------
    # Reconnection
    # ------------------------------------------------------------------

    def _schedule_reconnect(self, entry: SubscriptionEntry) -> None:
        subscription_id = entry.subscription_id
        delay = self._reconnect.next_delay(subscription_id)
        if delay is None:
            entry.state = SubscriptionState.ABANDONED
            tracking.track_reconnect_exhausted()
            logger.error(
                "Max reconnection attempts reached",
                extra={
                    "subscription_id": subscription_id,
                    "attempts": self._reconnect.attempts(subscription_id),
                },
            )
            return

        self._stats.reconnections += 1
        tracking.track_reconnect(delay)
        logger.warning(
            "Scheduling realtime resubscription",
            extra={
                "subscription_id": subscription_id,
                "attempt": self._reconnect.attempts(subscription_id),
                "delay_seconds": delay,
            },
        )
        self._timers.schedule(
            ("reconnect", subscription_id),
            delay,
            functools.partial(self._reconnect_due, entry),
        )

    def _reconnect_due(self, entry: SubscriptionEntry) -> None:
        if self._destroyed or not self._registry.is_current(entry):
            return
        self._spawn(self._resubscribe(entry), self._reconnect_tasks)

    async def _resubscribe(self, entry: SubscriptionEntry) -> None:
        logger.info(
            "Attempting to reconnect subscription",
            extra={
                "subscription_id": entry.subscription_id,
                "attempt": self._reconnect.attempts(entry.subscription_id),
            },
        )
        try:
            await self._open(entry)
        except RealtimeError as e:
            # The failure path has already scheduled the next attempt
            logger.debug(
                "Resubscription attempt failed",
                extra={"subscription_id": entry.subscription_id, "error": str(e)},
            )

    # ------------------------------------------------------------------
    # Event dispatch
    # ------------------------------------------------------------------

    def _on_event(self, generation: _Generation, event: ChangeEvent) -> None:
        if not self._is_current(generation):
            return

        entry = generation.entry
        self._stats.total_messages += 1
        self._stats.last_activity = self._scheduler.time()
        self._health.mark_activity()
        tracking.track_realtime_message(event.table or entry.config.table, event.event_type.value)

        try:
            self._reconciler.reconcile(entry.subscription_id, event)
            callback = entry.handler.for_event(event.event_type)
            if callback is not None:
                result = callback(event)
                if inspect.isawaitable(result):
                    self._spawn_hook(entry, result)
        except Exception as e:
            self._handle_dispatch_error(entry, e)

    def _handle_dispatch_error(self, entry: SubscriptionEntry, error: Exception) -> None:
        logger.error(
            "Realtime event handler failed",
            extra={
                "subscription_id": entry.subscription_id,
                "error": str(error),
                "error_type": type(error).__name__,
            },
            exc_info=error,
        )
        self._stats.errors += 1
        tracking.track_realtime_error("handler")
        self._notify_error(entry, error)

    def _notify_error(self, entry: SubscriptionEntry, error: Exception) -> None:
        callback = entry.handler.on_error
        if callback is None:
            return
        try:
            result = callback(error)
            if inspect.isawaitable(result):
                task = self._spawn(_as_coroutine(result), self._handler_tasks)
                if task is not None:
                    task.add_done_callback(
                        functools.partial(_log_on_error_failure, entry.subscription_id)
                    )
        except Exception:
            logger.exception(
                "Realtime on_error handler failed",
                extra={"subscription_id": entry.subscription_id},
            )

    def _spawn_hook(self, entry: SubscriptionEntry, awaitable: Awaitable[Any]) -> None:
        task = self._spawn(_as_coroutine(awaitable), self._handler_tasks)
        if task is None:
            return

        def _done(t: asyncio.Task[Any]) -> None:
            if t.cancelled():
                return
            exc = t.exception()
            if isinstance(exc, Exception):
                self._handle_dispatch_error(entry, exc)

        task.add_done_callback(_done)

    def _check_subscription_health(self) -> None:
        for subscription_id in self._registry.live_ids():
            logger.info(
                "Checking health of subscription",
                extra={"subscription_id": subscription_id},
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _teardown(self, subscription_id: str, *, superseded: bool = False) -> bool:
        entry = self._registry.pop(subscription_id)
        if entry is None:
            return False

        self._generations.pop(subscription_id, None)
        self._ledger.clear(subscription_id)
        self._reconnect.forget(subscription_id)
        self._timers.cancel(("reconnect", subscription_id))
        self._timers.cancel_prefix(("rollback", subscription_id))

        if entry.is_live:
            self._stats.active_subscriptions -= 1
            tracking.set_active_subscriptions(self._stats.active_subscriptions)
        entry.state = SubscriptionState.CLOSED

        closed = (
            SubscriptionSupersededError(subscription_id)
            if superseded
            else SubscriptionClosedError(subscription_id)
        )
        self._settle(entry.waiter, closed)

        channel, entry.channel = entry.channel, None
        if channel is not None:
            self._close_channel(channel)

        logger.info(
            "Realtime subscription removed",
            extra={
                "subscription_id": subscription_id,
                "superseded": superseded,
                "active_subscriptions": self._stats.active_subscriptions,
            },
        )
        return True

    def _next_generation(self, entry: SubscriptionEntry) -> _Generation:
        previous = self._generations.get(entry.subscription_id)
        generation = _Generation(entry, previous.number + 1 if previous else 1)
        self._generations[entry.subscription_id] = generation
        return generation

    def _is_current(self, generation: _Generation) -> bool:
        return (
            self._registry.is_current(generation.entry)
            and self._generations.get(generation.entry.subscription_id) is generation
        )

    def _close_channel(self, channel: ChannelHandle) -> None:
        self._spawn(self._close_quietly(channel), self._close_tasks)

    async def _close_quietly(self, channel: ChannelHandle) -> None:
        try:
            await channel.close()
        except Exception as e:
            logger.warning("Failed to close realtime channel", extra={"error": str(e)})

    def _spawn(
        self,
        coro: Coroutine[Any, Any, Any],
        bucket: set[asyncio.Task[Any]],
    ) -> asyncio.Task[Any] | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop, dropping realtime background task")
            return None
        task = loop.create_task(coro)
        bucket.add(task)
        task.add_done_callback(bucket.discard)
        return task

    @staticmethod
    def _settle(waiter: asyncio.Future[bool] | None, outcome: bool | BaseException) -> None:
        if waiter is None or waiter.done():
            return
        if isinstance(outcome, BaseException):
            waiter.set_exception(outcome)
        else:
            waiter.set_result(outcome)


async def _as_coroutine(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def _log_on_error_failure(subscription_id: str, task: asyncio.Task[Any]) -> None:
    if task.cancelled() or task.exception() is None:
        return
    logger.error(
        "Realtime on_error handler failed",
        extra={"subscription_id": subscription_id, "error": str(task.exception())},
    )


async def create_realtime_manager(
    supabase_settings: SupabaseSettings | None = None,
    realtime_settings: RealtimeSettings | None = None,
) -> RealtimeManager:
    """Build a manager wired to Supabase Realtime.

    Args:
        supabase_settings: Credentials. Loaded from the environment if None.
        realtime_settings: Manager tuning. Loaded from the environment if None.

    Returns:
        A started RealtimeManager.

    Raises:
        RealtimeConfigurationError: If the URL or anon key is missing.
    """
    supabase = supabase_settings or get_supabase_settings()
    if not supabase.is_configured:
        msg = (
            "Supabase URL and anon key are required "
            "(NEXT_PUBLIC_SUPABASE_URL / NEXT_PUBLIC_SUPABASE_ANON_KEY)"
        )
        raise RealtimeConfigurationError(msg)

    from realtime_service.infra.realtime.supabase import SupabaseChannelFactory

    factory = await SupabaseChannelFactory.connect(
        supabase.url,
        supabase.anon_key.get_secret_value(),
    )
    manager = RealtimeManager(factory, settings=realtime_settings)
    logger.info("Realtime manager started", extra={"supabase_url": supabase.url})
    return manager
