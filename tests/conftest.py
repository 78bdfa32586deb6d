"""Pytest configuration and shared fixtures.

This module provides reusable fixtures for testing across the entire test suite.
Fixtures are organized by category to make them easy to discover and extend.

Organization:
    - Application Fixtures: FastAPI app and HTTP client
    - Realtime Fixtures: virtual clock, in-memory channel factory, manager
    - Utility Fixtures: settings cache reset, event loop draining

The realtime fixtures never touch the network. ``FakeChannelFactory`` hands
out ``FakeChannel`` objects that tests drive directly, and ``ManualScheduler``
replaces the event loop's timers with a clock that only moves when a test
calls ``advance``.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncGenerator
import os
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from realtime_service.core.settings import RealtimeSettings, clear_all_caches
from realtime_service.infra.realtime import (
    ChangeEvent,
    ChangeEventType,
    ChannelStatus,
    RealtimeManager,
)

# Ensure tests run without external infrastructure
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("REALTIME_ENABLED", "false")
for _name in (
    "NEXT_PUBLIC_SUPABASE_URL",
    "NEXT_PUBLIC_SUPABASE_ANON_KEY",
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
):
    os.environ.pop(_name, None)


# ============================================================================
# Utility Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Reload settings from the environment for every test."""
    clear_all_caches()
    yield
    clear_all_caches()


@pytest.fixture
def settle():
    """Return a coroutine that lets callbacks and spawned tasks run.

    Example:
        channel.report(ChannelStatus.CLOSED)
        await settle()
    """

    async def _settle(rounds: int = 10) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _settle


# ============================================================================
# Realtime Fixtures
# ============================================================================


class ManualTimer:
    def __init__(self, when: float, callback: Any, args: tuple[Any, ...]) -> None:
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock with a delayed-call queue.

    Timers only fire from ``advance``, in due order; timers due at the same
    instant fire in the order they were scheduled.
    """

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self._timers: list[ManualTimer] = []

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Any, *args: Any) -> ManualTimer:
        timer = ManualTimer(self.now + delay, callback, args)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [timer for timer in self._timers if not timer.cancelled]

    def find(self, key: tuple[Any, ...]) -> ManualTimer | None:
        """Pending timer scheduled through a TimerRegistry under ``key``."""
        return next((t for t in self.pending if t.args and t.args[0] == key), None)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [timer for timer in self.pending if timer.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self._timers.remove(timer)
            self.now = max(self.now, timer.when)
            timer.callback(*timer.args)
        self.now = target


class FakeChannel:
    """Channel handle a test can push events and statuses through."""

    def __init__(self, topic, config, on_event, on_status) -> None:
        self.topic = topic
        self.config = config
        self.on_event = on_event
        self.on_status = on_status
        self.closed = False

    async def close(self) -> None:
        self.closed = True

    def emit(
        self,
        event_type: str,
        new: dict[str, Any] | None = None,
        old: dict[str, Any] | None = None,
        table: str | None = None,
    ) -> None:
        self.on_event(
            ChangeEvent(
                event_type=ChangeEventType(event_type),
                table=table or self.config.table,
                schema=self.config.schema,
                new=new,
                old=old,
            )
        )

    def report(self, status: ChannelStatus | str, error: Exception | None = None) -> None:
        self.on_status(ChannelStatus(status), error)


class FakeChannelFactory:
    """In-memory channel factory.

    Each ``open`` delivers one status on the next loop iteration: the next
    entry of ``statuses`` if any, else ``default_status``. A status of None
    leaves the handshake pending so the test can ``report`` it itself.
    Exceptions queued in ``open_errors`` are raised from ``open`` instead.
    """

    def __init__(self) -> None:
        self.channels: list[FakeChannel] = []
        self.statuses: deque[ChannelStatus | None] = deque()
        self.default_status: ChannelStatus | None = ChannelStatus.SUBSCRIBED
        self.open_errors: deque[Exception] = deque()
        self.closed = False

    async def open(self, topic, config, on_event, on_status) -> FakeChannel:
        if self.open_errors:
            raise self.open_errors.popleft()

        channel = FakeChannel(topic, config, on_event, on_status)
        self.channels.append(channel)

        status = self.statuses.popleft() if self.statuses else self.default_status
        if status is not None:
            asyncio.get_running_loop().call_soon(channel.report, status)
        return channel

    @property
    def last(self) -> FakeChannel:
        return self.channels[-1]

    def open_channels(self) -> list[FakeChannel]:
        return [channel for channel in self.channels if not channel.closed]

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def channel_factory() -> FakeChannelFactory:
    return FakeChannelFactory()


@pytest.fixture
def realtime_settings() -> RealtimeSettings:
    """Realtime settings pinned to the production defaults."""
    return RealtimeSettings(
        default_schema="public",
        identity_field="id",
        optimistic_update_timeout=10.0,
        rollback_timeout=5.0,
        max_reconnect_attempts=5,
        reconnect_base_delay=1.0,
        reconnect_max_delay=60.0,
        reconnect_jitter=False,
        heartbeat_interval=30.0,
        stale_threshold=120.0,
    )


@pytest.fixture
async def realtime_manager(
    channel_factory: FakeChannelFactory,
    manual_scheduler: ManualScheduler,
    realtime_settings: RealtimeSettings,
) -> AsyncGenerator[RealtimeManager]:
    """Manager wired to the fake factory and the virtual clock."""
    manager = RealtimeManager(
        channel_factory,
        settings=realtime_settings,
        scheduler=manual_scheduler,
    )
    yield manager
    manager.destroy()


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
async def app():
    """Create FastAPI application for testing.

    The lifespan does not run under ``ASGITransport``, so
    ``app.state.realtime_manager`` stays None unless a test sets it.
    """
    from realtime_service.app.main import create_app

    return create_app()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for testing.

    Example:
        async def test_health_check(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def realtime_client(
    app,
    realtime_manager: RealtimeManager,
) -> AsyncGenerator[AsyncClient]:
    """HTTP client for an app whose realtime manager runs on the fakes."""
    app.state.realtime_manager = realtime_manager
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
