"""Unit tests for the Supabase channel adapter and manager factory."""

from __future__ import annotations

from unittest.mock import ANY, AsyncMock, MagicMock, patch

import pytest
from pydantic import SecretStr

from realtime_service.core.settings import SupabaseSettings
from realtime_service.infra.realtime import (
    ChangeEventType,
    ChannelStatus,
    RealtimeConfigurationError,
    RealtimeManager,
    SubscriptionConfig,
    create_realtime_manager,
)
from realtime_service.infra.realtime.supabase import SupabaseChannelFactory


@pytest.fixture
def supabase_channel():
    channel = MagicMock()
    channel.on_postgres_changes.return_value = channel
    channel.subscribe = AsyncMock(return_value=channel)
    return channel


@pytest.fixture
def supabase_client(supabase_channel):
    client = MagicMock()
    client.channel.return_value = supabase_channel
    client.remove_channel = AsyncMock()
    client.remove_all_channels = AsyncMock()
    return client


class TestSupabaseChannelFactory:
    """Tests for SupabaseChannelFactory."""

    @pytest.mark.asyncio
    async def test_open_registers_postgres_changes(self, supabase_client, supabase_channel):
        factory = SupabaseChannelFactory(supabase_client)
        config = SubscriptionConfig(table="orders", filter="user_id=eq.42")

        handle = await factory.open("user_42_orders", config, MagicMock(), MagicMock())

        supabase_client.channel.assert_called_once_with("user_42_orders")
        supabase_channel.on_postgres_changes.assert_called_once_with(
            "*", ANY, schema="public", table="orders", filter="user_id=eq.42"
        )
        supabase_channel.subscribe.assert_awaited_once()
        assert handle.topic == "user_42_orders"

    @pytest.mark.asyncio
    async def test_open_without_filter(self, supabase_client, supabase_channel):
        factory = SupabaseChannelFactory(supabase_client)

        await factory.open(
            "tasks",
            SubscriptionConfig(table="tasks", schema="app", event="INSERT"),
            MagicMock(),
            MagicMock(),
        )

        supabase_channel.on_postgres_changes.assert_called_once_with(
            "INSERT", ANY, schema="app", table="tasks"
        )

    @pytest.mark.asyncio
    async def test_change_payload_forwarded(self, supabase_client, supabase_channel):
        on_event = MagicMock()
        factory = SupabaseChannelFactory(supabase_client)
        await factory.open("orders", SubscriptionConfig(table="orders"), on_event, MagicMock())
        callback = supabase_channel.on_postgres_changes.call_args.args[1]

        callback(
            {
                "data": {
                    "type": "UPDATE",
                    "table": "orders",
                    "schema": "public",
                    "record": {"id": 1, "status": "paid"},
                    "old_record": {"id": 1},
                    "commit_timestamp": "2024-01-01T00:00:00Z",
                },
                "ids": [3],
            }
        )

        event = on_event.call_args.args[0]
        assert event.event_type is ChangeEventType.UPDATE
        assert event.new == {"id": 1, "status": "paid"}

    @pytest.mark.asyncio
    async def test_unparseable_payload_dropped(self, supabase_client, supabase_channel, caplog):
        on_event = MagicMock()
        factory = SupabaseChannelFactory(supabase_client)
        await factory.open("orders", SubscriptionConfig(table="orders"), on_event, MagicMock())
        callback = supabase_channel.on_postgres_changes.call_args.args[1]

        callback({"data": {"type": "TRUNCATE", "table": "orders"}})

        on_event.assert_not_called()
        assert "Dropping unparseable realtime payload" in caplog.text

    @pytest.mark.asyncio
    async def test_subscribe_states_mapped(self, supabase_client, supabase_channel):
        on_status = MagicMock()
        factory = SupabaseChannelFactory(supabase_client)
        await factory.open("orders", SubscriptionConfig(table="orders"), MagicMock(), on_status)
        callback = supabase_channel.subscribe.await_args.args[0]
        failure = RuntimeError("denied")

        callback("SUBSCRIBED")
        callback(MagicMock(value="CHANNEL_ERROR"), failure)
        callback("JOINING")

        assert on_status.call_args_list[0].args == (ChannelStatus.SUBSCRIBED, None)
        assert on_status.call_args_list[1].args == (ChannelStatus.CHANNEL_ERROR, failure)
        assert on_status.call_count == 2

    @pytest.mark.asyncio
    async def test_handle_close_removes_channel(self, supabase_client, supabase_channel):
        factory = SupabaseChannelFactory(supabase_client)
        handle = await factory.open("orders", SubscriptionConfig(table="orders"), MagicMock(), MagicMock())

        await handle.close()

        supabase_client.remove_channel.assert_awaited_once_with(supabase_channel)

    @pytest.mark.asyncio
    async def test_factory_close_removes_all_channels(self, supabase_client):
        await SupabaseChannelFactory(supabase_client).close()

        supabase_client.remove_all_channels.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connect_creates_async_client(self, supabase_client):
        with patch("supabase.acreate_client", AsyncMock(return_value=supabase_client)) as create:
            factory = await SupabaseChannelFactory.connect("https://demo.supabase.co", "anon")

        create.assert_awaited_once_with("https://demo.supabase.co", "anon")
        await factory.close()
        supabase_client.remove_all_channels.assert_awaited_once()


class TestCreateRealtimeManager:
    """Tests for create_realtime_manager."""

    @pytest.mark.asyncio
    async def test_requires_credentials(self):
        with pytest.raises(RealtimeConfigurationError):
            await create_realtime_manager(SupabaseSettings(url=None, anon_key=None))

    @pytest.mark.asyncio
    async def test_builds_manager(self, channel_factory, realtime_settings):
        settings = SupabaseSettings(url="https://demo.supabase.co", anon_key=SecretStr("anon"))

        with patch.object(
            SupabaseChannelFactory, "connect", AsyncMock(return_value=channel_factory)
        ) as connect:
            manager = await create_realtime_manager(settings, realtime_settings)

        try:
            connect.assert_awaited_once_with("https://demo.supabase.co", "anon")
            assert isinstance(manager, RealtimeManager)
            assert manager.settings is realtime_settings
        finally:
            manager.destroy()
