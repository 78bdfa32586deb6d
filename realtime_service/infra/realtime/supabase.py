"""Supabase Realtime transport adapter.

Wraps a supabase-py ``AsyncClient`` behind the :class:`ChannelFactory`
protocol. One client is shared by every channel; each subscription gets its
own channel listening to ``postgres_changes``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from realtime_service.infra.realtime.transport import ChannelStatus
from realtime_service.infra.realtime.types import ChangeEvent

if TYPE_CHECKING:
    from realtime_service.infra.realtime.transport import EventSink, StatusSink
    from realtime_service.infra.realtime.types import SubscriptionConfig

logger = logging.getLogger(__name__)


class SupabaseChannelHandle:
    """A subscribed supabase-py channel."""

    def __init__(self, client: Any, channel: Any, topic: str) -> None:
        self._client = client
        self._channel = channel
        self.topic = topic

    async def close(self) -> None:
        await self._client.remove_channel(self._channel)
        logger.debug("Supabase channel removed", extra={"topic": self.topic})


class SupabaseChannelFactory:
    """Opens ``postgres_changes`` channels on a shared supabase-py client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    async def connect(cls, url: str, key: str) -> SupabaseChannelFactory:
        """Create the async Supabase client and wrap it.

        Args:
            url: Supabase project URL.
            key: Anon (public) API key.
        """
        from supabase import acreate_client

        client = await acreate_client(url, key)
        logger.info("Supabase client created", extra={"supabase_url": url})
        return cls(client)

    async def open(
        self,
        topic: str,
        config: SubscriptionConfig,
        on_event: EventSink,
        on_status: StatusSink,
    ) -> SupabaseChannelHandle:
        channel = self._client.channel(topic)

        def _on_change(payload: dict[str, Any]) -> None:
            try:
                event = ChangeEvent.from_payload(payload)
            except ValueError as e:
                logger.warning(
                    "Dropping unparseable realtime payload",
                    extra={"topic": topic, "error": str(e)},
                )
                return
            on_event(event)

        def _on_subscribe(state: Any, error: Exception | None = None) -> None:
            raw = getattr(state, "value", state)
            try:
                status = ChannelStatus(str(raw))
            except ValueError:
                logger.debug(
                    "Ignoring unknown channel state",
                    extra={"topic": topic, "state": str(raw)},
                )
                return
            on_status(status, error)

        options: dict[str, Any] = {"schema": config.schema, "table": config.table}
        if config.filter:
            options["filter"] = config.filter

        channel.on_postgres_changes(config.event.value, _on_change, **options)
        await channel.subscribe(_on_subscribe)
        return SupabaseChannelHandle(self._client, channel, topic)

    async def close(self) -> None:
        await self._client.remove_all_channels()
        logger.info("Supabase client channels released")
