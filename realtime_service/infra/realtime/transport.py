"""Transport adapter interface.

The manager depends only on these protocols. A concrete factory turns a
:class:`SubscriptionConfig` into a live vendor channel, forwards row changes
as :class:`ChangeEvent` objects and reports handshake status transitions.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable

    from realtime_service.infra.realtime.types import ChangeEvent, SubscriptionConfig

    EventSink = Callable[[ChangeEvent], None]
    StatusSink = Callable[["ChannelStatus", Exception | None], None]


class ChannelStatus(str, Enum):
    """Channel status values reported by the transport."""

    SUBSCRIBED = "SUBSCRIBED"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"


class ChannelHandle(Protocol):
    """A logical channel opened for one subscription."""

    async def close(self) -> None:
        """Stop delivery and release the channel."""
        ...


class ChannelFactory(Protocol):
    """Opens channels against the upstream realtime source."""

    async def open(
        self,
        topic: str,
        config: SubscriptionConfig,
        on_event: EventSink,
        on_status: StatusSink,
    ) -> ChannelHandle:
        """Open a channel and start its handshake.

        ``on_status`` may be called before or after this coroutine returns.
        ``on_event`` must only receive already-normalised events.
        """
        ...

    async def close(self) -> None:
        """Release the shared client."""
        ...
