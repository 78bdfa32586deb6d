"""Value types shared by the realtime subscription manager.

The manager speaks in these types only; vendor payload shapes are normalised
into :class:`ChangeEvent` at the transport boundary.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    EventCallback = Callable[["ChangeEvent"], Awaitable[None] | None]
    ErrorCallback = Callable[[Exception], Awaitable[None] | None]


class ChangeEventType(str, Enum):
    """Row mutation kinds delivered by the transport."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class EventFilter(str, Enum):
    """Event filter applied when opening a channel."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ALL = "*"


class SubscriptionState(str, Enum):
    """Lifecycle states of a registered subscription."""

    SUBSCRIBING = "subscribing"
    LIVE = "live"
    FAILED = "failed"
    ABANDONED = "abandoned"
    CLOSED = "closed"


@dataclass(frozen=True)
class SubscriptionConfig:
    """What a subscription listens to.

    Kept for the whole lifetime of the registry entry so a reconnect can
    reopen exactly the same channel.
    """

    table: str
    schema: str = "public"
    event: EventFilter = EventFilter.ALL
    filter: str | None = None

    def __post_init__(self) -> None:
        if not self.table:
            msg = "SubscriptionConfig.table must not be empty"
            raise ValueError(msg)
        # Accept plain strings ("INSERT", "*") for the event filter
        if not isinstance(self.event, EventFilter):
            object.__setattr__(self, "event", EventFilter(self.event))


@dataclass
class SubscriptionHandler:
    """Callbacks invoked for a subscription.

    Every hook is optional and may be a plain function or a coroutine
    function.
    """

    on_insert: EventCallback | None = None
    on_update: EventCallback | None = None
    on_delete: EventCallback | None = None
    on_error: ErrorCallback | None = None

    def for_event(self, event_type: ChangeEventType) -> EventCallback | None:
        """Return the hook registered for an event kind."""
        if event_type is ChangeEventType.INSERT:
            return self.on_insert
        if event_type is ChangeEventType.UPDATE:
            return self.on_update
        return self.on_delete


def identity_of(data: Any, field_name: str = "id") -> Any:
    """Read the identity field from a mapping or an attribute-style object."""
    if data is None:
        return None
    if isinstance(data, Mapping):
        return data.get(field_name)
    return getattr(data, field_name, None)


@dataclass(frozen=True)
class ChangeEvent:
    """A single row change delivered by the transport."""

    event_type: ChangeEventType
    table: str
    schema: str = "public"
    new: Mapping[str, Any] | None = None
    old: Mapping[str, Any] | None = None
    commit_timestamp: str | None = None

    def identity(self, field_name: str = "id") -> Any:
        """Identity of the affected row.

        Inserts and updates are identified by their post-image, deletes by
        their pre-image.
        """
        image = self.old if self.event_type is ChangeEventType.DELETE else self.new
        return identity_of(image, field_name)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ChangeEvent:
        """Build an event from a raw transport payload.

        Understands the Supabase Python realtime shape
        (``{"data": {"type", "record", "old_record", ...}}``) as well as the
        flat ``{"eventType", "new", "old"}`` shape used by the JS client.

        Raises:
            ValueError: If the payload carries no recognised event type.
        """
        data = payload.get("data", payload)
        if not isinstance(data, Mapping):
            msg = "Change payload has no data section"
            raise ValueError(msg)

        raw_type = data.get("type") or data.get("eventType")
        try:
            event_type = ChangeEventType(str(getattr(raw_type, "value", raw_type)).upper())
        except ValueError as e:
            msg = f"Unsupported change event type: {raw_type!r}"
            raise ValueError(msg) from e

        new = data.get("record", data.get("new"))
        old = data.get("old_record", data.get("old"))

        return cls(
            event_type=event_type,
            table=data.get("table", ""),
            schema=data.get("schema", "public"),
            new=new or None,
            old=old or None,
            commit_timestamp=data.get("commit_timestamp"),
        )


@dataclass
class OptimisticUpdate:
    """A local mutation waiting for the backend to echo it back."""

    id: str
    type: ChangeEventType
    data: Any
    timestamp: float
    confirmed: bool = False

    def identity(self, field_name: str = "id") -> Any:
        return identity_of(self.data, field_name)


@dataclass
class RealtimeStats:
    """Process-wide counters maintained by the manager."""

    active_subscriptions: int = 0
    total_messages: int = 0
    reconnections: int = 0
    errors: int = 0
    last_activity: float = 0.0


@dataclass(frozen=True)
class SubscriptionInfo:
    """Read-only view of a registry entry."""

    subscription_id: str
    config: SubscriptionConfig
    state: SubscriptionState
    reconnect_attempts: int = 0
    pending_updates: int = 0
    created_at: float = 0.0
    optimistic_updates: list[OptimisticUpdate] = field(default_factory=list)

    @property
    def active(self) -> bool:
        return self.state is SubscriptionState.LIVE
