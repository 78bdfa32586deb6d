"""Exceptions raised by the realtime subscription manager."""

from __future__ import annotations


class RealtimeError(Exception):
    """Base class for realtime manager errors."""


class RealtimeConfigurationError(RealtimeError):
    """Raised when the manager cannot be built from the supplied settings."""


class SubscriptionError(RealtimeError):
    """The transport failed to confirm a subscription.

    Attributes:
        subscription_id: Id passed to ``subscribe``.
        status: Transport status that ended the handshake, when there was one.
    """

    def __init__(
        self,
        subscription_id: str,
        message: str,
        status: str | None = None,
    ) -> None:
        self.subscription_id = subscription_id
        self.status = status
        super().__init__(f"{message} (subscription={subscription_id})")


class SubscriptionTimeoutError(SubscriptionError):
    """The transport reported ``TIMED_OUT`` before confirming."""

    def __init__(self, subscription_id: str) -> None:
        super().__init__(subscription_id, "Subscription timed out", status="TIMED_OUT")


class SubscriptionClosedError(SubscriptionError):
    """The subscription was torn down while its handshake was pending."""

    def __init__(self, subscription_id: str, message: str = "Subscription closed") -> None:
        super().__init__(subscription_id, message)


class SubscriptionSupersededError(SubscriptionClosedError):
    """A newer ``subscribe`` call with the same id replaced this one."""

    def __init__(self, subscription_id: str) -> None:
        super().__init__(subscription_id, "Subscription superseded by a newer subscribe call")
