"""Reconnection bookkeeping with exponential backoff."""

from __future__ import annotations

from realtime_service.utils.retry import RetryStrategy

DEFAULT_MAX_ATTEMPTS = 5


class ReconnectController:
    """Per-subscription attempt counters and retry delays.

    ``next_delay`` is called once per failure. Attempt ``n`` (0-indexed) waits
    ``base_delay * 2**n``; once ``max_attempts`` retries have been handed out
    it returns None and the subscription is given up on.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        jitter: bool = False,
    ) -> None:
        self.max_attempts = max_attempts
        self._strategy = RetryStrategy(
            max_attempts=max_attempts,
            initial_delay=base_delay,
            max_delay=max_delay,
            exponential_base=2.0,
            jitter=jitter,
        )
        self._attempts: dict[str, int] = {}

    def attempts(self, subscription_id: str) -> int:
        return self._attempts.get(subscription_id, 0)

    def next_delay(self, subscription_id: str) -> float | None:
        attempt = self.attempts(subscription_id)
        if attempt >= self.max_attempts:
            return None
        self._attempts[subscription_id] = attempt + 1
        return self._strategy.calculate_delay(attempt)

    def reset(self, subscription_id: str) -> None:
        self._attempts[subscription_id] = 0

    def forget(self, subscription_id: str) -> None:
        self._attempts.pop(subscription_id, None)

    def clear(self) -> None:
        self._attempts.clear()
