"""Context management for structured logging.

Fields set with :func:`set_log_context` are injected into every log record
emitted from the same async task, so a subscription id set once at the top
of a request or CLI command shows up on the realtime manager's log lines
without being passed around.
"""

from __future__ import annotations

from contextvars import ContextVar
import logging
from typing import Any

# Each async task gets its own copy automatically
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Example:
        ```python
        set_log_context(subscription_id="user_42_orders")
        logger.info("Opening subscription")  # includes subscription_id
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    return _log_context.get().copy()


def clear_log_context() -> None:
    _log_context.set({})


def remove_from_log_context(*keys: str) -> None:
    current = _log_context.get().copy()
    for key in keys:
        current.pop(key, None)
    _log_context.set(current)


class ContextInjectingFilter(logging.Filter):
    """Logging filter that copies the contextvar fields onto each LogRecord.

    Attributes already present on the record (including ``extra=`` fields)
    are never overwritten.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
