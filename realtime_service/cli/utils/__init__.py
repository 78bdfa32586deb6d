"""CLI utilities for running async operations and formatting output."""

from realtime_service.cli.utils.async_runner import coro, run_async
from realtime_service.cli.utils.formatters import (
    error,
    info,
    section,
    success,
    warning,
)

__all__ = [
    "coro",
    "error",
    "info",
    "run_async",
    "section",
    "success",
    "warning",
]
