from __future__ import annotations

from realtime_service.utils.retry.strategies import RetryStrategy

__all__ = ["RetryStrategy"]
