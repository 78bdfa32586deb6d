"""Helper functions for tracking realtime metrics."""

from __future__ import annotations

import logging
from typing import Any

from realtime_service.infra.metrics import prometheus

logger = logging.getLogger(__name__)

OPTIMISTIC_OUTCOMES = frozenset(
    {"added", "confirmed", "expired", "aged_out", "removed", "rolled_back"}
)


# ============================================================================
# Subscriptions
# ============================================================================


def set_active_subscriptions(count: int) -> None:
    prometheus.realtime_active_subscriptions.set(count)


def track_realtime_message(table: str, event_type: str) -> None:
    """Track a change event delivered to a subscription.

    Args:
        table: Table the row belongs to
        event_type: INSERT, UPDATE or DELETE

    Example:
            track_realtime_message("orders", "INSERT")
    """
    prometheus.realtime_messages_total.labels(table=table, event_type=event_type).inc()


def track_realtime_error(kind: str) -> None:
    """Track a realtime error.

    Args:
        kind: ``transport`` for channel failures, ``handler`` for hook failures
    """
    prometheus.realtime_errors_total.labels(kind=kind).inc()


def set_realtime_stale(stale: bool) -> None:
    prometheus.realtime_stale.set(1 if stale else 0)


# ============================================================================
# Reconnection
# ============================================================================


def track_reconnect(delay: float) -> None:
    prometheus.realtime_reconnections_total.inc()
    prometheus.realtime_reconnect_delay_seconds.observe(delay)


def track_reconnect_exhausted() -> None:
    prometheus.realtime_reconnects_exhausted_total.inc()


# ============================================================================
# Optimistic updates
# ============================================================================


def track_optimistic_update(outcome: str) -> None:
    """Track an optimistic update transition.

    Args:
        outcome: One of added, confirmed, expired, aged_out, removed, rolled_back

    Example:
            track_optimistic_update("confirmed")
    """
    if outcome not in OPTIMISTIC_OUTCOMES:
        logger.debug("Unknown optimistic update outcome", extra={"outcome": outcome})
    prometheus.realtime_optimistic_updates_total.labels(outcome=outcome).inc()


# ============================================================================
# HTTP errors
# ============================================================================


def track_error(
    error_type: str,
    endpoint: str,
    status_code: int,
    extra: dict[str, Any] | None = None,
) -> None:
    """Track an error response.

    Args:
        error_type: Problem type (e.g., 'subscription-not-found')
        endpoint: API path where the error occurred
        status_code: HTTP status code
        extra: Additional context for logging

    Example:
            track_error("subscription-not-found", "/api/v1/realtime/subscriptions/x", 404)
    """
    prometheus.http_errors_total.labels(
        error_type=error_type,
        endpoint=endpoint,
        status_code=str(status_code),
    ).inc()

    logger.debug(
        f"Tracked error: {error_type}",
        extra={"endpoint": endpoint, "status_code": status_code, **(extra or {})},
    )


def track_unhandled_exception(exception_type: str, endpoint: str) -> None:
    prometheus.http_unhandled_exceptions_total.labels(
        exception_type=exception_type,
        endpoint=endpoint,
    ).inc()


# ============================================================================
# Application
# ============================================================================


def set_application_info(version: str, service: str, environment: str) -> None:
    prometheus.application_info.labels(
        version=version,
        service=service,
        environment=environment,
    ).set(1)
