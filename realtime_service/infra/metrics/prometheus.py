"""Prometheus metrics for the realtime service."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

# Custom registry so only this service's metrics are exposed
REGISTRY = CollectorRegistry()

# Reconnect backoff delays, 1s doubling up to the 60s cap
RECONNECT_DELAY_BUCKETS = (1.0, 2.0, 4.0, 8.0, 16.0, 32.0, 60.0)

# Realtime subscription metrics
realtime_active_subscriptions = Gauge(
    "realtime_active_subscriptions",
    "Current number of live realtime subscriptions",
    registry=REGISTRY,
)

realtime_messages_total = Counter(
    "realtime_messages_total",
    "Total number of change events received",
    ["table", "event_type"],
    registry=REGISTRY,
)

realtime_errors_total = Counter(
    "realtime_errors_total",
    "Total number of realtime errors",
    ["kind"],
    registry=REGISTRY,
)

realtime_reconnections_total = Counter(
    "realtime_reconnections_total",
    "Total number of scheduled resubscription attempts",
    registry=REGISTRY,
)

realtime_reconnects_exhausted_total = Counter(
    "realtime_reconnects_exhausted_total",
    "Total number of subscriptions abandoned after the last retry",
    registry=REGISTRY,
)

realtime_reconnect_delay_seconds = Histogram(
    "realtime_reconnect_delay_seconds",
    "Backoff delay before a resubscription attempt",
    buckets=RECONNECT_DELAY_BUCKETS,
    registry=REGISTRY,
)

realtime_stale = Gauge(
    "realtime_stale",
    "1 when no realtime activity was seen within the stale threshold",
    registry=REGISTRY,
)

# Optimistic update ledger metrics
realtime_optimistic_updates_total = Counter(
    "realtime_optimistic_updates_total",
    "Optimistic updates by outcome",
    ["outcome"],
    registry=REGISTRY,
)

# Application metrics
application_info = Gauge(
    "application_info",
    "Application information",
    ["version", "service", "environment"],
    registry=REGISTRY,
)

# HTTP error metrics
http_errors_total = Counter(
    "http_errors_total",
    "Total HTTP error responses by type",
    ["error_type", "endpoint", "status_code"],
    registry=REGISTRY,
)

http_unhandled_exceptions_total = Counter(
    "http_unhandled_exceptions_total",
    "Total unhandled exceptions raised by request handlers",
    ["exception_type", "endpoint"],
    registry=REGISTRY,
)
