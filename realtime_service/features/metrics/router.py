"""Prometheus metrics endpoint.

Endpoints:
    GET /metrics - Prometheus scrape endpoint

Metrics Exposed:
    Realtime:
        - realtime_active_subscriptions - Live subscriptions gauge
        - realtime_messages_total - Change events by table and event type
        - realtime_errors_total - Transport and handler errors
        - realtime_reconnections_total / realtime_reconnect_delay_seconds
        - realtime_optimistic_updates_total - Ledger transitions by outcome
        - realtime_stale - Staleness flag from the heartbeat

    HTTP:
        - http_errors_total - Problem Details responses by type

    Application Info:
        - application_info - Service version, name, and environment labels
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from realtime_service.infra.metrics.prometheus import REGISTRY

router = APIRouter(tags=["observability"])


@router.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics in text exposition format."""
    data = generate_latest(REGISTRY)
    return Response(
        content=data,
        media_type=CONTENT_TYPE_LATEST,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
