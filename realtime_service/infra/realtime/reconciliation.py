"""Matching inbound change events against pending optimistic updates.

Matching is deliberately simple: an event confirms the first pending update
(insertion order) with the same mutation kind and the same identity value.
Several pending updates targeting the same row are not disambiguated; the
oldest one wins.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from realtime_service.infra.realtime.ledger import OptimisticUpdateLedger
    from realtime_service.infra.realtime.types import ChangeEvent, OptimisticUpdate

logger = logging.getLogger(__name__)


def find_matching_update(
    pending: Iterable[OptimisticUpdate],
    event: ChangeEvent,
    identity_field: str = "id",
) -> OptimisticUpdate | None:
    """Return the first unconfirmed update the event confirms, if any."""
    event_identity = event.identity(identity_field)
    if event_identity is None:
        return None

    for update in pending:
        if update.confirmed or update.type is not event.event_type:
            continue
        if update.identity(identity_field) == event_identity:
            return update
    return None


class ReconciliationEngine:
    """Confirms ledger entries from inbound events."""

    def __init__(self, ledger: OptimisticUpdateLedger, identity_field: str = "id") -> None:
        self._ledger = ledger
        self._identity_field = identity_field

    def reconcile(self, subscription_id: str, event: ChangeEvent) -> OptimisticUpdate | None:
        """Confirm at most one pending update for ``event``.

        Returns:
            The confirmed update, or None when nothing matched.
        """
        match = find_matching_update(
            self._ledger.pending(subscription_id),
            event,
            self._identity_field,
        )
        if match is None:
            return None

        self._ledger.confirm(subscription_id, match.id)
        logger.debug(
            "Optimistic update confirmed by change event",
            extra={
                "subscription_id": subscription_id,
                "update_id": match.id,
                "event_type": event.event_type.value,
            },
        )
        return match
