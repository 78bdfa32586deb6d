"""Unit tests for the optimistic update ledger and reconciliation."""

from __future__ import annotations

import re

import pytest

from realtime_service.infra.realtime.ledger import OptimisticUpdateLedger, generate_update_id
from realtime_service.infra.realtime.reconciliation import (
    ReconciliationEngine,
    find_matching_update,
)
from realtime_service.infra.realtime.scheduler import TimerRegistry
from realtime_service.infra.realtime.types import ChangeEvent, ChangeEventType, OptimisticUpdate


@pytest.fixture
def ledger(manual_scheduler):
    return OptimisticUpdateLedger(
        TimerRegistry(manual_scheduler),
        manual_scheduler.time,
        timeout=10.0,
    )


class TestGenerateUpdateId:
    def test_format(self):
        update_id = generate_update_id(1_700_000_000.123)

        assert re.fullmatch(r"optimistic_1700000000123_[0-9a-f]{12}", update_id)

    def test_same_millisecond_ids_differ(self):
        assert generate_update_id(1.0) != generate_update_id(1.0)


class TestOptimisticUpdateLedger:
    """Tests for OptimisticUpdateLedger."""

    def test_add_records_update(self, ledger, manual_scheduler):
        update_id = ledger.add("items", "insert", {"id": 1})

        [update] = ledger.get("items")
        assert update.id == update_id
        assert update.type is ChangeEventType.INSERT
        assert update.timestamp == manual_scheduler.now
        assert update.confirmed is False

    def test_add_uses_supplied_id(self, ledger):
        assert ledger.add("items", ChangeEventType.UPDATE, {"id": 1}, "u1") == "u1"

    def test_add_rejects_unknown_type(self, ledger):
        with pytest.raises(ValueError):
            ledger.add("items", "UPSERT", {"id": 1})

    def test_duplicate_id_replaces_entry(self, ledger):
        ledger.add("items", "INSERT", {"id": 1}, "u1")
        ledger.add("items", "UPDATE", {"id": 1, "name": "b"}, "u1")

        [update] = ledger.get("items")
        assert update.type is ChangeEventType.UPDATE
        assert update.data == {"id": 1, "name": "b"}

    def test_insertion_order_preserved(self, ledger):
        ids = [ledger.add("items", "INSERT", {"id": n}) for n in range(3)]

        assert [u.id for u in ledger.get("items")] == ids

    def test_confirm(self, ledger):
        update_id = ledger.add("items", "INSERT", {"id": 1})

        assert ledger.confirm("items", update_id) is True
        assert ledger.confirm("items", update_id) is True
        assert ledger.pending("items") == []
        assert ledger.confirm("items", "missing") is False
        assert ledger.confirm("other", update_id) is False

    def test_remove(self, ledger):
        update_id = ledger.add("items", "INSERT", {"id": 1})

        assert ledger.remove("items", update_id) is True
        assert ledger.remove("items", update_id) is False
        assert ledger.get("items") == []
        assert len(ledger) == 0

    def test_get_returns_copy(self, ledger):
        ledger.add("items", "INSERT", {"id": 1})

        ledger.get("items").clear()

        assert len(ledger.get("items")) == 1

    def test_expiry(self, ledger, manual_scheduler):
        """Entries disappear exactly timeout seconds after they were added."""
        first = ledger.add("items", "INSERT", {"id": 1})
        manual_scheduler.advance(5)
        second = ledger.add("items", "INSERT", {"id": 2})

        manual_scheduler.advance(5)
        assert [u.id for u in ledger.get("items")] == [second]

        manual_scheduler.advance(5)
        assert ledger.get("items") == []
        assert ledger.find("items", first) is None

    def test_clear_cancels_timers(self, ledger, manual_scheduler):
        ledger.add("items", "INSERT", {"id": 1})
        ledger.add("items", "INSERT", {"id": 2})
        ledger.add("other", "INSERT", {"id": 3})

        assert ledger.clear("items") == 2

        assert ledger.get("items") == []
        assert len(ledger.get("other")) == 1
        assert len(manual_scheduler.pending) == 1

    def test_clear_all(self, ledger, manual_scheduler):
        ledger.add("items", "INSERT", {"id": 1})
        ledger.add("other", "INSERT", {"id": 2})

        ledger.clear_all()

        assert len(ledger) == 0
        assert manual_scheduler.pending == []


def _update(update_id, update_type, data, confirmed=False):
    return OptimisticUpdate(
        id=update_id,
        type=ChangeEventType(update_type),
        data=data,
        timestamp=0.0,
        confirmed=confirmed,
    )


class TestFindMatchingUpdate:
    """Tests for the matching rule."""

    def test_matches_type_and_identity(self):
        pending = [_update("a", "UPDATE", {"id": 1}), _update("b", "UPDATE", {"id": 2})]
        event = ChangeEvent(ChangeEventType.UPDATE, "items", new={"id": 2})

        assert find_matching_update(pending, event).id == "b"

    def test_oldest_wins(self):
        pending = [_update("a", "INSERT", {"id": 1}), _update("b", "INSERT", {"id": 1})]
        event = ChangeEvent(ChangeEventType.INSERT, "items", new={"id": 1})

        assert find_matching_update(pending, event).id == "a"

    def test_skips_confirmed(self):
        pending = [
            _update("a", "INSERT", {"id": 1}, confirmed=True),
            _update("b", "INSERT", {"id": 1}),
        ]
        event = ChangeEvent(ChangeEventType.INSERT, "items", new={"id": 1})

        assert find_matching_update(pending, event).id == "b"

    def test_type_mismatch(self):
        pending = [_update("a", "INSERT", {"id": 1})]
        event = ChangeEvent(ChangeEventType.DELETE, "items", old={"id": 1})

        assert find_matching_update(pending, event) is None

    def test_delete_uses_old_row(self):
        pending = [_update("a", "DELETE", {"id": 1})]
        event = ChangeEvent(ChangeEventType.DELETE, "items", new=None, old={"id": 1})

        assert find_matching_update(pending, event).id == "a"

    def test_event_without_identity(self):
        pending = [_update("a", "INSERT", {"name": "x"})]
        event = ChangeEvent(ChangeEventType.INSERT, "items", new={"name": "x"})

        assert find_matching_update(pending, event) is None

    def test_custom_identity_field(self):
        pending = [_update("a", "INSERT", {"uuid": "u-1"})]
        event = ChangeEvent(ChangeEventType.INSERT, "items", new={"uuid": "u-1"})

        assert find_matching_update(pending, event, identity_field="uuid").id == "a"


class TestReconciliationEngine:
    def test_reconcile_confirms_one(self, ledger):
        first = ledger.add("items", "INSERT", {"id": 1})
        second = ledger.add("items", "INSERT", {"id": 1})
        engine = ReconciliationEngine(ledger)

        matched = engine.reconcile("items", ChangeEvent(ChangeEventType.INSERT, "items", new={"id": 1}))

        assert matched.id == first
        assert [u.id for u in ledger.pending("items")] == [second]

    def test_reconcile_no_match(self, ledger):
        ledger.add("items", "INSERT", {"id": 1})
        engine = ReconciliationEngine(ledger)

        event = ChangeEvent(ChangeEventType.INSERT, "items", new={"id": 99})

        assert engine.reconcile("items", event) is None
        assert len(ledger.pending("items")) == 1
