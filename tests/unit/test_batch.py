"""
Unit tests for batch operations.
"""
import sqlite3
import threading

import pytest

from procurement.batch import BatchCoordinator
from procurement.errors import NotFound, ValidationError


def _drafts(service, actor, future_date, count):
    return [
        service.create(actor, "SUP-001", [{"inventory_item_id": "INV-001", "quantity": 1}], future_date).id
        for _ in range(count)
    ]


@pytest.mark.unit
class TestBatchCoordinator:
    """Tests for BatchCoordinator independent of any entity."""

    def test_failures_are_accumulated(self):
        def op(item_id):
            if item_id == "B":
                raise NotFound("Thing", item_id)

        result = BatchCoordinator().apply_batch(["A", "B", "C"], op)

        assert result.success_count == 2
        assert result.failed_count == 1
        assert result.succeeded_ids == ["A", "C"]
        assert result.errors[0].id == "B"
        assert result.errors[0].error == "not_found"
        assert not result.success

    def test_ids_deduplicated_in_order(self):
        seen = []
        result = BatchCoordinator().apply_batch(["B", "A", "B", " ", "A"], seen.append)

        assert seen == ["B", "A"]
        assert result.success_count == 2

    def test_empty_batch(self):
        result = BatchCoordinator().apply_batch([], lambda i: None)
        assert result.success_count == 0
        assert result.failed_count == 0

    def test_store_error_aborts(self):
        def op(item_id):
            raise sqlite3.OperationalError("disk I/O error")

        with pytest.raises(sqlite3.OperationalError):
            BatchCoordinator().apply_batch(["A", "B"], op)

    def test_failed_ping_aborts_before_any_operation(self):
        calls = []

        def ping():
            raise sqlite3.OperationalError("unable to open database file")

        with pytest.raises(sqlite3.OperationalError):
            BatchCoordinator(ping=ping).apply_batch(["A"], calls.append)
        assert calls == []

    def test_concurrent_execution(self):
        lock = threading.Lock()
        seen = set()

        def op(item_id):
            if item_id.endswith("7"):
                raise ValidationError("bad", field="id")
            with lock:
                seen.add(item_id)

        ids = [f"PO-{n:03d}" for n in range(1, 21)]
        result = BatchCoordinator(max_workers=4).apply_batch(ids, op)

        assert result.success_count == 18
        assert result.failed_count == 2
        assert sorted(e.id for e in result.errors) == ["PO-007", "PO-017"]
        # Results keep the input order regardless of completion order
        assert result.succeeded_ids == [i for i in ids if not i.endswith("7")]
        assert len(seen) == 18


@pytest.mark.unit
class TestServiceBatch:
    """Tests for PurchasingService.batch."""

    def test_delete_with_missing_id(self, service, admin, future_date):
        a, c = _drafts(service, admin, future_date, 2)

        result = service.batch(admin, [a, "PO-404", c], "delete")

        assert result.success_count == 2
        assert result.failed_count == 1
        assert result.errors[0].id == "PO-404"
        assert result.errors[0].error == "not_found"
        assert service.db.get_purchase_order(a) is None
        assert service.db.get_purchase_order(c) is None

    def test_archive_mixed_statuses(self, service, admin, ordered_po, future_date):
        (draft,) = _drafts(service, admin, future_date, 1)

        result = service.batch(admin, [draft, ordered_po.id], "archive")

        assert result.succeeded_ids == [draft]
        assert result.errors[0].id == ordered_po.id
        assert result.errors[0].error == "invalid_transition"

    def test_workflow_batch(self, service, admin, future_date):
        ids = _drafts(service, admin, future_date, 3)

        for operation in ("submit", "approve", "mark_ordered"):
            assert service.batch(admin, ids, operation).success_count == 3

        assert {service.get(admin, i).status for i in ids} == {"Ordered"}

    def test_purge_needs_owner(self, service, admin, owner, future_date):
        ids = _drafts(service, admin, future_date, 2)
        service.batch(admin, ids, "archive")

        denied = service.batch(admin, ids, "permanently_delete")
        assert denied.failed_count == 2
        assert {e.error for e in denied.errors} == {"forbidden"}

        assert service.batch(owner, ids, "permanently_delete").success_count == 2

    def test_shipping_status(self, service, admin, draft_po):
        result = service.batch(admin, [draft_po.id], "shipping_status", value="Shipped")

        assert result.success
        po = service.get(admin, draft_po.id)
        assert po.shipping_status == "Shipped"
        assert po.status == "Draft"

    def test_shipping_status_needs_value(self, service, admin, draft_po):
        with pytest.raises(ValidationError) as exc:
            service.batch(admin, [draft_po.id], "shipping_status")
        assert exc.value.field == "value"

    def test_unknown_operation(self, service, admin, draft_po):
        with pytest.raises(ValidationError) as exc:
            service.batch(admin, [draft_po.id], "explode")
        assert exc.value.field == "operation"
