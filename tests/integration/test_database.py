"""
Integration tests for database operations.
"""
import pytest

from models.purchase_order import POLineItem, PurchaseOrder
from procurement.errors import Conflict, NotFound, ValidationError


def _po(po_id: str = "", status: str = "Draft", total: float = 100.0, **extra) -> PurchaseOrder:
    po = PurchaseOrder(
        id=po_id,
        supplier_id="SUP-001",
        supplier_name="TechSource Electronics",
        bill_number=extra.pop("bill_number", ""),
        po_date="2030-01-01",
        created_date="2030-01-01",
        status=status,
        items=[POLineItem(inventory_item_id="INV-001", item_name="Cable", quantity=1, unit_price=total)],
        **extra,
    )
    po.recompute_totals()
    return po


@pytest.mark.integration
class TestDatabase:
    """Integration tests for Database class."""

    def test_insert_and_get(self, test_db):
        """Test inserting and retrieving a purchase order."""
        saved = test_db.insert_purchase_order(_po())

        assert saved.id == "PO-001"
        assert saved.revision == 1

        po = test_db.get_purchase_order("PO-001")
        assert po is not None
        assert po.supplier_name == "TechSource Electronics"
        assert po.items[0].total_price == 100.0

    def test_get_missing_returns_none(self, test_db):
        assert test_db.get_purchase_order("PO-404") is None

    def test_sequential_ids(self, test_db):
        ids = [test_db.insert_purchase_order(_po()).id for _ in range(3)]
        assert ids == ["PO-001", "PO-002", "PO-003"]

    def test_id_prefix_and_width(self, test_config):
        from procurement.database import Database

        db = Database(test_config.db_path, id_prefix="PUR-", id_width=5)
        assert db.insert_purchase_order(_po()).id == "PUR-00001"

    def test_duplicate_id_rejected(self, test_db):
        test_db.insert_purchase_order(_po("PO-010"))
        with pytest.raises(ValidationError) as exc:
            test_db.insert_purchase_order(_po("PO-010"))
        assert exc.value.field == "id"

    def test_save_bumps_revision(self, test_db):
        po = test_db.insert_purchase_order(_po())
        saved = test_db.save_purchase_order(po.model_copy(update={"notes": "hi"}), expected_revision=1)

        assert saved.revision == 2
        stored = test_db.get_purchase_order(po.id)
        assert stored.revision == 2
        assert stored.notes == "hi"

    def test_save_with_stale_revision_conflicts(self, test_db):
        """Test two writers racing on the same PO: the second loses."""
        po = test_db.insert_purchase_order(_po())
        test_db.save_purchase_order(po.model_copy(update={"notes": "first"}), expected_revision=1)

        with pytest.raises(Conflict) as exc:
            test_db.save_purchase_order(po.model_copy(update={"notes": "second"}), expected_revision=1)

        assert exc.value.expected == 1
        assert exc.value.actual == 2
        assert test_db.get_purchase_order(po.id).notes == "first"

    def test_save_missing_raises_not_found(self, test_db):
        with pytest.raises(NotFound):
            test_db.save_purchase_order(_po("PO-404"), expected_revision=1)

    def test_delete(self, test_db):
        po = test_db.insert_purchase_order(_po())

        assert test_db.delete_purchase_order(po.id) is True
        assert test_db.delete_purchase_order(po.id) is False
        assert test_db.get_purchase_order(po.id) is None

    def test_delete_with_stale_revision_conflicts(self, test_db):
        po = test_db.insert_purchase_order(_po())
        test_db.save_purchase_order(po, expected_revision=1)

        with pytest.raises(Conflict):
            test_db.delete_purchase_order(po.id, expected_revision=1)
        assert test_db.get_purchase_order(po.id) is not None

    def test_list_filters(self, test_db):
        test_db.insert_purchase_order(_po(status="Draft", bill_number="BILL-9"))
        test_db.insert_purchase_order(_po(status="Ordered"))
        test_db.insert_purchase_order(_po(status="Cancelled", archived=True))

        assert len(test_db.list_purchase_orders()) == 2
        assert [p.id for p in test_db.list_purchase_orders(status="Ordered")] == ["PO-002"]
        assert [p.id for p in test_db.list_purchase_orders(archived=True)] == ["PO-003"]
        assert len(test_db.list_purchase_orders(archived=None)) == 3
        assert [p.id for p in test_db.list_purchase_orders(search="bill-9")] == ["PO-001"]

    def test_list_pagination(self, test_db):
        for _ in range(5):
            test_db.insert_purchase_order(_po())

        page = test_db.list_purchase_orders(limit=2, offset=2, archived=None)
        assert len(page) == 2

    def test_stats(self, test_db):
        test_db.insert_purchase_order(_po(status="Draft", total=10))
        test_db.insert_purchase_order(_po(status="Pending Approval", total=20))
        test_db.insert_purchase_order(_po(status="Approved", total=30))
        test_db.insert_purchase_order(_po(status="Ordered", total=40))
        test_db.insert_purchase_order(_po(status="Received", total=50))
        test_db.insert_purchase_order(_po(status="Cancelled", total=60, archived=True))

        stats = test_db.get_stats()

        assert stats["total"] == 6
        assert stats["draft"] == 1
        assert stats["pending_approval"] == 1
        assert stats["received"] == 1
        assert stats["archived"] == 1
        assert stats["total_value"] == 210.0
        assert stats["pending_value"] == 90.0

    def test_stats_empty(self, test_db):
        stats = test_db.get_stats()
        assert stats["total"] == 0
        assert stats["total_value"] == 0

    def test_audit_log(self, test_db):
        test_db.log_audit("PO-001", "created", actor="alice", detail={"total_amount": 10})
        test_db.log_audit("PO-001", "submitted", actor="alice")
        test_db.log_audit("PO-002", "created", actor="bob")

        entries = test_db.get_audit_log("PO-001")
        assert [e.action for e in entries] == ["created", "submitted"]
        assert entries[0].detail == {"total_amount": 10}
        assert entries[1].detail is None

        recent = test_db.get_recent_audit_log(limit=1)
        assert len(recent) == 1
        assert recent[0].po_id == "PO-002"

    def test_ping(self, test_db):
        test_db.ping()
