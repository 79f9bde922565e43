"""
Unit tests for the purchase order, inventory and result models.
"""
import pytest

from models.inventory import InventoryItem, stock_status
from models.purchase_order import POLineItem, PurchaseOrder
from models.result import BatchError, BatchResult, InventoryUpdate


def _po(**overrides) -> PurchaseOrder:
    data = dict(
        id="PO-001",
        supplier_id="SUP-001",
        supplier_name="TechSource Electronics",
        po_date="2030-01-01",
        created_date="2030-01-01",
        items=[
            POLineItem(inventory_item_id="INV-001", item_name="Cable", quantity=10, unit_price=4.5),
            POLineItem(inventory_item_id="INV-002", item_name="Mouse", quantity=5, unit_price=18.0),
        ],
    )
    data.update(overrides)
    return PurchaseOrder(**data)


@pytest.mark.unit
class TestPOLineItem:

    def test_total_price_is_computed(self):
        item = POLineItem(inventory_item_id="INV-001", item_name="Cable", quantity=3, unit_price=0.1)
        assert item.total_price == 0.3

    def test_total_price_ignores_supplied_value(self):
        """Test a stale total_price in stored data is recomputed on load."""
        item = POLineItem.model_validate(
            {"inventory_item_id": "INV-001", "item_name": "Cable", "quantity": 2, "unit_price": 5, "total_price": 999}
        )
        assert item.total_price == 10.0

    def test_remaining_and_fully_received(self):
        item = POLineItem(inventory_item_id="INV-001", item_name="Cable", quantity=5, unit_price=1, quantity_received=3)
        assert item.remaining == 2
        assert not item.fully_received

        item.quantity_received = 5
        assert item.remaining == 0
        assert item.fully_received


@pytest.mark.unit
class TestPurchaseOrder:

    def test_recompute_totals(self):
        po = _po(total_paid=35.0)
        po.recompute_totals()

        assert po.total_amount == 135.0
        assert po.po_balance == 100.0

    def test_balance_can_go_negative(self):
        po = _po(total_paid=200.0)
        po.recompute_totals()

        assert po.po_balance == -65.0

    def test_get_item(self):
        po = _po()
        assert po.get_item("INV-002").item_name == "Mouse"
        assert po.get_item("INV-999") is None

    def test_fully_received_needs_items(self):
        assert not _po(items=[]).fully_received

    def test_json_round_trip_keeps_revision(self):
        po = _po(revision=7, status="Ordered")
        restored = PurchaseOrder.model_validate_json(po.model_dump_json())
        assert restored.revision == 7
        assert restored.status == "Ordered"

    def test_unknown_status_rejected(self):
        with pytest.raises(Exception):
            _po(status="Shipped")


@pytest.mark.unit
class TestInventory:

    @pytest.mark.parametrize("quantity,reorder,expected", [
        (0, 10, "Critical"),
        (-1, 10, "Critical"),
        (10, 10, "Low Stock"),
        (11, 10, "In Stock"),
    ])
    def test_stock_status(self, quantity, reorder, expected):
        assert stock_status(quantity, reorder) == expected

    def test_item_status_property(self):
        item = InventoryItem(id="INV-001", name="Cable", quantity=3, reorder_level=5)
        assert item.status == "Low Stock"


@pytest.mark.unit
class TestResults:

    def test_inventory_update_describe(self):
        update = InventoryUpdate(item_id="INV-001", item_name="USB-C Cable 1m", previous_qty=100, new_qty=110)
        assert update.describe() == "USB-C Cable 1m: 100 → 110"

    def test_batch_result_success_flag(self):
        assert BatchResult(success_count=2).success
        failed = BatchResult(
            success_count=1,
            failed_count=1,
            errors=[BatchError(id="PO-002", error="not_found", message="gone")],
        )
        assert not failed.success
