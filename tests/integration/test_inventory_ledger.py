"""
Integration tests for the SQLite inventory ledger.
"""
import pytest

from models.inventory import InventoryItem
from procurement.errors import LedgerError, NotFound
from procurement.inventory_ledger import InventoryLedger


@pytest.mark.integration
class TestInventoryLedger:

    def test_seeded_from_csv(self, ledger):
        items = ledger.list_items()

        assert [i.id for i in items] == ["INV-001", "INV-002", "INV-003"]
        cable = ledger.get_item("INV-001")
        assert cable.quantity == 100
        assert cable.price_per_unit == 4.5
        assert cable.location == "Aisle 1"
        assert ledger.get_item("INV-003").status == "Critical"

    def test_seed_only_when_empty(self, ledger, test_config, temp_dir):
        """Test a restart does not re-import the CSV over live quantities."""
        ledger.adjust_quantity("INV-001", 5)
        other_csv = temp_dir / "other.csv"
        other_csv.write_text("id,name,quantity,price_per_unit,reorder_level,location\nINV-900,Other,1,1,0,\n")

        reopened = InventoryLedger(test_config.db_path, seed_csv=other_csv)

        assert reopened.get_item("INV-001").quantity == 105
        with pytest.raises(NotFound):
            reopened.get_item("INV-900")

    def test_missing_csv_starts_empty(self, temp_dir):
        ledger = InventoryLedger(temp_dir / "db" / "inv.db", seed_csv=temp_dir / "missing.csv")
        assert ledger.list_items() == []

    def test_adjust_quantity(self, ledger):
        assert ledger.adjust_quantity("INV-002", 7) == 27
        assert ledger.adjust_quantity("INV-002", -27) == 0
        assert ledger.get_item("INV-002").quantity == 0

    def test_adjust_below_zero_refused(self, ledger):
        with pytest.raises(LedgerError) as exc:
            ledger.adjust_quantity("INV-002", -21)

        assert exc.value.detail["item_id"] == "INV-002"
        assert ledger.get_item("INV-002").quantity == 20

    def test_adjust_unknown_item(self, ledger):
        with pytest.raises(NotFound):
            ledger.adjust_quantity("INV-404", 1)

    def test_add_item(self, ledger):
        ledger.add_item(InventoryItem(id="INV-010", name="Tape", quantity=3, price_per_unit=2.0, reorder_level=5))

        item = ledger.get_item("INV-010")
        assert item.name == "Tape"
        assert item.status == "Low Stock"
