"""
Unit tests for the supplier directory.
"""
import pytest

from procurement.errors import NotFound
from procurement.supplier_directory import SupplierDirectory


@pytest.mark.unit
class TestSupplierDirectory:
    """Tests for SupplierDirectory class."""

    def test_load_suppliers_from_csv(self, sample_suppliers_csv):
        """Test loading suppliers from CSV."""
        directory = SupplierDirectory(sample_suppliers_csv)

        assert len(directory.suppliers) == 3
        sup = directory.get("SUP-001")
        assert sup.name == "TechSource Electronics"
        assert sup.country == "United States"
        assert sup.city == "Austin"
        assert sup.aliases == ["TechSource", "Tech Source LLC"]
        assert sup.phone is None

    def test_inactive_status_parsed(self, sample_suppliers_csv):
        directory = SupplierDirectory(sample_suppliers_csv)

        assert directory.get("SUP-004").is_active is False
        assert directory.get("SUP-002").is_active is True

    def test_get_unknown_raises_not_found(self, sample_suppliers_csv):
        directory = SupplierDirectory(sample_suppliers_csv)

        with pytest.raises(NotFound) as exc:
            directory.get("SUP-999")
        assert exc.value.entity_id == "SUP-999"

    def test_find_by_alias(self, sample_suppliers_csv):
        """Test exact alias matching is case-insensitive."""
        directory = SupplierDirectory(sample_suppliers_csv)

        assert directory.find("northwind").id == "SUP-002"
        assert directory.find("Tech Source LLC").id == "SUP-001"

    def test_find_fuzzy_name(self, sample_suppliers_csv):
        directory = SupplierDirectory(sample_suppliers_csv)

        result = directory.find("Techsource Electronic")

        assert result is not None
        assert result.id == "SUP-001"

    def test_find_no_match(self, sample_suppliers_csv):
        directory = SupplierDirectory(sample_suppliers_csv)

        assert directory.find("Completely Unrelated Bakery") is None
        assert directory.find("") is None

    def test_missing_csv_gives_empty_directory(self, temp_dir):
        """Test a missing CSV is tolerated and yields no suppliers."""
        directory = SupplierDirectory(temp_dir / "nope.csv")

        assert directory.suppliers == {}
        assert directory.find("TechSource") is None


@pytest.mark.unit
class TestFindSupplier:
    """Tests for name lookup through the purchasing service."""

    def test_resolves_alias(self, service, viewer):
        assert service.find_supplier(viewer, "tech source llc").id == "SUP-001"

    def test_no_match_raises_not_found(self, service, viewer):
        with pytest.raises(NotFound) as exc:
            service.find_supplier(viewer, "Completely Unrelated Bakery")
        assert exc.value.entity == "Supplier"

    def test_created_po_uses_resolved_supplier(self, service, admin, future_date):
        supplier = service.find_supplier(admin, "Northwind")
        po = service.create(admin, supplier.id, [{"inventory_item_id": "INV-003", "quantity": 10}], future_date)

        assert po.supplier_id == "SUP-002"
        assert po.supplier_name == "Northwind Packaging"
