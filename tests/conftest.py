"""
Pytest configuration and shared fixtures for the purchasing test suite.
"""
import os
import shutil
import tempfile
from datetime import date, timedelta
from pathlib import Path
from typing import Generator

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)


SUPPLIERS_CSV = """id,name,country,city,status,contact,email,phone,aliases
SUP-001,TechSource Electronics,United States,Austin,Active,Dana Reyes,orders@techsource.example,,TechSource|Tech Source LLC
SUP-002,Northwind Packaging,Canada,Toronto,Active,,sales@northwind.example,,Northwind
SUP-004,Legacy Components,Germany,Hamburg,Inactive,,,,
"""

INVENTORY_CSV = """id,name,quantity,price_per_unit,reorder_level,location
INV-001,USB-C Cable 1m,100,4.50,50,Aisle 1
INV-002,Wireless Mouse,20,18.00,20,Aisle 2
INV-003,Shipping Box (Medium),0,0.85,200,Dock B
"""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="procurement_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def sample_suppliers_csv(temp_dir: Path) -> Path:
    csv_path = temp_dir / "data" / "suppliers.csv"
    csv_path.parent.mkdir(parents=True, exist_ok=True)
    csv_path.write_text(SUPPLIERS_CSV)
    return csv_path


@pytest.fixture
def sample_inventory_csv(temp_dir: Path) -> Path:
    csv_path = temp_dir / "data" / "inventory.csv"
    csv_path.parent.mkdir(parents=True, exist_ok=True)
    csv_path.write_text(INVENTORY_CSV)
    return csv_path


@pytest.fixture
def test_config(temp_dir: Path, sample_suppliers_csv: Path, sample_inventory_csv: Path, monkeypatch) -> "Config":
    """Provide a test configuration with isolated directories."""
    from config import Config

    # Keep any real procurement_settings.json out of the tests
    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))

    config = Config()
    config.db_path = temp_dir / "output" / "procurement.db"
    config.suppliers_csv = sample_suppliers_csv
    config.inventory_csv = sample_inventory_csv
    config.require_future_delivery = True
    config.require_revision = False
    config.batch_max_workers = 1
    config.ensure_output_dir()
    return config


@pytest.fixture
def test_db(test_config) -> "Database":
    """Provide a test database instance."""
    from procurement.database import Database
    return Database(test_config.db_path)


@pytest.fixture
def ledger(test_config) -> "InventoryLedger":
    from procurement.inventory_ledger import InventoryLedger
    return InventoryLedger(test_config.db_path, seed_csv=test_config.inventory_csv)


@pytest.fixture
def service(test_config) -> "PurchasingService":
    from procurement import PurchasingService
    return PurchasingService(test_config)


@pytest.fixture
def owner():
    from procurement import Actor
    return Actor(user_id="olivia", role="Owner")


@pytest.fixture
def admin():
    from procurement import Actor
    return Actor(user_id="alice", role="Admin")


@pytest.fixture
def operator():
    from procurement import Actor
    return Actor(user_id="oscar", role="Operator")


@pytest.fixture
def viewer():
    from procurement import Actor
    return Actor(user_id="victor", role="Viewer")


@pytest.fixture
def future_date() -> str:
    return (date.today() + timedelta(days=30)).isoformat()


@pytest.fixture
def draft_po(service, admin, future_date):
    """A Draft PO: 10 x INV-001 @ 4.50 and 5 x INV-002 @ 18.00 (total 135.00)."""
    return service.create(
        admin,
        "SUP-001",
        [
            {"inventory_item_id": "INV-001", "quantity": 10},
            {"inventory_item_id": "INV-002", "quantity": 5},
        ],
        future_date,
        notes="Restock",
    )


@pytest.fixture
def ordered_po(service, admin, draft_po):
    """The draft_po moved through approval to Ordered."""
    service.submit_for_approval(admin, draft_po.id)
    service.approve(admin, draft_po.id)
    return service.mark_as_ordered(admin, draft_po.id)


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API tests")
    config.addinivalue_line("markers", "slow: Slow tests")
