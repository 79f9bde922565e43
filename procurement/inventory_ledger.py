"""
Inventory ledger: per-item on-hand quantity and unit cost.

The purchasing core treats the ledger as an external collaborator and only
uses two calls:

    get_item(item_id)                -> InventoryItem
    adjust_quantity(item_id, delta)  -> new on-hand quantity

This implementation keeps the ledger in its own ``inventory_items`` table
(same SQLite file as the PO store, separate transactions).  On first start
the table is seeded from inventory.csv:

    id, name, quantity, price_per_unit, reorder_level, location
"""
import csv
import logging
import re
from pathlib import Path
from typing import Optional, Protocol

from models.inventory import InventoryItem
from .database import connect
from .errors import LedgerError, NotFound

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS inventory_items (
    id              TEXT PRIMARY KEY,
    name            TEXT    NOT NULL,
    quantity        INTEGER NOT NULL DEFAULT 0,
    price_per_unit  REAL    NOT NULL DEFAULT 0,
    reorder_level   INTEGER NOT NULL DEFAULT 0,
    location        TEXT    NOT NULL DEFAULT ''
);
"""


class Ledger(Protocol):
    """What the receiving reconciler and lifecycle engine need from a ledger."""

    def get_item(self, item_id: str) -> InventoryItem: ...

    def adjust_quantity(self, item_id: str, delta: int) -> int: ...


class InventoryLedger:
    """SQLite-backed inventory ledger."""

    def __init__(self, db_path: Path, seed_csv: Optional[str | Path] = None) -> None:
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        with connect(self.db_path) as conn:
            conn.executescript(_SCHEMA)
        if seed_csv is not None:
            self._seed(Path(seed_csv))

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _seed(self, path: Path) -> None:
        with connect(self.db_path) as conn:
            existing = conn.execute("SELECT COUNT(*) FROM inventory_items").fetchone()[0]
        if existing:
            return
        if not path.exists():
            logger.warning("Inventory CSV not found: %s; ledger starts empty", path)
            return

        items: list[InventoryItem] = []
        with open(path, newline="", encoding="utf-8") as f:
            for row in csv.DictReader(f):
                items.append(InventoryItem(
                    id=row["id"].strip(),
                    name=row["name"].strip(),
                    quantity=_to_int(row.get("quantity")),
                    price_per_unit=_to_float(row.get("price_per_unit")),
                    reorder_level=_to_int(row.get("reorder_level")),
                    location=(row.get("location") or "").strip(),
                ))
        for item in items:
            self.add_item(item)
        logger.info("Seeded %d inventory items from %s", len(items), path.name)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add_item(self, item: InventoryItem) -> None:
        with connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO inventory_items
                       (id, name, quantity, price_per_unit, reorder_level, location)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (item.id, item.name, item.quantity, item.price_per_unit,
                 item.reorder_level, item.location),
            )

    def get_item(self, item_id: str) -> InventoryItem:
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM inventory_items WHERE id = ?", (item_id,)
            ).fetchone()
        if row is None:
            raise NotFound("Inventory item", item_id)
        return InventoryItem(**dict(row))

    def list_items(self) -> list[InventoryItem]:
        with connect(self.db_path) as conn:
            rows = conn.execute("SELECT * FROM inventory_items ORDER BY id").fetchall()
        return [InventoryItem(**dict(r)) for r in rows]

    def adjust_quantity(self, item_id: str, delta: int) -> int:
        """
        Add *delta* (may be negative) to the on-hand quantity in one
        statement and return the new quantity.  On-hand stock never goes
        below zero; such an adjustment raises LedgerError and changes nothing.
        """
        with connect(self.db_path) as conn:
            conn.execute(
                """UPDATE inventory_items SET quantity = quantity + ?
                   WHERE id = ? AND quantity + ? >= 0""",
                (delta, item_id, delta),
            )
            if conn.execute("SELECT changes()").fetchone()[0] == 0:
                row = conn.execute(
                    "SELECT quantity FROM inventory_items WHERE id = ?", (item_id,)
                ).fetchone()
                if row is None:
                    raise NotFound("Inventory item", item_id)
                raise LedgerError(
                    f"Adjusting {item_id} by {delta} would leave {row['quantity'] + delta} on hand",
                    item_id=item_id,
                    delta=delta,
                )
            new_qty = conn.execute(
                "SELECT quantity FROM inventory_items WHERE id = ?", (item_id,)
            ).fetchone()[0]

        logger.debug("Ledger %s %+d -> %d", item_id, delta, new_qty)
        return new_qty


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _to_float(value: Optional[str]) -> float:
    if not value or not str(value).strip():
        return 0.0
    cleaned = re.sub(r"[^\d.\-]", "", str(value))
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def _to_int(value: Optional[str]) -> int:
    return int(_to_float(value))
