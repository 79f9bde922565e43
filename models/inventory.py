from pydantic import BaseModel
from typing import Literal


StockStatus = Literal["In Stock", "Low Stock", "Critical"]


def stock_status(quantity: int, reorder_level: int) -> StockStatus:
    """Classify on-hand stock against the item's reorder level."""
    if quantity <= 0:
        return "Critical"
    if quantity <= reorder_level:
        return "Low Stock"
    return "In Stock"


class InventoryItem(BaseModel):
    """One row of the inventory ledger."""
    id: str                     # e.g. "INV-001"
    name: str
    quantity: int = 0
    price_per_unit: float = 0.0
    reorder_level: int = 0
    location: str = ""

    @property
    def status(self) -> StockStatus:
        return stock_status(self.quantity, self.reorder_level)
