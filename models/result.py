from pydantic import BaseModel, Field
from typing import Optional, List

from .purchase_order import PurchaseOrder


class InventoryUpdate(BaseModel):
    """One ledger adjustment applied while receiving a PO."""
    item_id: str
    item_name: str
    previous_qty: int
    new_qty: int

    def describe(self) -> str:
        return f"{self.item_name}: {self.previous_qty} → {self.new_qty}"


class ReceiveResult(BaseModel):
    """
    The outcome of receiving against a PO: the updated record plus every
    inventory adjustment made, so callers can report "item: old → new".
    """
    purchase_order: PurchaseOrder
    inventory_updates: List[InventoryUpdate] = Field(default_factory=list)


class BatchError(BaseModel):
    """A single record that failed inside a batch operation."""
    id: str
    error: str                          # ProcurementError.code, e.g. "not_found"
    message: str


class BatchResult(BaseModel):
    """Per-record accounting for a batch operation.  Never raised for partial failure."""
    success_count: int = 0
    failed_count: int = 0
    errors: List[BatchError] = Field(default_factory=list)
    succeeded_ids: List[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed_count == 0


class AuditEntry(BaseModel):
    """One row of the PO audit log."""
    id: int
    po_id: str
    timestamp: str                      # ISO 8601 UTC
    action: str
    actor: str
    detail: Optional[dict] = None
