"""
Pydantic models for dashboard API requests.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from models.purchase_order import POLineItemInput, ShippingStatus


class POCreate(BaseModel):
    supplier_id: str
    items: list[POLineItemInput] = Field(default_factory=list)
    expected_delivery_date: Optional[str] = None    # YYYY-MM-DD
    notes: str = ""
    bill_number: str = ""
    po_date: Optional[str] = None                   # default: today
    total_paid: float = 0.0
    id: Optional[str] = None                        # default: next PO-nnn


class POUpdate(BaseModel):
    """Only the fields present in the request body are changed."""
    model_config = ConfigDict(extra="forbid")

    items: Optional[list[POLineItemInput]] = None
    supplier_id: Optional[str] = None
    po_date: Optional[str] = None
    notes: Optional[str] = None
    bill_number: Optional[str] = None
    expected_delivery_date: Optional[str] = None
    shipping_status: Optional[ShippingStatus] = None
    total_paid: Optional[float] = None
    expected_revision: Optional[int] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={"expected_revision"})


class ReceiveRequest(BaseModel):
    received_items: dict[str, float]    # { inventory_item_id: quantity arriving now }
    actual_cost: Optional[float] = None
    expected_revision: Optional[int] = None


class BatchRequest(BaseModel):
    ids: list[str]
    value: Optional[str] = None         # shipping_status batches only
