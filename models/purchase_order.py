from pydantic import BaseModel, Field
from typing import Optional, List, Literal


POStatus = Literal[
    "Draft",
    "Pending Approval",
    "Approved",
    "Rejected",
    "Ordered",
    "Partially Received",
    "Received",
    "Cancelled",
]

# Delivery tracking label.  Purely informational: it never drives or
# follows the approval status above.
ShippingStatus = Literal[
    "Pending",
    "Processing",
    "Shipped",
    "In Transit",
    "Out for Delivery",
    "Delivered",
    "Failed",
    "Returned",
]

STATUS_DRAFT              = "Draft"
STATUS_PENDING_APPROVAL   = "Pending Approval"
STATUS_APPROVED           = "Approved"
STATUS_REJECTED           = "Rejected"
STATUS_ORDERED            = "Ordered"
STATUS_PARTIALLY_RECEIVED = "Partially Received"
STATUS_RECEIVED           = "Received"
STATUS_CANCELLED          = "Cancelled"

ALL_STATUSES = (
    STATUS_DRAFT, STATUS_PENDING_APPROVAL, STATUS_APPROVED, STATUS_REJECTED,
    STATUS_ORDERED, STATUS_PARTIALLY_RECEIVED, STATUS_RECEIVED, STATUS_CANCELLED,
)
SHIPPING_STATUSES = (
    "Pending", "Processing", "Shipped", "In Transit",
    "Out for Delivery", "Delivered", "Failed", "Returned",
)

# Statuses a PO may be archived or hard-deleted from
INACTIVE_STATUSES = frozenset({STATUS_DRAFT, STATUS_CANCELLED, STATUS_REJECTED})
# Statuses that accept receipts
RECEIVABLE_STATUSES = frozenset({STATUS_ORDERED, STATUS_PARTIALLY_RECEIVED})


def money(value: float) -> float:
    """Round a monetary amount to cents."""
    return round(value, 2)


class POLineItem(BaseModel):
    """A single line item on a Purchase Order."""
    inventory_item_id: str
    item_name: str
    quantity: int
    unit_price: float
    total_price: float = 0.0
    quantity_received: int = 0

    def model_post_init(self, __context) -> None:
        self.total_price = money(self.quantity * self.unit_price)

    @property
    def remaining(self) -> int:
        return self.quantity - self.quantity_received

    @property
    def fully_received(self) -> bool:
        return self.quantity_received >= self.quantity


class POLineItemInput(BaseModel):
    """
    A requested line on create/edit.  item_name and unit_price default to
    the inventory ledger's name and price_per_unit when omitted.
    """
    inventory_item_id: str
    quantity: float
    unit_price: Optional[float] = None
    item_name: Optional[str] = None


class PurchaseOrder(BaseModel):
    """
    A Purchase Order owned by the PO store.

    Supplier fields are a snapshot taken at creation/edit time, not a live
    link to the supplier directory.  ``archived`` is a soft-delete overlay
    independent of ``status``.
    """
    id: str
    supplier_id: str
    supplier_name: str
    supplier_country: str = ""
    supplier_city: str = ""
    bill_number: str = ""
    po_date: str                            # YYYY-MM-DD
    created_date: str                       # YYYY-MM-DD
    expected_delivery_date: Optional[str] = None
    received_date: Optional[str] = None
    items: List[POLineItem] = Field(default_factory=list)
    status: POStatus = STATUS_DRAFT
    shipping_status: ShippingStatus = "Pending"
    total_amount: float = 0.0
    actual_cost: Optional[float] = None     # set by receiving; replaces total_amount
    total_paid: float = 0.0
    po_balance: float = 0.0
    notes: str = ""
    archived: bool = False
    archived_at: Optional[str] = None       # ISO 8601 datetime
    created_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_date: Optional[str] = None
    revision: int = 1

    @property
    def items_total(self) -> float:
        return money(sum(item.total_price for item in self.items))

    @property
    def fully_received(self) -> bool:
        return bool(self.items) and all(item.fully_received for item in self.items)

    def get_item(self, inventory_item_id: str) -> Optional[POLineItem]:
        for item in self.items:
            if item.inventory_item_id == inventory_item_id:
                return item
        return None

    def recompute_totals(self) -> None:
        """Reset total_amount from the line items and refresh the balance."""
        self.total_amount = self.items_total
        self.recompute_balance()

    def recompute_balance(self) -> None:
        # Overpayment leaves a negative balance; no clamping.
        self.po_balance = money(self.total_amount - self.total_paid)
