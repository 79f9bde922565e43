from .purchase_order import PurchaseOrder, POLineItem, POLineItemInput, POStatus, ShippingStatus
from .supplier import Supplier
from .inventory import InventoryItem
from .result import InventoryUpdate, ReceiveResult, BatchError, BatchResult, AuditEntry

__all__ = [
    "PurchaseOrder", "POLineItem", "POLineItemInput", "POStatus", "ShippingStatus",
    "Supplier",
    "InventoryItem",
    "InventoryUpdate", "ReceiveResult", "BatchError", "BatchResult", "AuditEntry",
]
