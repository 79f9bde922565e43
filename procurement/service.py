"""
Purchasing service.

PurchasingService wires the PO store, inventory ledger, supplier directory,
lifecycle engine, receiving reconciler and batch coordinator into the single
object the CLI and the dashboard talk to.

    service = PurchasingService(Config())
    po = service.create(actor, "SUP-001", [{"inventory_item_id": "INV-001", "quantity": 10}], "2030-01-01")
    service.submit_for_approval(actor, po.id)
"""
import logging
from typing import Any, Callable, Iterable, Optional

from config import Config
from models.inventory import InventoryItem
from models.purchase_order import PurchaseOrder
from models.result import AuditEntry, BatchResult, ReceiveResult
from models.supplier import Supplier
from .batch import BatchCoordinator
from .database import Database
from .errors import NotFound, ValidationError
from .guards import authorize, load_po
from .inventory_ledger import InventoryLedger, Ledger
from .lifecycle import LifecycleEngine
from .permissions import Actor, PO_READ
from .receiving import ReceivingReconciler
from .supplier_directory import SupplierDirectory

logger = logging.getLogger(__name__)

BATCH_OPERATIONS = (
    "delete", "archive", "restore", "permanently_delete", "submit",
    "approve", "reject", "mark_ordered", "cancel", "shipping_status",
)


class PurchasingService:

    def __init__(
        self,
        config: Optional[Config] = None,
        ledger: Optional[Ledger] = None,
        directory: Optional[SupplierDirectory] = None,
    ):
        self.config = config or Config()
        self.config.ensure_output_dir()

        self.db = Database(
            self.config.db_path,
            id_prefix=self.config.po_id_prefix,
            id_width=self.config.po_id_width,
        )
        self.ledger = ledger or InventoryLedger(self.config.db_path, seed_csv=self.config.inventory_csv)
        self.directory = directory or SupplierDirectory(self.config.suppliers_csv)

        self.lifecycle = LifecycleEngine(self.db, self.ledger, self.directory, self.config)
        self.receiving = ReceivingReconciler(self.db, self.ledger)
        self.batches = BatchCoordinator(self.config.batch_max_workers, ping=self.db.ping)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, actor: Actor, po_id: str) -> PurchaseOrder:
        authorize(actor, PO_READ)
        return load_po(self.db, po_id)

    def list_orders(
        self,
        actor: Actor,
        status: Optional[str] = None,
        archived: Optional[bool] = False,
        search: Optional[str] = None,
        limit: int = 500,
        offset: int = 0,
    ) -> list[PurchaseOrder]:
        authorize(actor, PO_READ)
        return self.db.list_purchase_orders(
            status=status, archived=archived, search=search, limit=limit, offset=offset
        )

    def stats(self, actor: Actor) -> dict:
        authorize(actor, PO_READ)
        return self.db.get_stats()

    def audit_log(self, actor: Actor, po_id: str) -> list[AuditEntry]:
        authorize(actor, PO_READ)
        return self.db.get_audit_log(po_id)

    def recent_activity(self, actor: Actor, limit: int = 200, offset: int = 0) -> list[AuditEntry]:
        """Audit entries across every PO, newest first.  Purged POs keep theirs."""
        authorize(actor, PO_READ)
        return self.db.get_recent_audit_log(limit, offset)

    def get_inventory_item(self, actor: Actor, item_id: str) -> InventoryItem:
        authorize(actor, PO_READ)
        return self.ledger.get_item(item_id)

    def get_supplier(self, actor: Actor, supplier_id: str) -> Supplier:
        authorize(actor, PO_READ)
        return self.directory.get(supplier_id)

    def find_supplier(self, actor: Actor, name: str) -> Supplier:
        """Resolve a supplier by name or alias, falling back to a fuzzy match."""
        authorize(actor, PO_READ)
        supplier = self.directory.find(name)
        if supplier is None:
            raise NotFound("Supplier", name)
        return supplier

    # ------------------------------------------------------------------
    # Single-record operations
    # ------------------------------------------------------------------

    def create(self, actor: Actor, supplier_id: str, items: Iterable, expected_delivery_date: Optional[str], **kwargs) -> PurchaseOrder:
        return self.lifecycle.create(actor, supplier_id, items, expected_delivery_date, **kwargs)

    def update(self, actor: Actor, po_id: str, changes: dict, expected_revision: Optional[int] = None) -> PurchaseOrder:
        return self.lifecycle.update(actor, po_id, changes, expected_revision)

    def submit_for_approval(self, actor: Actor, po_id: str, expected_revision: Optional[int] = None) -> PurchaseOrder:
        return self.lifecycle.submit_for_approval(actor, po_id, expected_revision)

    def approve(self, actor: Actor, po_id: str, expected_revision: Optional[int] = None) -> PurchaseOrder:
        return self.lifecycle.approve(actor, po_id, expected_revision)

    def reject(self, actor: Actor, po_id: str, expected_revision: Optional[int] = None) -> PurchaseOrder:
        return self.lifecycle.reject(actor, po_id, expected_revision)

    def mark_as_ordered(self, actor: Actor, po_id: str, expected_revision: Optional[int] = None) -> PurchaseOrder:
        return self.lifecycle.mark_as_ordered(actor, po_id, expected_revision)

    def cancel(self, actor: Actor, po_id: str, expected_revision: Optional[int] = None) -> PurchaseOrder:
        return self.lifecycle.cancel(actor, po_id, expected_revision)

    def archive(self, actor: Actor, po_id: str, expected_revision: Optional[int] = None) -> PurchaseOrder:
        return self.lifecycle.archive(actor, po_id, expected_revision)

    def restore(self, actor: Actor, po_id: str, expected_revision: Optional[int] = None) -> PurchaseOrder:
        return self.lifecycle.restore(actor, po_id, expected_revision)

    def permanently_delete(self, actor: Actor, po_id: str, expected_revision: Optional[int] = None) -> PurchaseOrder:
        return self.lifecycle.permanently_delete(actor, po_id, expected_revision)

    def delete(self, actor: Actor, po_id: str, expected_revision: Optional[int] = None) -> PurchaseOrder:
        return self.lifecycle.delete(actor, po_id, expected_revision)

    def receive(
        self,
        actor: Actor,
        po_id: str,
        received_items: dict[str, Any],
        actual_cost: Optional[float] = None,
        expected_revision: Optional[int] = None,
    ) -> ReceiveResult:
        return self.receiving.receive(actor, po_id, received_items, actual_cost, expected_revision)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def batch(self, actor: Actor, ids: Iterable[str], operation: str, **kwargs) -> BatchResult:
        """
        Apply one named operation to many POs.

        ``shipping_status`` needs ``value=<label>``; every other operation
        takes no arguments.
        """
        op = self._batch_operation(actor, operation, **kwargs)
        result = self.batches.apply_batch(ids, op)
        logger.info(
            "Batch %s by %s: %d ok, %d failed",
            operation, actor.user_id, result.success_count, result.failed_count,
        )
        return result

    def _batch_operation(self, actor: Actor, operation: str, **kwargs) -> Callable[[str], object]:
        simple: dict[str, Callable[[Actor, str], object]] = {
            "delete":             self.lifecycle.delete,
            "archive":            self.lifecycle.archive,
            "restore":            self.lifecycle.restore,
            "permanently_delete": self.lifecycle.permanently_delete,
            "submit":             self.lifecycle.submit_for_approval,
            "approve":            self.lifecycle.approve,
            "reject":             self.lifecycle.reject,
            "mark_ordered":       self.lifecycle.mark_as_ordered,
            "cancel":             self.lifecycle.cancel,
        }
        if operation in simple:
            method = simple[operation]

            def run(po_id: str) -> object:
                return method(actor, po_id)

            run.__name__ = operation
            return run

        if operation == "shipping_status":
            value = kwargs.get("value")
            if not value:
                raise ValidationError("shipping_status batch needs a value", field="value")

            def set_shipping(po_id: str) -> object:
                return self.lifecycle.update(actor, po_id, {"shipping_status": value})

            set_shipping.__name__ = "shipping_status"
            return set_shipping

        raise ValidationError(
            f"Unknown batch operation {operation!r}", field="operation", limit=list(BATCH_OPERATIONS)
        )

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def check_setup(self) -> dict:
        """Summarise the configuration and collaborator state for `main.py check`."""
        self.db.ping()
        stats = self.db.get_stats()
        suppliers = self.directory.suppliers.values()
        return {
            "db_path":           str(self.config.db_path),
            "purchase_orders":   stats["total"],
            "archived":          stats["archived"],
            "suppliers":         len(self.directory.suppliers),
            "active_suppliers":  sum(1 for s in suppliers if s.is_active),
            "inventory_items":   len(self.ledger.list_items()) if hasattr(self.ledger, "list_items") else None,
            "batch_max_workers": self.batches.max_workers,
            "require_revision":  self.config.require_revision,
        }
