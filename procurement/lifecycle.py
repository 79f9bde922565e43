"""
Purchase order lifecycle engine.

Approval workflow:

    Draft ──submit──> Pending Approval ──approve──> Approved ──order──> Ordered
                                       └─reject───> Rejected

    Ordered ⇄ Partially Received ──> Received      (receiving.py)
    any status except Received / Cancelled ──cancel──> Cancelled

Archive overlay (orthogonal to status):

    archive   only from Draft / Cancelled / Rejected
    restore   only when archived
    permanently_delete  Owner only, only when archived
    delete    hard delete from Draft / Cancelled / Rejected

Each operation checks permission, then existence and revision, then state
legality, then persists with a compare-and-swap on the PO revision and
appends an audit entry.  A rejected operation leaves the record untouched.
"""
import logging
import math
from datetime import date
from typing import Any, Callable, Iterable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from config import Config
from models.purchase_order import (
    POLineItem,
    POLineItemInput,
    PurchaseOrder,
    INACTIVE_STATUSES,
    SHIPPING_STATUSES,
    STATUS_APPROVED,
    STATUS_CANCELLED,
    STATUS_DRAFT,
    STATUS_ORDERED,
    STATUS_PENDING_APPROVAL,
    STATUS_RECEIVED,
    STATUS_REJECTED,
)
from .database import Database
from .errors import InvalidTransition, NotFound, ValidationError
from .guards import (
    authorize,
    check_revision,
    load_po,
    require_active,
    require_status,
    today,
    utcnow,
)
from .inventory_ledger import Ledger
from .permissions import (
    Actor,
    PO_APPROVE,
    PO_CREATE,
    PO_DELETE,
    PO_PURGE,
    PO_UPDATE,
)
from .supplier_directory import SupplierDirectory

logger = logging.getLogger(__name__)

# Fields update() accepts, by when they may change
DRAFT_ONLY_FIELDS = frozenset({"items", "supplier_id", "po_date"})
ALWAYS_EDITABLE_FIELDS = frozenset({
    "notes", "bill_number", "expected_delivery_date", "shipping_status", "total_paid",
})

ItemsInput = Iterable[Union[POLineItemInput, dict]]


class LifecycleEngine:
    """State transitions and edits for purchase orders."""

    def __init__(
        self,
        db: Database,
        ledger: Ledger,
        directory: SupplierDirectory,
        config: Optional[Config] = None,
    ):
        self.db = db
        self.ledger = ledger
        self.directory = directory
        self.config = config or Config()

    # ------------------------------------------------------------------
    # Creation and editing
    # ------------------------------------------------------------------

    def create(
        self,
        actor: Actor,
        supplier_id: str,
        items: ItemsInput,
        expected_delivery_date: Optional[str],
        notes: str = "",
        bill_number: str = "",
        po_date: Optional[str] = None,
        total_paid: float = 0.0,
        po_id: Optional[str] = None,
    ) -> PurchaseOrder:
        """Create a new Draft PO.  All validation happens before anything is stored."""
        authorize(actor, PO_CREATE)

        supplier = self._supplier_snapshot(supplier_id)
        line_items = self._build_items(items)
        expected = self._parse_date(
            expected_delivery_date, "expected_delivery_date",
            not_before_today=self.config.require_future_delivery,
        )
        created = today()
        po_date = self._parse_date(po_date, "po_date") if po_date else created
        total_paid = self._parse_amount(total_paid, "total_paid")

        po = PurchaseOrder(
            id=(po_id or "").strip(),
            **supplier,
            bill_number=bill_number or "",
            po_date=po_date,
            created_date=created,
            expected_delivery_date=expected,
            items=line_items,
            total_paid=total_paid,
            notes=notes or "",
            created_by=actor.user_id,
        )
        po.recompute_totals()
        self._require_positive_total(po)

        saved = self.db.insert_purchase_order(po)
        self.db.log_audit(
            saved.id, "created", actor=actor.user_id,
            detail={"supplier_id": saved.supplier_id, "total_amount": saved.total_amount},
        )
        logger.info(
            "Created %s for %s (%d items, total %.2f) by %s",
            saved.id, saved.supplier_name, len(saved.items), saved.total_amount, actor.user_id,
        )
        return saved

    def update(
        self,
        actor: Actor,
        po_id: str,
        changes: dict[str, Any],
        expected_revision: Optional[int] = None,
    ) -> PurchaseOrder:
        """
        Edit PO fields.

        items, supplier_id and po_date change only while the PO is a Draft.
        notes, bill_number, expected_delivery_date, shipping_status and
        total_paid may change in any status.  Archived POs are read-only.
        """
        authorize(actor, PO_UPDATE)
        if self.config.require_revision and expected_revision is None:
            raise ValidationError("expected_revision is required", field="expected_revision")

        unknown = set(changes) - DRAFT_ONLY_FIELDS - ALWAYS_EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot edit field(s): {', '.join(sorted(unknown))}", field=sorted(unknown)[0]
            )

        po = load_po(self.db, po_id)
        check_revision(po, expected_revision)
        require_active(po, "edit")
        draft_fields = DRAFT_ONLY_FIELDS & set(changes)
        if draft_fields and po.status != STATUS_DRAFT:
            raise InvalidTransition(
                f"Cannot edit {', '.join(sorted(draft_fields))} of purchase order {po.id} "
                f"once it has left Draft (status {po.status!r})",
                po_id=po.id, status=po.status, operation="edit",
            )

        updated = po.model_copy(deep=True)
        if "supplier_id" in changes:
            for key, value in self._supplier_snapshot(changes["supplier_id"]).items():
                setattr(updated, key, value)
        if "po_date" in changes:
            updated.po_date = self._parse_date(changes["po_date"], "po_date")
        if "items" in changes:
            updated.items = self._build_items(changes["items"])
            updated.actual_cost = None
            updated.recompute_totals()
            self._require_positive_total(updated)
        if "expected_delivery_date" in changes:
            updated.expected_delivery_date = self._parse_date(
                changes["expected_delivery_date"], "expected_delivery_date",
                not_before_today=self.config.require_future_delivery,
            )
        if "shipping_status" in changes:
            if changes["shipping_status"] not in SHIPPING_STATUSES:
                raise ValidationError(
                    f"Unknown shipping status {changes['shipping_status']!r}",
                    field="shipping_status", limit=list(SHIPPING_STATUSES),
                )
            updated.shipping_status = changes["shipping_status"]
        if "total_paid" in changes:
            updated.total_paid = self._parse_amount(changes["total_paid"], "total_paid")
            updated.recompute_balance()
        if "notes" in changes:
            updated.notes = str(changes["notes"] or "")
        if "bill_number" in changes:
            updated.bill_number = str(changes["bill_number"] or "")

        saved = self.db.save_purchase_order(updated, po.revision)
        self.db.log_audit(
            po.id, "updated", actor=actor.user_id, detail={"fields": sorted(changes)},
        )
        logger.info("Updated %s fields=%s by %s", po.id, sorted(changes), actor.user_id)
        return saved

    # ------------------------------------------------------------------
    # Approval workflow
    # ------------------------------------------------------------------

    def submit_for_approval(
        self, actor: Actor, po_id: str, expected_revision: Optional[int] = None
    ) -> PurchaseOrder:
        def change(po: PurchaseOrder) -> dict:
            require_status(po, [STATUS_DRAFT], "submit")
            if not po.items:
                raise ValidationError(
                    f"Purchase order {po.id} has no line items", field="items", limit=1
                )
            return {"status": STATUS_PENDING_APPROVAL}

        return self._transition(actor, po_id, PO_UPDATE, "submit", "submitted", change, expected_revision)

    def approve(
        self, actor: Actor, po_id: str, expected_revision: Optional[int] = None
    ) -> PurchaseOrder:
        def change(po: PurchaseOrder) -> dict:
            require_status(po, [STATUS_PENDING_APPROVAL], "approve")
            return {
                "status": STATUS_APPROVED,
                "approved_by": actor.user_id,
                "approved_date": today(),
            }

        return self._transition(actor, po_id, PO_APPROVE, "approve", "approved", change, expected_revision)

    def reject(
        self, actor: Actor, po_id: str, expected_revision: Optional[int] = None
    ) -> PurchaseOrder:
        # The decision maker is stamped on rejection too.
        def change(po: PurchaseOrder) -> dict:
            require_status(po, [STATUS_PENDING_APPROVAL], "reject")
            return {
                "status": STATUS_REJECTED,
                "approved_by": actor.user_id,
                "approved_date": today(),
            }

        return self._transition(actor, po_id, PO_APPROVE, "reject", "rejected", change, expected_revision)

    def mark_as_ordered(
        self, actor: Actor, po_id: str, expected_revision: Optional[int] = None
    ) -> PurchaseOrder:
        def change(po: PurchaseOrder) -> dict:
            require_status(po, [STATUS_APPROVED], "mark as ordered")
            return {"status": STATUS_ORDERED}

        return self._transition(actor, po_id, PO_UPDATE, "mark as ordered", "ordered", change, expected_revision)

    def cancel(
        self, actor: Actor, po_id: str, expected_revision: Optional[int] = None
    ) -> PurchaseOrder:
        """Cancel from any status except Received / Cancelled.  Received stock stays in inventory."""
        def change(po: PurchaseOrder) -> dict:
            if po.status in (STATUS_RECEIVED, STATUS_CANCELLED):
                raise InvalidTransition(
                    f"Cannot cancel purchase order {po.id} in status {po.status!r}",
                    po_id=po.id, status=po.status, operation="cancel",
                )
            return {"status": STATUS_CANCELLED}

        return self._transition(actor, po_id, PO_UPDATE, "cancel", "cancelled", change, expected_revision)

    # ------------------------------------------------------------------
    # Archive overlay and deletion
    # ------------------------------------------------------------------

    def archive(
        self, actor: Actor, po_id: str, expected_revision: Optional[int] = None
    ) -> PurchaseOrder:
        def change(po: PurchaseOrder) -> dict:
            require_status(po, INACTIVE_STATUSES, "archive")
            return {"archived": True, "archived_at": utcnow()}

        return self._transition(actor, po_id, PO_DELETE, "archive", "archived", change, expected_revision)

    def restore(
        self, actor: Actor, po_id: str, expected_revision: Optional[int] = None
    ) -> PurchaseOrder:
        authorize(actor, PO_DELETE)
        po = load_po(self.db, po_id)
        check_revision(po, expected_revision)
        self._require_archived(po, "restore")
        saved = self.db.save_purchase_order(
            po.model_copy(update={"archived": False, "archived_at": None}), po.revision
        )
        self.db.log_audit(po.id, "restored", actor=actor.user_id, detail={"status": po.status})
        logger.info("Restored %s by %s", po.id, actor.user_id)
        return saved

    def permanently_delete(
        self, actor: Actor, po_id: str, expected_revision: Optional[int] = None
    ) -> PurchaseOrder:
        """Purge an archived PO from the store.  Owner only; the audit trail is kept."""
        authorize(actor, PO_PURGE)
        po = load_po(self.db, po_id)
        check_revision(po, expected_revision)
        self._require_archived(po, "permanently delete")
        return self._remove(actor, po, "permanently_deleted")

    def delete(
        self, actor: Actor, po_id: str, expected_revision: Optional[int] = None
    ) -> PurchaseOrder:
        """Hard delete without the archive step, from Draft / Cancelled / Rejected only."""
        authorize(actor, PO_DELETE)
        po = load_po(self.db, po_id)
        check_revision(po, expected_revision)
        require_active(po, "delete")
        require_status(po, INACTIVE_STATUSES, "delete")
        return self._remove(actor, po, "deleted")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(
        self,
        actor: Actor,
        po_id: str,
        action: str,
        operation: str,
        audit_action: str,
        change: Callable[[PurchaseOrder], dict],
        expected_revision: Optional[int],
    ) -> PurchaseOrder:
        authorize(actor, action)
        po = load_po(self.db, po_id)
        check_revision(po, expected_revision)
        require_active(po, operation)
        updates = change(po)

        saved = self.db.save_purchase_order(po.model_copy(update=updates), po.revision)
        self.db.log_audit(
            po.id, audit_action, actor=actor.user_id,
            detail={"from": po.status, "to": saved.status},
        )
        logger.info("%s %s: %s -> %s by %s", audit_action.capitalize(), po.id, po.status, saved.status, actor.user_id)
        return saved

    def _remove(self, actor: Actor, po: PurchaseOrder, audit_action: str) -> PurchaseOrder:
        if not self.db.delete_purchase_order(po.id, po.revision):
            raise NotFound("Purchase order", po.id)
        self.db.log_audit(po.id, audit_action, actor=actor.user_id, detail={"status": po.status})
        logger.info("%s %s by %s", audit_action.replace("_", " ").capitalize(), po.id, actor.user_id)
        return po

    @staticmethod
    def _require_archived(po: PurchaseOrder, operation: str) -> None:
        if not po.archived:
            raise InvalidTransition(
                f"Cannot {operation} purchase order {po.id}: it is not archived",
                po_id=po.id, status=po.status, operation=operation,
            )

    def _supplier_snapshot(self, supplier_id: Optional[str]) -> dict:
        if not supplier_id or not str(supplier_id).strip():
            raise ValidationError("Supplier is required", field="supplier_id")
        try:
            supplier = self.directory.get(str(supplier_id))
        except NotFound:
            raise ValidationError(f"Unknown supplier {supplier_id}", field="supplier_id") from None
        if not supplier.is_active:
            raise ValidationError(f"Supplier {supplier.id} is inactive", field="supplier_id")
        return {
            "supplier_id": supplier.id,
            "supplier_name": supplier.name,
            "supplier_country": supplier.country,
            "supplier_city": supplier.city,
        }

    def _build_items(self, items: Optional[ItemsInput]) -> list[POLineItem]:
        """Validate requested lines against the ledger and price them."""
        requested = list(items or [])
        if not requested:
            raise ValidationError("At least one item is required", field="items", limit=1)

        built: list[POLineItem] = []
        seen: set[str] = set()
        for i, raw in enumerate(requested):
            try:
                line = raw if isinstance(raw, POLineItemInput) else POLineItemInput.model_validate(raw)
            except PydanticValidationError as exc:
                raise ValidationError(f"Invalid line item {i + 1}: {exc.errors()[0]['msg']}",
                                      field=f"items[{i}]") from None

            item_id = line.inventory_item_id.strip()
            if not item_id:
                raise ValidationError("Item is required", field=f"items[{i}].inventory_item_id")
            if item_id in seen:
                raise ValidationError(
                    f"Item {item_id} appears more than once", field=f"items[{i}].inventory_item_id"
                )
            seen.add(item_id)

            try:
                stock = self.ledger.get_item(item_id)
            except NotFound:
                raise ValidationError(
                    f"Unknown inventory item {item_id}", field=f"items[{i}].inventory_item_id"
                ) from None

            if line.quantity < 1 or not float(line.quantity).is_integer():
                raise ValidationError(
                    "Quantity must be a whole number of at least 1",
                    field=f"items[{i}].quantity", limit=1,
                )
            unit_price = stock.price_per_unit if line.unit_price is None else line.unit_price
            if not math.isfinite(unit_price) or unit_price <= 0:
                raise ValidationError(
                    "Unit price must be positive", field=f"items[{i}].unit_price", limit=0,
                )

            built.append(POLineItem(
                inventory_item_id=item_id,
                item_name=(line.item_name or stock.name).strip(),
                quantity=int(line.quantity),
                unit_price=unit_price,
            ))
        return built

    @staticmethod
    def _parse_date(value: Optional[str], field: str, not_before_today: bool = False) -> str:
        if not value:
            raise ValidationError(f"{field} is required", field=field)
        try:
            parsed = date.fromisoformat(str(value).strip())
        except ValueError:
            raise ValidationError(
                f"{field} must be in YYYY-MM-DD format", field=field
            ) from None
        if not_before_today and parsed < date.today():
            raise ValidationError(
                f"{field} must be today or in the future", field=field, limit=today()
            )
        return parsed.isoformat()

    @staticmethod
    def _parse_amount(value: Any, field: str) -> float:
        try:
            amount = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{field} must be a number", field=field) from None
        if not math.isfinite(amount):
            raise ValidationError(f"{field} must be a finite number", field=field)
        if amount < 0:
            raise ValidationError(f"{field} cannot be negative", field=field, limit=0)
        return round(amount, 2)

    @staticmethod
    def _require_positive_total(po: PurchaseOrder) -> None:
        if po.total_amount <= 0:
            raise ValidationError("Purchase order total must be greater than zero",
                                  field="total_amount", limit=0)
