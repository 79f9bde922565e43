"""
Receiving reconciler.

Records goods arriving against an Ordered / Partially Received PO:

  1. Validate the request in full (permission, state, every quantity,
     every ledger item) before touching anything.
  2. Apply the inventory deltas one by one.  If the ledger refuses one,
     reverse the deltas already applied and re-raise.
  3. Persist the PO (compare-and-swap on revision).  If that fails,
     reverse every delta and re-raise.

The ledger and the PO store are separate transactions, so step 2/3 is a
compensating saga rather than a single commit.  A repeated call applies
the quantities again; there is no idempotency key.
"""
import logging
import math
from typing import Any, Mapping, Optional

from models.purchase_order import (
    PurchaseOrder,
    RECEIVABLE_STATUSES,
    STATUS_PARTIALLY_RECEIVED,
    STATUS_RECEIVED,
    money,
)
from models.result import InventoryUpdate, ReceiveResult
from .database import Database
from .errors import (
    NotFound,
    NothingToReceive,
    QuantityExceedsRemaining,
    ValidationError,
)
from .guards import authorize, check_revision, load_po, require_active, require_status, today
from .inventory_ledger import Ledger
from .permissions import Actor, PO_RECEIVE

logger = logging.getLogger(__name__)


class ReceivingReconciler:

    def __init__(self, db: Database, ledger: Ledger):
        self.db = db
        self.ledger = ledger

    def receive(
        self,
        actor: Actor,
        po_id: str,
        received_items: Mapping[str, Any],
        actual_cost: Optional[float] = None,
        expected_revision: Optional[int] = None,
    ) -> ReceiveResult:
        """
        Receive quantities against a PO.

        Args:
            received_items:    {inventory_item_id: quantity arriving now}.
                               Zero entries are ignored.
            actual_cost:       Replaces total_amount when given (>= 0).
            expected_revision: Reject with Conflict if the PO has moved on.

        Returns:
            ReceiveResult with the saved PO and one InventoryUpdate per
            item whose stock changed.
        """
        authorize(actor, PO_RECEIVE)
        po = load_po(self.db, po_id)
        check_revision(po, expected_revision)
        require_active(po, "receive")
        require_status(po, RECEIVABLE_STATUSES, "receive")

        deltas = self._validate_quantities(po, received_items)
        if actual_cost is not None:
            actual_cost = self._validate_cost(actual_cost)

        # Ledger items must all exist before any stock moves
        names: dict[str, str] = {}
        for item_id in deltas:
            try:
                names[item_id] = self.ledger.get_item(item_id).name
            except NotFound:
                raise ValidationError(
                    f"Inventory item {item_id} is not in the ledger",
                    field=f"received_items.{item_id}",
                ) from None

        updated = self._apply_to_po(po, deltas, actual_cost)

        applied: list[tuple[str, int]] = []
        updates: list[InventoryUpdate] = []
        try:
            for item_id, qty in deltas.items():
                new_qty = self.ledger.adjust_quantity(item_id, qty)
                applied.append((item_id, qty))
                updates.append(InventoryUpdate(
                    item_id=item_id,
                    item_name=names[item_id],
                    previous_qty=new_qty - qty,
                    new_qty=new_qty,
                ))
            saved = self.db.save_purchase_order(updated, po.revision)
        except Exception:
            self._compensate(po.id, applied)
            raise

        self.db.log_audit(
            po.id, "received", actor=actor.user_id,
            detail={
                "items": deltas,
                "actual_cost": actual_cost,
                "from": po.status,
                "to": saved.status,
            },
        )
        for u in updates:
            logger.info("  %s: %s", po.id, u.describe())
        logger.info(
            "Received %s: %d item(s), status %s -> %s by %s",
            po.id, len(deltas), po.status, saved.status, actor.user_id,
        )
        return ReceiveResult(purchase_order=saved, inventory_updates=updates)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_quantities(po: PurchaseOrder, received_items: Mapping[str, Any]) -> dict[str, int]:
        """Return {item_id: qty} for the non-zero entries, in PO line order."""
        requested: dict[str, int] = {}
        for item_id, raw in (received_items or {}).items():
            field = f"received_items.{item_id}"
            try:
                qty = float(raw)
            except (TypeError, ValueError):
                raise ValidationError(f"Quantity for {item_id} must be a number", field=field) from None
            if not qty.is_integer():
                raise ValidationError(f"Quantity for {item_id} must be a whole number", field=field)
            if qty < 0:
                raise ValidationError(f"Quantity for {item_id} cannot be negative", field=field, limit=0)

            line = po.get_item(item_id)
            if line is None:
                raise ValidationError(f"Item {item_id} is not on purchase order {po.id}", field=field)
            if qty == 0:
                continue
            if qty > line.remaining:
                raise QuantityExceedsRemaining(item_id, int(qty), line.remaining)
            requested[item_id] = int(qty)

        if not requested:
            raise NothingToReceive(po.id)
        return {
            line.inventory_item_id: requested[line.inventory_item_id]
            for line in po.items
            if line.inventory_item_id in requested
        }

    @staticmethod
    def _validate_cost(actual_cost: Any) -> float:
        try:
            cost = float(actual_cost)
        except (TypeError, ValueError):
            raise ValidationError("Actual cost must be a number", field="actual_cost") from None
        if not math.isfinite(cost):
            raise ValidationError("Actual cost must be a finite number", field="actual_cost")
        if cost < 0:
            raise ValidationError("Actual cost cannot be negative", field="actual_cost", limit=0)
        return money(cost)

    @staticmethod
    def _apply_to_po(po: PurchaseOrder, deltas: dict[str, int], actual_cost: Optional[float]) -> PurchaseOrder:
        updated = po.model_copy(deep=True)
        for line in updated.items:
            line.quantity_received += deltas.get(line.inventory_item_id, 0)

        if updated.fully_received:
            updated.status = STATUS_RECEIVED
            updated.received_date = today()
        else:
            updated.status = STATUS_PARTIALLY_RECEIVED

        if actual_cost is not None:
            updated.actual_cost = actual_cost
            updated.total_amount = actual_cost
        updated.recompute_balance()
        return updated

    def _compensate(self, po_id: str, applied: list[tuple[str, int]]) -> None:
        """Reverse applied ledger deltas, newest first."""
        for item_id, qty in reversed(applied):
            try:
                self.ledger.adjust_quantity(item_id, -qty)
            except Exception:
                # The original failure is re-raised by the caller; this one is
                # left for manual reconciliation.
                logger.exception(
                    "Could not reverse %+d on %s while rolling back receipt for %s",
                    qty, item_id, po_id,
                )
        if applied:
            logger.error("Rolled back %d inventory adjustment(s) for %s", len(applied), po_id)
