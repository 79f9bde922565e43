"""
Checks shared by every purchase order operation, applied in this order:
permission, existence, revision, archive overlay, status.
"""
import logging
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from models.purchase_order import PurchaseOrder
from .database import Database
from .errors import Conflict, Forbidden, InvalidTransition, NotFound
from .permissions import Actor

logger = logging.getLogger(__name__)


def today() -> str:
    return date.today().isoformat()


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def authorize(actor: Actor, action: str) -> None:
    if not actor.can(action):
        logger.warning("Denied %s for user %s (role %s)", action, actor.user_id, actor.role)
        raise Forbidden(actor.role, action)


def load_po(db: Database, po_id: str) -> PurchaseOrder:
    po = db.get_purchase_order(po_id)
    if po is None:
        raise NotFound("Purchase order", po_id)
    return po


def check_revision(po: PurchaseOrder, expected_revision: Optional[int]) -> None:
    if expected_revision is not None and expected_revision != po.revision:
        logger.warning("Stale revision for %s: expected %s, found %s", po.id, expected_revision, po.revision)
        raise Conflict(po.id, expected_revision, po.revision)


def require_active(po: PurchaseOrder, operation: str) -> None:
    """Archived POs accept only restore and permanent delete."""
    if po.archived:
        logger.warning("Refused %s on archived %s", operation, po.id)
        raise InvalidTransition(
            f"Cannot {operation} archived purchase order {po.id}; restore it first",
            po_id=po.id, status=po.status, operation=operation,
        )


def require_status(po: PurchaseOrder, allowed: Iterable[str], operation: str) -> None:
    allowed = sorted(allowed)
    if po.status not in allowed:
        logger.warning("Refused %s on %s in status %r", operation, po.id, po.status)
        raise InvalidTransition(
            f"Cannot {operation} purchase order {po.id} in status {po.status!r} "
            f"(allowed: {', '.join(allowed)})",
            po_id=po.id, status=po.status, operation=operation,
        )
