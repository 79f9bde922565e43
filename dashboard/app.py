"""
Purchasing Dashboard: FastAPI backend.

JSON API over the purchase order workflow.  All state lives in the SQLite
database configured by DB_PATH (see config.py); the service is opened on
the first request.

The caller is identified by two headers:
  X-User-Id     recorded in the audit log (default "anonymous")
  X-User-Role   Owner | Admin | Operator | Viewer (default Viewer)

Domain errors are returned as {"detail": {"error", "message", ...}} with
404 (not found), 403 (forbidden), 409 (invalid transition, conflict,
ledger refusal) or 422 (validation).

Endpoints
---------
  GET    /api/health                              → liveness probe
  GET    /api/stats                               → counts by status, total / pending value
  GET    /api/purchase-orders                     → list (?status= ?archived= ?search= ?limit= ?offset=)
  POST   /api/purchase-orders                     → create a Draft PO
  POST   /api/purchase-orders/batch/{operation}   → apply one operation to many ids
  GET    /api/purchase-orders/{id}                → one PO
  PATCH  /api/purchase-orders/{id}                → edit fields
  DELETE /api/purchase-orders/{id}                → hard delete (Draft / Cancelled / Rejected)
  DELETE /api/purchase-orders/{id}/permanent      → purge an archived PO (Owner)
  POST   /api/purchase-orders/{id}/{action}       → submit | approve | reject | order |
                                                    cancel | archive | restore
  POST   /api/purchase-orders/{id}/receive        → receive quantities
  GET    /api/purchase-orders/{id}/audit          → audit trail
  GET    /api/audit                               → recent audit entries across all POs (?limit= ?offset=)
  GET    /api/inventory/{id}                      → ledger item
  GET    /api/suppliers/{id}                      → supplier directory entry
  GET    /api/suppliers?name=                     → best supplier match by name or alias
"""
import logging
from typing import Callable, Optional, TypeVar

from fastapi import FastAPI, Header, HTTPException, Query
from pydantic import ValidationError as PydanticValidationError

from config import Config
from procurement import Actor, ProcurementError, PurchasingService
from .models import BatchRequest, POCreate, POUpdate, ReceiveRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Service (opened lazily on first request)
# ---------------------------------------------------------------------------
_service: Optional[PurchasingService] = None


def get_service() -> PurchasingService:
    global _service
    if _service is None:
        _service = PurchasingService(Config())
    return _service


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="Purchasing Dashboard", docs_url=None, redoc_url=None)

# Path segment → PurchasingService method for the single-PO transitions
_ACTIONS: dict[str, str] = {
    "submit":  "submit_for_approval",
    "approve": "approve",
    "reject":  "reject",
    "order":   "mark_as_ordered",
    "cancel":  "cancel",
    "archive": "archive",
    "restore": "restore",
}


# ── Helpers ──────────────────────────────────────────────────────────────────

def _actor(user_id: Optional[str], role: Optional[str]) -> Actor:
    try:
        return Actor(user_id=user_id or "anonymous", role=role or "Viewer")
    except PydanticValidationError:
        raise HTTPException(
            status_code=422,
            detail={"error": "validation_error", "message": f"Unknown role: {role}", "field": "X-User-Role"},
        ) from None


def _call(fn: Callable[[PurchasingService], T]) -> T:
    """Run a service call, translating domain errors to HTTP errors."""
    try:
        return fn(get_service())
    except ProcurementError as exc:
        if exc.http_status >= 500:
            logger.error("Request failed: %s", exc.message)
        raise HTTPException(status_code=exc.http_status, detail=exc.to_dict()) from None


# ── Routes ───────────────────────────────────────────────────────────────────

@app.get("/api/health")
def health():
    svc = get_service()
    return {
        "status":    "ok",
        "db_path":   str(svc.config.db_path),
        "db_exists": svc.config.db_path.exists(),
    }


@app.get("/api/stats")
def stats(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    return _call(lambda svc: svc.stats(actor))


@app.get("/api/purchase-orders")
def list_purchase_orders(
    status: Optional[str] = Query(default=None),
    archived: bool = Query(default=False),
    search: Optional[str] = Query(default=None),
    limit: int = Query(default=500, le=2000),
    offset: int = Query(default=0, ge=0),
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    pos = _call(lambda svc: svc.list_orders(
        actor,
        status=status or None,
        archived=archived,
        search=search or None,
        limit=limit,
        offset=offset,
    ))
    return [po.model_dump() for po in pos]


@app.post("/api/purchase-orders", status_code=201)
def create_purchase_order(
    body: POCreate,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    po = _call(lambda svc: svc.create(
        actor,
        body.supplier_id,
        body.items,
        body.expected_delivery_date,
        notes=body.notes,
        bill_number=body.bill_number,
        po_date=body.po_date,
        total_paid=body.total_paid,
        po_id=body.id,
    ))
    return po.model_dump()


# Registered before /{po_id}/{action} so "batch" is never taken for a PO id
@app.post("/api/purchase-orders/batch/{operation}")
def batch_operation(
    operation: str,
    body: BatchRequest,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    kwargs = {"value": body.value} if body.value else {}
    result = _call(lambda svc: svc.batch(actor, body.ids, operation, **kwargs))
    return {"success": result.success, **result.model_dump()}


@app.get("/api/purchase-orders/{po_id}")
def get_purchase_order(
    po_id: str,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    return _call(lambda svc: svc.get(actor, po_id)).model_dump()


@app.patch("/api/purchase-orders/{po_id}")
def update_purchase_order(
    po_id: str,
    body: POUpdate,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    changes = body.changes()
    if not changes:
        raise HTTPException(
            status_code=422,
            detail={"error": "validation_error", "message": "No fields to update"},
        )
    po = _call(lambda svc: svc.update(actor, po_id, changes, body.expected_revision))
    return po.model_dump()


@app.delete("/api/purchase-orders/{po_id}")
def delete_purchase_order(
    po_id: str,
    expected_revision: Optional[int] = Query(default=None),
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    po = _call(lambda svc: svc.delete(actor, po_id, expected_revision))
    return {"ok": True, "id": po.id}


@app.delete("/api/purchase-orders/{po_id}/permanent")
def purge_purchase_order(
    po_id: str,
    expected_revision: Optional[int] = Query(default=None),
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    po = _call(lambda svc: svc.permanently_delete(actor, po_id, expected_revision))
    return {"ok": True, "id": po.id}


@app.post("/api/purchase-orders/{po_id}/receive")
def receive_purchase_order(
    po_id: str,
    body: ReceiveRequest,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    result = _call(lambda svc: svc.receive(
        actor, po_id, body.received_items, body.actual_cost, body.expected_revision
    ))
    return {
        "purchase_order":    result.purchase_order.model_dump(),
        "inventory_updates": [u.model_dump() for u in result.inventory_updates],
    }


@app.get("/api/purchase-orders/{po_id}/audit")
def purchase_order_audit(
    po_id: str,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    return [e.model_dump() for e in _call(lambda svc: svc.audit_log(actor, po_id))]


@app.post("/api/purchase-orders/{po_id}/{action}")
def transition_purchase_order(
    po_id: str,
    action: str,
    expected_revision: Optional[int] = Query(default=None),
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    method = _ACTIONS.get(action)
    if method is None:
        raise HTTPException(status_code=404, detail=f"Unknown action: {action}")
    actor = _actor(x_user_id, x_user_role)
    po = _call(lambda svc: getattr(svc, method)(actor, po_id, expected_revision))
    return po.model_dump()


@app.get("/api/audit")
def recent_activity(
    limit: int = Query(default=200, ge=1, le=2000),
    offset: int = Query(default=0, ge=0),
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    return [e.model_dump() for e in _call(lambda svc: svc.recent_activity(actor, limit, offset))]


@app.get("/api/inventory/{item_id}")
def get_inventory_item(
    item_id: str,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    item = _call(lambda svc: svc.get_inventory_item(actor, item_id))
    return {**item.model_dump(), "status": item.status}


@app.get("/api/suppliers")
def find_supplier(
    name: str = Query(..., min_length=1),
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    return _call(lambda svc: svc.find_supplier(actor, name)).model_dump()


@app.get("/api/suppliers/{supplier_id}")
def get_supplier(
    supplier_id: str,
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
):
    actor = _actor(x_user_id, x_user_role)
    return _call(lambda svc: svc.get_supplier(actor, supplier_id)).model_dump()
