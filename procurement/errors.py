"""
Error taxonomy for the purchasing core.

Every failure the lifecycle engine, receiving reconciler, or store can
report is a ProcurementError subclass.  Each carries a stable ``code`` (used
in batch error lists and API bodies), the HTTP status the dashboard maps it
to, and enough structured detail for a caller to re-prompt the user.

Nothing here is retried internally; retries are a caller concern.
"""
from typing import Any, Optional


class ProcurementError(Exception):
    """Base class for all purchasing domain errors."""

    code = "procurement_error"
    http_status = 400

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail = {k: v for k, v in detail.items() if v is not None}

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, **self.detail}


class NotFound(ProcurementError):
    code = "not_found"
    http_status = 404

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} {entity_id} not found", entity=entity, id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class Forbidden(ProcurementError):
    code = "forbidden"
    http_status = 403

    def __init__(self, role: str, action: str) -> None:
        super().__init__(f"Role {role!r} is not permitted to {action}", role=role, action=action)
        self.role = role
        self.action = action


class InvalidTransition(ProcurementError):
    """The PO's current state does not permit the requested operation."""

    code = "invalid_transition"
    http_status = 409

    def __init__(
        self,
        message: str,
        po_id: Optional[str] = None,
        status: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(message, po_id=po_id, status=status, operation=operation)
        self.po_id = po_id
        self.status = status
        self.operation = operation


class ValidationError(ProcurementError):
    """Caller-correctable input problem; ``field`` and ``limit`` say what to fix."""

    code = "validation_error"
    http_status = 422

    def __init__(self, message: str, field: Optional[str] = None, limit: Any = None, **detail: Any) -> None:
        super().__init__(message, field=field, limit=limit, **detail)
        self.field = field
        self.limit = limit


class QuantityExceedsRemaining(ValidationError):
    code = "quantity_exceeds_remaining"

    def __init__(self, item_id: str, requested: int, remaining: int) -> None:
        super().__init__(
            f"Cannot receive {requested} of {item_id}: only {remaining} remaining",
            field=f"received_items.{item_id}",
            limit=remaining,
            item_id=item_id,
            requested=requested,
        )
        self.item_id = item_id
        self.requested = requested
        self.remaining = remaining


class NothingToReceive(ProcurementError):
    code = "nothing_to_receive"
    http_status = 422

    def __init__(self, po_id: str) -> None:
        super().__init__(f"No quantities to receive for {po_id}", po_id=po_id)


class Conflict(ProcurementError):
    """The record changed since the caller last read it."""

    code = "conflict"
    http_status = 409

    def __init__(self, po_id: str, expected: int, actual: Optional[int]) -> None:
        super().__init__(
            f"Purchase order {po_id} was modified (expected revision {expected}, found {actual})",
            po_id=po_id,
            expected_revision=expected,
            actual_revision=actual,
        )
        self.expected = expected
        self.actual = actual


class LedgerError(ProcurementError):
    """The inventory ledger refused an adjustment."""

    code = "ledger_error"
    http_status = 409
