"""
Role-based capability checks for purchase orders.

Role hierarchy: Owner > Admin > Operator > Viewer.  Owners and Admins may
do everything except purge, which only an Owner may do.  Operators and
Viewers are read-only.  Every engine operation asks ``can(role, action)``
rather than re-deriving a flag at the call site.
"""
from typing import Literal

from pydantic import BaseModel

Role = Literal["Owner", "Admin", "Operator", "Viewer"]

ROLES = ("Owner", "Admin", "Operator", "Viewer")

PO_READ    = "purchase_orders:read"
PO_CREATE  = "purchase_orders:create"
PO_UPDATE  = "purchase_orders:update"
PO_DELETE  = "purchase_orders:delete"
PO_APPROVE = "purchase_orders:approve"
PO_RECEIVE = "purchase_orders:receive"
PO_PURGE   = "purchase_orders:purge"

_WRITE = {PO_READ, PO_CREATE, PO_UPDATE, PO_DELETE, PO_APPROVE, PO_RECEIVE}

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "Owner":    frozenset(_WRITE | {PO_PURGE}),
    "Admin":    frozenset(_WRITE),
    "Operator": frozenset({PO_READ}),
    "Viewer":   frozenset({PO_READ}),
}


def can(role: str, action: str) -> bool:
    """Return True if *role* holds the *action* capability.  Unknown roles hold nothing."""
    return action in ROLE_PERMISSIONS.get(role, frozenset())


def permissions_for(role: str) -> frozenset[str]:
    return ROLE_PERMISSIONS.get(role, frozenset())


class Actor(BaseModel):
    """The user an operation is performed on behalf of."""
    user_id: str
    role: Role = "Viewer"

    def can(self, action: str) -> bool:
        return can(self.role, action)
