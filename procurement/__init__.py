from .errors import (
    ProcurementError,
    NotFound,
    Forbidden,
    InvalidTransition,
    ValidationError,
    QuantityExceedsRemaining,
    NothingToReceive,
    Conflict,
    LedgerError,
)
from .permissions import Actor, can
from .service import PurchasingService

__all__ = [
    "ProcurementError",
    "NotFound",
    "Forbidden",
    "InvalidTransition",
    "ValidationError",
    "QuantityExceedsRemaining",
    "NothingToReceive",
    "Conflict",
    "LedgerError",
    "Actor",
    "can",
    "PurchasingService",
]
