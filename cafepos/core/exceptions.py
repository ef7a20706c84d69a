from decimal import Decimal
from typing import Optional


class CafePosError(Exception):
    """Base class for all engine errors."""


class ValidationError(CafePosError):
    """Input rejected before any side effect took place."""


class OrderRejectedError(ValidationError):
    """Raised when a cart fails validation (empty cart, insufficient payment, unknown items)."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class InsufficientStockError(ValidationError):
    """Raised only when the stock ledger runs with the REJECT oversell policy."""

    def __init__(self, item_type: str, item_id: str, available: Decimal, needed: Decimal):
        self.item_type = item_type
        self.item_id = item_id
        self.available = available
        self.needed = needed
        super().__init__(
            f"Insufficient stock for {item_type} {item_id}: need {needed}, have {available}"
        )


class InvalidTransitionError(ValidationError):
    """Raised when an order status change is attempted out of a final state."""


class DuplicateEntityError(CafePosError):
    """Name clash on a catalog entity; resolved by reuse, never raised."""


class StorageError(CafePosError):
    """Unexpected failure inside a storage backend."""

    def __init__(self, message: str, table: Optional[str] = None):
        self.table = table
        super().__init__(message)


class IntegrityConflict(StorageError):
    """A unique constraint rejected an insert or update."""
