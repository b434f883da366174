"""Stock ledger error taxonomy.

Every error the ledger raises on purpose derives from ``StockLedgerError``
and carries the HTTP status it maps to, so route handlers never translate
errors by hand. ``main.py`` registers a single handler for the base class.
"""

from typing import Any, Dict, Optional


class StockLedgerError(Exception):
    """Base exception for the stock ledger."""

    status_code: int = 500
    code: str = "stock_ledger_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class InvalidInputError(StockLedgerError):
    """Malformed request data, rejected before any write."""

    status_code = 400
    code = "invalid_input"


class InvalidQuantityError(InvalidInputError):
    """Quantity is not a positive integer."""

    code = "invalid_quantity"


class InvalidMovementTypeError(InvalidInputError):
    """Movement type is unknown or not supported."""

    code = "invalid_movement_type"


class InsufficientStockError(StockLedgerError):
    """Raised when an outbound movement exceeds the quantity on hand."""

    status_code = 400
    code = "insufficient_stock"

    def __init__(self, product_id: int, warehouse_id: int, available: int, requested: int):
        self.product_id = product_id
        self.warehouse_id = warehouse_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id} in warehouse {warehouse_id}: "
            f"requested {requested}, available {available}",
            details={"available": available, "requested": requested},
        )


class NotFoundError(StockLedgerError):
    status_code = 404
    code = "not_found"


class AlreadyExistsError(StockLedgerError):
    status_code = 409
    code = "already_exists"


class StockConflictError(StockLedgerError):
    """A concurrent writer changed the stock level between read and write.

    Retryable: the processors retry internally with a fresh read before
    surfacing it to the caller.
    """

    status_code = 409
    code = "stock_conflict"


class LedgerImmutableError(StockLedgerError):
    """Attempt to mutate or delete a committed movement."""

    status_code = 409
    code = "ledger_immutable"


class StorageFailureError(StockLedgerError):
    """Unexpected database failure. The unit of work has been rolled back."""

    status_code = 500
    code = "storage_failure"
