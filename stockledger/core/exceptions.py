"""
Ledger exceptions.

Services raise these; the API layer translates them into HTTP responses.
"""


class LedgerError(Exception):
    """Base exception for the stock adjustment ledger"""

    code = "ledger_error"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(LedgerError):
    """Raised when an adjustment or staged item fails validation"""

    code = "validation_error"


class InsufficientStock(LedgerError):
    """Raised when a decrease exceeds the quantity on hand under strict mode"""

    code = "insufficient_stock"

    def __init__(self, sku: str, available: int, requested: int, message: str | None = None):
        super().__init__(
            message or f"Insufficient stock for {sku}: available {available}, requested {requested}",
            sku=sku,
            available=available,
            requested=requested,
        )
        self.sku = sku
        self.available = available
        self.requested = requested


class NotFound(LedgerError):
    """Raised when a SKU or adjustment does not exist"""

    code = "not_found"


class InvalidTransition(LedgerError):
    """Raised when a status transition is not allowed from the current status"""

    code = "invalid_transition"


class ConcurrencyConflict(LedgerError):
    """Raised when a concurrent writer changed a row between read and write"""

    code = "concurrency_conflict"
