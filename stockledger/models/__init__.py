from stockledger.models.adjustment import (
    AdjustmentStatus,
    AdjustmentType,
    MovementKind,
    StockAdjustment,
    StockAdjustmentItem,
    StockMovement,
)
from stockledger.models.audit import AuditLog
from stockledger.models.catalog import Product
from stockledger.models.user import User, UserRole

__all__ = [
    "AdjustmentStatus",
    "AdjustmentType",
    "AuditLog",
    "MovementKind",
    "Product",
    "StockAdjustment",
    "StockAdjustmentItem",
    "StockMovement",
    "User",
    "UserRole",
]
