from datetime import date as calendar_date, datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.core.exceptions import ValidationError
from stockledger.db.database import Base


class AdjustmentType(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"

    @property
    def sign(self) -> int:
        return 1 if self is AdjustmentType.INCREASE else -1


class AdjustmentStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVERSED = "reversed"


class MovementKind(str, Enum):
    APPLY = "apply"
    REVERSE = "reverse"


def _new_adjustment_id() -> str:
    return uuid4().hex


class StockAdjustment(Base):
    __tablename__ = "stock_adjustments"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_adjustment_id)
    adjustment_no: Mapped[str] = mapped_column(String(40), unique=True, index=True, nullable=False)
    date: Mapped[calendar_date] = mapped_column(Date, index=True, nullable=False)
    adjustment_type: Mapped[AdjustmentType] = mapped_column(SQLEnum(AdjustmentType), index=True, nullable=False)
    reason: Mapped[str] = mapped_column(String(120), index=True, nullable=False)
    status: Mapped[AdjustmentStatus] = mapped_column(SQLEnum(AdjustmentStatus), index=True, nullable=False)
    allow_negative: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[str] = mapped_column(String(120), nullable=False)
    approved_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    approved_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reversed_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    reversed_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    items: Mapped[list["StockAdjustmentItem"]] = relationship(
        back_populates="adjustment",
        cascade="all, delete-orphan",
        order_by="StockAdjustmentItem.position",
    )
    movements: Mapped[list["StockMovement"]] = relationship(
        back_populates="adjustment",
        cascade="all, delete-orphan",
        order_by="StockMovement.id",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def total_quantity(self) -> int:
        return sum(item.adjustment_quantity for item in self.items)

    @property
    def total_value(self) -> Decimal:
        return sum((Decimal(item.total_cost) for item in self.items), Decimal("0.00"))

    @property
    def sign(self) -> int:
        return self.adjustment_type.sign


class StockAdjustmentItem(Base):
    __tablename__ = "stock_adjustment_items"
    __table_args__ = (
        UniqueConstraint("adjustment_id", "sku", name="uq_adjustment_items_adjustment_sku"),
        CheckConstraint("adjustment_quantity > 0", name="ck_adjustment_items_quantity_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    adjustment_id: Mapped[str] = mapped_column(
        ForeignKey("stock_adjustments.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    sku: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    current_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    adjustment_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    new_stock: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    item_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    adjustment: Mapped[StockAdjustment] = relationship(back_populates="items")


class StockMovement(Base):
    """Append-only record of a delta the ledger pushed into the catalog."""

    __tablename__ = "stock_movements"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    adjustment_id: Mapped[str] = mapped_column(
        ForeignKey("stock_adjustments.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    sku: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    kind: Mapped[MovementKind] = mapped_column(SQLEnum(MovementKind), index=True, nullable=False)
    requested_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    applied_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_before: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_after: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    adjustment: Mapped[StockAdjustment] = relationship(back_populates="movements")

    @property
    def clamped(self) -> bool:
        return self.applied_delta != self.requested_delta


@event.listens_for(StockAdjustmentItem, "before_update")
def _reject_item_update(mapper, connection, target: StockAdjustmentItem) -> None:
    raise ValidationError(
        "Adjustment items are immutable once recorded",
        adjustment_id=target.adjustment_id,
        sku=target.sku,
    )


@event.listens_for(StockMovement, "before_update")
def _reject_movement_update(mapper, connection, target: StockMovement) -> None:
    raise ValidationError("Stock movements are append-only", movement_id=target.id)
