from datetime import date as calendar_date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from stockledger.models.adjustment import (
    AdjustmentStatus,
    AdjustmentType,
    MovementKind,
    StockAdjustment,
    StockAdjustmentItem,
)


class AdjustmentItemIn(BaseModel):
    sku: str = Field(min_length=1, max_length=64)
    quantity: int = Field(gt=0, description="Magnitude; the adjustment type sets the sign")
    reason: str | None = Field(default=None, max_length=255)


class AdjustmentCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    adjustment_type: AdjustmentType
    reason: str = Field(min_length=1, max_length=120)
    date: calendar_date | None = None
    notes: str | None = None
    items: list[AdjustmentItemIn] = Field(min_length=1)
    allow_negative: bool = False
    submit: bool = True

    @field_validator("adjustment_type", mode="before")
    @classmethod
    def normalize_type(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class RejectRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=255)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class AdjustmentItemRecord(_CamelModel):
    sku: str
    name: str
    current_stock: int
    adjustment_quantity: int
    new_stock: int
    unit_cost: Decimal
    total_cost: Decimal
    item_reason: str | None = Field(default=None, alias="reason")

    @classmethod
    def from_model(cls, item: StockAdjustmentItem) -> "AdjustmentItemRecord":
        return cls(
            sku=item.sku,
            name=item.name,
            current_stock=item.current_stock,
            adjustment_quantity=item.adjustment_quantity,
            new_stock=item.new_stock,
            unit_cost=item.unit_cost,
            total_cost=item.total_cost,
            item_reason=item.item_reason,
        )


class StockAdjustmentRecord(_CamelModel):
    """Persisted record shape, serialized with camelCase keys."""

    id: str
    adjustment_no: str
    date: calendar_date
    adjustment_type: AdjustmentType
    reason: str
    status: AdjustmentStatus
    items: list[AdjustmentItemRecord]
    total_quantity: int
    total_value: Decimal
    allow_negative: bool = False
    created_by: str
    approved_by: str | None = None
    approved_date: datetime | None = None
    rejection_reason: str | None = None
    reversed_by: str | None = None
    reversed_date: datetime | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, adjustment: StockAdjustment) -> "StockAdjustmentRecord":
        return cls(
            id=adjustment.id,
            adjustment_no=adjustment.adjustment_no,
            date=adjustment.date,
            adjustment_type=adjustment.adjustment_type,
            reason=adjustment.reason,
            status=adjustment.status,
            items=[AdjustmentItemRecord.from_model(item) for item in adjustment.items],
            total_quantity=adjustment.total_quantity,
            total_value=adjustment.total_value,
            allow_negative=adjustment.allow_negative,
            created_by=adjustment.created_by,
            approved_by=adjustment.approved_by,
            approved_date=adjustment.approved_date,
            rejection_reason=adjustment.rejection_reason,
            reversed_by=adjustment.reversed_by,
            reversed_date=adjustment.reversed_date,
            notes=adjustment.notes,
            created_at=adjustment.created_at,
            updated_at=adjustment.updated_at,
        )


class MovementOut(_CamelModel):
    id: int
    sku: str
    kind: MovementKind
    requested_delta: int
    applied_delta: int
    quantity_before: int
    quantity_after: int
    clamped: bool
    note: str | None
    created_at: datetime

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, from_attributes=True)


class AdjustmentSummaryOut(_CamelModel):
    total: int
    total_increase: int
    total_decrease: int
    total_value: Decimal
    pending: int
    approved: int
    rejected: int
    reversed: int
    this_month: int

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, from_attributes=True)


class TotalsOut(_CamelModel):
    count: int
    quantity: int
    value: Decimal

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, from_attributes=True)


class PeriodTotalsOut(TotalsOut):
    period_start: calendar_date
    label: str


class AdjustmentReportOut(_CamelModel):
    summary: AdjustmentSummaryOut
    by_type: dict[str, TotalsOut]
    by_status: dict[str, TotalsOut]
    by_period: list[PeriodTotalsOut]
    reasons: list[str]


class ReasonVocabularyOut(BaseModel):
    increase: list[str]
    decrease: list[str]


class PrintLineOut(BaseModel):
    position: int
    sku: str
    name: str
    current_stock: int
    adjustment: str
    new_stock: int
    unit_cost: str
    total_cost: str
    reason: str | None


class AdjustmentPrintOut(BaseModel):
    header: dict
    lines: list[PrintLineOut]
    totals: dict
    notes: str | None
    signatures: list[str]
    currency: str
