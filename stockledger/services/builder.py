"""
Adjustment builder.

Stages line items for one adjustment against live catalog snapshots. Nothing
here writes to the catalog or the database; ``build`` hands back a transient
draft for the ledger to persist.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from stockledger.core.exceptions import InsufficientStock, NotFound, ValidationError
from stockledger.models.adjustment import (
    AdjustmentStatus,
    AdjustmentType,
    StockAdjustment,
    StockAdjustmentItem,
)
from stockledger.services.ports import Catalog
from stockledger.services.validation import (
    clean_text,
    coerce_adjustment_type,
    line_total,
    reasons_for,
    validate_magnitude,
    validate_reason,
)


@dataclass(frozen=True)
class StagedItem:
    sku: str
    name: str
    current_stock: int
    adjustment_quantity: int
    new_stock: int
    unit_cost: Decimal
    total_cost: Decimal
    item_reason: str | None = None
    allow_negative: bool = False


class AdjustmentBuilder:
    def __init__(
        self,
        catalog: Catalog,
        adjustment_type: AdjustmentType | str = AdjustmentType.INCREASE,
        reason: str | None = None,
    ):
        self.catalog = catalog
        self.adjustment_type = coerce_adjustment_type(adjustment_type)
        self.reason: str | None = None
        self._items: list[StagedItem] = []
        if reason is not None:
            self.set_reason(reason)

    @property
    def items(self) -> tuple[StagedItem, ...]:
        return tuple(self._items)

    @property
    def reasons(self) -> tuple[str, ...]:
        return reasons_for(self.adjustment_type)

    @property
    def total_quantity(self) -> int:
        return sum(item.adjustment_quantity for item in self._items)

    @property
    def total_value(self) -> Decimal:
        return sum((item.total_cost for item in self._items), Decimal("0.00"))

    def set_reason(self, reason: str) -> str:
        self.reason = validate_reason(self.adjustment_type, reason)
        return self.reason

    def change_type(self, new_type: AdjustmentType | str) -> None:
        # Reason vocabulary and sign both depend on the type, so staged work is dropped.
        self.adjustment_type = coerce_adjustment_type(new_type)
        self.reason = None
        self._items = []

    def add_item(
        self,
        sku: str,
        magnitude: int,
        item_reason: str | None = None,
        *,
        allow_negative: bool = False,
    ) -> StagedItem:
        magnitude = validate_magnitude(magnitude)
        sku = (sku or "").strip()
        if not sku:
            raise ValidationError("SKU is required")
        if any(item.sku == sku for item in self._items):
            raise ValidationError(f"{sku} is already staged in this adjustment", sku=sku)

        product = self.catalog.get(sku)
        current_stock = int(product.quantity)
        if self.adjustment_type is AdjustmentType.DECREASE and magnitude > current_stock and not allow_negative:
            raise InsufficientStock(sku=sku, available=current_stock, requested=magnitude)

        unit_cost = Decimal(product.unit_cost)
        staged = StagedItem(
            sku=sku,
            name=product.name,
            current_stock=current_stock,
            adjustment_quantity=magnitude,
            new_stock=current_stock + self.adjustment_type.sign * magnitude,
            unit_cost=unit_cost,
            total_cost=line_total(magnitude, unit_cost),
            item_reason=clean_text(item_reason),
            allow_negative=allow_negative,
        )
        self._items.append(staged)
        return staged

    def remove_item(self, sku: str) -> StagedItem:
        for index, item in enumerate(self._items):
            if item.sku == sku:
                return self._items.pop(index)
        raise NotFound(f"{sku} is not staged in this adjustment", sku=sku)

    def clear(self) -> None:
        self._items = []

    def build(
        self,
        created_by: str,
        adjustment_date: date | None = None,
        notes: str | None = None,
    ) -> StockAdjustment:
        if not self._items:
            raise ValidationError("An adjustment needs at least one item")
        if self.reason is None:
            raise ValidationError("Adjustment reason is required")
        if not created_by or not created_by.strip():
            raise ValidationError("created_by is required")

        return StockAdjustment(
            date=adjustment_date or date.today(),
            adjustment_type=self.adjustment_type,
            reason=self.reason,
            status=AdjustmentStatus.DRAFT,
            allow_negative=any(item.allow_negative for item in self._items),
            created_by=created_by.strip(),
            notes=clean_text(notes),
            items=[
                StockAdjustmentItem(
                    position=position,
                    sku=item.sku,
                    name=item.name,
                    current_stock=item.current_stock,
                    adjustment_quantity=item.adjustment_quantity,
                    new_stock=item.new_stock,
                    unit_cost=item.unit_cost,
                    total_cost=item.total_cost,
                    item_reason=item.item_reason,
                )
                for position, item in enumerate(self._items, start=1)
            ],
        )
