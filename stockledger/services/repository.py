from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from stockledger.core.config import settings
from stockledger.core.exceptions import NotFound
from stockledger.models.adjustment import (
    AdjustmentStatus,
    AdjustmentType,
    StockAdjustment,
    StockMovement,
)
from stockledger.models.catalog import Product


class SqlProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, sku: str) -> Product | None:
        return self.db.scalar(select(Product).where(Product.sku == sku))

    def lock(self, skus: Iterable[str]) -> list[Product]:
        ordered = sorted(set(skus))
        if not ordered:
            return []
        query = (
            select(Product)
            .where(Product.sku.in_(ordered))
            .order_by(Product.sku)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list(self.db.scalars(query).all())

    def add(self, product: Product) -> Product:
        self.db.add(product)
        self.db.flush()
        return product

    def list(self, *, search: str | None = None, active_only: bool = False) -> list[Product]:
        query = select(Product).order_by(Product.sku)
        if active_only:
            query = query.where(Product.is_active.is_(True))
        if search:
            term = f"%{search.strip().lower()}%"
            query = query.where(or_(func.lower(Product.sku).like(term), func.lower(Product.name).like(term)))
        return list(self.db.scalars(query).all())

    def low_stock(self) -> list[Product]:
        query = (
            select(Product)
            .where(Product.is_active.is_(True), Product.quantity <= Product.reorder_level)
            .order_by(Product.quantity.asc(), Product.sku)
        )
        return list(self.db.scalars(query).all())


class AdjustmentRepository:
    def __init__(self, db: Session, number_prefix: str | None = None):
        self.db = db
        self.number_prefix = number_prefix or settings.adjustment_no_prefix

    def get(self, adjustment_id: str, *, for_update: bool = False) -> StockAdjustment:
        query = select(StockAdjustment).where(StockAdjustment.id == adjustment_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        adjustment = self.db.scalar(query)
        if not adjustment:
            raise NotFound(f"Stock adjustment {adjustment_id} not found", adjustment_id=adjustment_id)
        return adjustment

    def get_by_number(self, adjustment_no: str) -> StockAdjustment:
        adjustment = self.db.scalar(select(StockAdjustment).where(StockAdjustment.adjustment_no == adjustment_no))
        if not adjustment:
            raise NotFound(f"Stock adjustment {adjustment_no} not found", adjustment_no=adjustment_no)
        return adjustment

    def add(self, adjustment: StockAdjustment) -> StockAdjustment:
        self.db.add(adjustment)
        self.db.flush()
        return adjustment

    def delete(self, adjustment: StockAdjustment) -> None:
        self.db.delete(adjustment)

    def next_number(self, on_date: date) -> str:
        # Deleted drafts leave gaps, so continue from the highest suffix in use.
        stem = f"{self.number_prefix}-{on_date:%Y%m%d}-"
        taken = self.db.scalars(
            select(StockAdjustment.adjustment_no).where(StockAdjustment.adjustment_no.like(f"{stem}%"))
        ).all()
        suffixes = [int(number[len(stem):]) for number in taken if number[len(stem):].isdigit()]
        return f"{stem}{max(suffixes, default=0) + 1:04d}"

    def list(
        self,
        *,
        status: AdjustmentStatus | None = None,
        adjustment_type: AdjustmentType | None = None,
        reason: str | None = None,
        search: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        sku: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[StockAdjustment]:
        query = (
            select(StockAdjustment)
            .options(selectinload(StockAdjustment.items))
            .order_by(StockAdjustment.date.desc(), StockAdjustment.created_at.desc())
        )
        if status is not None:
            query = query.where(StockAdjustment.status == status)
        if adjustment_type is not None:
            query = query.where(StockAdjustment.adjustment_type == adjustment_type)
        if reason:
            query = query.where(StockAdjustment.reason == reason)
        if search:
            term = f"%{search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(StockAdjustment.adjustment_no).like(term),
                    func.lower(StockAdjustment.reason).like(term),
                    func.lower(StockAdjustment.created_by).like(term),
                )
            )
        if date_from is not None:
            query = query.where(StockAdjustment.date >= date_from)
        if date_to is not None:
            query = query.where(StockAdjustment.date <= date_to)
        if sku:
            query = query.where(StockAdjustment.items.any(sku=sku))
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return list(self.db.scalars(query).all())

    def movements(self, adjustment_id: str) -> list[StockMovement]:
        query = select(StockMovement).where(StockMovement.adjustment_id == adjustment_id).order_by(StockMovement.id)
        return list(self.db.scalars(query).all())
