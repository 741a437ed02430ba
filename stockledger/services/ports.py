"""
Storage-facing contracts the ledger depends on.

The SQLAlchemy implementations live in ``stockledger.services.repository`` and
``stockledger.services.catalog``; anything satisfying these protocols can be
injected instead.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date
from typing import Protocol

from stockledger.models.adjustment import StockAdjustment, StockMovement
from stockledger.models.catalog import Product


class ProductRepo(Protocol):
    def get(self, sku: str) -> Product | None: ...

    def lock(self, skus: Iterable[str]) -> list[Product]: ...

    def add(self, product: Product) -> Product: ...

    def list(self, *, search: str | None = None, active_only: bool = False) -> list[Product]: ...


class AdjustmentRepo(Protocol):
    def get(self, adjustment_id: str, *, for_update: bool = False) -> StockAdjustment: ...

    def get_by_number(self, adjustment_no: str) -> StockAdjustment: ...

    def add(self, adjustment: StockAdjustment) -> StockAdjustment: ...

    def delete(self, adjustment: StockAdjustment) -> None: ...

    def next_number(self, on_date: date) -> str: ...

    def list(self, **filters) -> Sequence[StockAdjustment]: ...

    def movements(self, adjustment_id: str) -> Sequence[StockMovement]: ...


class Catalog(Protocol):
    def get(self, sku: str) -> Product: ...

    def lock(self, skus: Iterable[str]) -> list[Product]: ...

    def apply_delta(self, sku: str, signed_delta: int, *, strict: bool = False): ...
