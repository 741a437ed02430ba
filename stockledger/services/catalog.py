import logging
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from stockledger.core.exceptions import InsufficientStock, NotFound, ValidationError
from stockledger.models.catalog import Product
from stockledger.services.ports import ProductRepo
from stockledger.services.repository import SqlProductRepository
from stockledger.services.validation import CENT, clean_text, to_money

logger = logging.getLogger(__name__)


def _cost(value: Decimal | str | int) -> Decimal:
    return to_money(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class DeltaResult:
    sku: str
    quantity_before: int
    new_quantity: int
    requested_delta: int
    applied_delta: int

    @property
    def clamped(self) -> bool:
        return self.applied_delta != self.requested_delta

    @property
    def clamped_amount(self) -> int:
        return self.applied_delta - self.requested_delta


class InventoryCatalog:
    """SQLAlchemy-backed stock records keyed by SKU.

    Quantity changes only through ``apply_delta``; the other writers here edit
    descriptive fields and cost.
    """

    def __init__(self, db: Session, products: ProductRepo | None = None):
        self.db = db
        self.products = products or SqlProductRepository(db)

    def get(self, sku: str) -> Product:
        product = self.products.get(sku)
        if not product:
            raise NotFound(f"Product {sku} not found", sku=sku)
        return product

    def lock(self, skus: Iterable[str]) -> list[Product]:
        return self.products.lock(skus)

    def apply_delta(self, sku: str, signed_delta: int, *, strict: bool = False) -> DeltaResult:
        """Add ``signed_delta`` to the quantity on hand.

        A decrease past zero clamps at zero unless ``strict`` is set, in which
        case ``InsufficientStock`` is raised and nothing changes.
        """
        product = self.get(sku)
        before = int(product.quantity)
        target = before + int(signed_delta)
        if target < 0:
            if strict:
                raise InsufficientStock(sku=sku, available=before, requested=-int(signed_delta))
            logger.info("Clamped %s at zero: quantity %s, delta %s", sku, before, signed_delta)
            target = 0
        product.quantity = target
        return DeltaResult(
            sku=sku,
            quantity_before=before,
            new_quantity=target,
            requested_delta=int(signed_delta),
            applied_delta=target - before,
        )

    def create_product(
        self,
        *,
        sku: str,
        name: str,
        quantity: int = 0,
        unit_cost: Decimal | str | int = Decimal("0.00"),
        reorder_level: int = 0,
        description: str | None = None,
    ) -> Product:
        sku = sku.strip()
        if not sku:
            raise ValidationError("SKU is required")
        if quantity < 0:
            raise ValidationError("Opening quantity cannot be negative", sku=sku)
        if reorder_level < 0:
            raise ValidationError("Reorder level cannot be negative", sku=sku)
        if self.products.get(sku):
            raise ValidationError(f"Product {sku} already exists", sku=sku)
        product = Product(
            sku=sku,
            name=name.strip(),
            description=clean_text(description),
            quantity=quantity,
            unit_cost=_cost(unit_cost),
            reorder_level=reorder_level,
        )
        return self.products.add(product)

    def update_product(
        self,
        sku: str,
        *,
        name: str | None = None,
        unit_cost: Decimal | str | int | None = None,
        reorder_level: int | None = None,
        description: str | None = None,
        is_active: bool | None = None,
    ) -> Product:
        product = self.get(sku)
        if name is not None:
            product.name = name.strip()
        if unit_cost is not None:
            product.unit_cost = _cost(unit_cost)
        if reorder_level is not None:
            if reorder_level < 0:
                raise ValidationError("Reorder level cannot be negative", sku=sku)
            product.reorder_level = reorder_level
        if description is not None:
            product.description = clean_text(description)
        if is_active is not None:
            product.is_active = is_active
        return product

    def list_products(self, *, search: str | None = None, active_only: bool = False) -> list[Product]:
        return self.products.list(search=search, active_only=active_only)

    def low_stock(self) -> list[Product]:
        if isinstance(self.products, SqlProductRepository):
            return self.products.low_stock()
        return [p for p in self.products.list(active_only=True) if p.quantity <= p.reorder_level]
