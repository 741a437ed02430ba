from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from stockledger.api.deps import get_catalog, require_permission
from stockledger.core.exceptions import ConcurrencyConflict
from stockledger.db.database import get_db
from stockledger.models.user import User
from stockledger.schemas.catalog import ProductCreate, ProductOut, ProductUpdate
from stockledger.services.audit import record_audit
from stockledger.services.catalog import InventoryCatalog

router = APIRouter(prefix="/catalog", tags=["Catalog"])


def _commit(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product SKU already exists") from exc
    except StaleDataError as exc:
        db.rollback()
        raise ConcurrencyConflict("Product changed concurrently, reload and retry") from exc


@router.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    current_user: User = Depends(require_permission("catalog:manage")),
    catalog: InventoryCatalog = Depends(get_catalog),
    db: Session = Depends(get_db),
):
    product = catalog.create_product(
        sku=payload.sku,
        name=payload.name,
        quantity=payload.quantity,
        unit_cost=payload.unit_cost,
        reorder_level=payload.reorder_level,
        description=payload.description,
    )
    record_audit(
        db,
        "catalog.product_created",
        actor_name=current_user.username,
        actor_user_id=current_user.id,
        entity_type="product",
        entity_id=product.sku,
        details={"opening_quantity": product.quantity},
    )
    _commit(db)
    db.refresh(product)
    return product


@router.get("/products", response_model=list[ProductOut])
def list_products(
    search: str | None = None,
    active_only: bool = False,
    current_user: User = Depends(require_permission("catalog:view")),
    catalog: InventoryCatalog = Depends(get_catalog),
):
    return catalog.list_products(search=search, active_only=active_only)


@router.get("/products/{sku}", response_model=ProductOut)
def get_product(
    sku: str,
    current_user: User = Depends(require_permission("catalog:view")),
    catalog: InventoryCatalog = Depends(get_catalog),
):
    return catalog.get(sku)


@router.patch("/products/{sku}", response_model=ProductOut)
def update_product(
    sku: str,
    payload: ProductUpdate,
    current_user: User = Depends(require_permission("catalog:manage")),
    catalog: InventoryCatalog = Depends(get_catalog),
    db: Session = Depends(get_db),
):
    product = catalog.update_product(
        sku,
        name=payload.name,
        unit_cost=payload.unit_cost,
        reorder_level=payload.reorder_level,
        description=payload.description,
        is_active=payload.is_active,
    )
    record_audit(
        db,
        "catalog.product_updated",
        actor_name=current_user.username,
        actor_user_id=current_user.id,
        entity_type="product",
        entity_id=product.sku,
        details=payload.model_dump(exclude_none=True),
    )
    _commit(db)
    db.refresh(product)
    return product


@router.get("/alerts/low-stock", response_model=list[ProductOut])
def low_stock_alerts(
    current_user: User = Depends(require_permission("catalog:view")),
    catalog: InventoryCatalog = Depends(get_catalog),
):
    return catalog.low_stock()
