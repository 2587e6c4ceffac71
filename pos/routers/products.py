from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from pos.dependencies import get_db, require_auth, service_errors
from pos.models.product import Product
from pos.schemas.catalog import (
    BulkTierCreate,
    BulkTierRead,
    BulkTierUpdate,
    ProductCreate,
    ProductRead,
    ProductUpdate,
)
from pos.services import catalog_service

router = APIRouter(prefix="/products", tags=["Products"])


def serialize_product(product: Product) -> ProductRead:
    base = ProductRead.model_validate(product).model_dump()
    base["category_name"] = product.category.name if product.category else None
    base["supplier_name"] = product.supplier.name if product.supplier else None
    base["is_low_stock"] = catalog_service.is_low_stock(product)
    base["bulk_pricing_summary"] = catalog_service.product_pricing_summary(product)
    return ProductRead(**base)


@router.get("", response_model=list[ProductRead])
def list_products(
    search: Optional[str] = None,
    category_id: Optional[str] = None,
    supplier_id: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    products = catalog_service.list_products(
        db,
        search=search,
        category_id=category_id,
        supplier_id=supplier_id,
        limit=limit,
        offset=offset,
    )
    return [serialize_product(product) for product in products]


@router.get("/low-stock", response_model=list[ProductRead])
def low_stock_products(db: Session = Depends(get_db)):
    return [serialize_product(product) for product in catalog_service.list_low_stock_products(db)]


@router.get("/barcode/{barcode}", response_model=ProductRead)
def get_product_by_barcode(barcode: str, db: Session = Depends(get_db)):
    product = catalog_service.find_product_by_barcode(db, barcode)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found.")
    return serialize_product(product)


@router.post("", response_model=ProductRead, status_code=201)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        product = catalog_service.create_product(db, payload.model_dump())
    return serialize_product(product)


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: str, db: Session = Depends(get_db)):
    with service_errors():
        product = catalog_service.get_product(db, product_id)
    return serialize_product(product)


@router.put("/{product_id}", response_model=ProductRead)
def update_product(
    product_id: str,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        product = catalog_service.update_product(
            db, product_id, payload.model_dump(exclude_unset=True)
        )
    return serialize_product(product)


@router.delete("/{product_id}", status_code=204)
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        catalog_service.delete_product(db, product_id)


@router.get("/{product_id}/bulk-pricing", response_model=list[BulkTierRead])
def list_bulk_pricing(product_id: str, db: Session = Depends(get_db)):
    with service_errors():
        return catalog_service.list_bulk_pricing(db, product_id)


@router.post("/{product_id}/bulk-pricing", response_model=BulkTierRead, status_code=201)
def add_bulk_tier(
    product_id: str,
    payload: BulkTierCreate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        return catalog_service.add_bulk_tier(db, product_id, payload.model_dump())


@router.put("/{product_id}/bulk-pricing", response_model=list[BulkTierRead])
def replace_bulk_pricing(
    product_id: str,
    payload: list[BulkTierCreate],
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        return catalog_service.replace_bulk_tiers(
            db, product_id, [tier.model_dump() for tier in payload]
        )


@router.put("/bulk-pricing/{tier_id}", response_model=BulkTierRead)
def update_bulk_tier(
    tier_id: str,
    payload: BulkTierUpdate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        return catalog_service.update_bulk_tier(
            db, tier_id, payload.model_dump(exclude_unset=True)
        )


@router.delete("/bulk-pricing/{tier_id}", status_code=204)
def delete_bulk_tier(
    tier_id: str,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        catalog_service.delete_bulk_tier(db, tier_id)


__all__ = ["router", "serialize_product"]
