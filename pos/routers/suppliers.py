from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pos.dependencies import get_db, require_auth, service_errors
from pos.routers.products import serialize_product
from pos.schemas.catalog import ProductRead, SupplierCreate, SupplierRead, SupplierUpdate
from pos.services import analytics_service, catalog_service

router = APIRouter(prefix="/suppliers", tags=["Suppliers"])


@router.get("", response_model=list[SupplierRead])
def list_suppliers(
    search: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return catalog_service.list_suppliers(db, search=search, limit=limit, offset=offset)


@router.post("", response_model=SupplierRead, status_code=201)
def create_supplier(
    payload: SupplierCreate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        return catalog_service.create_supplier(db, payload.model_dump())


@router.get("/{supplier_id}", response_model=SupplierRead)
def get_supplier(supplier_id: str, db: Session = Depends(get_db)):
    with service_errors():
        return catalog_service.get_supplier(db, supplier_id)


@router.put("/{supplier_id}", response_model=SupplierRead)
def update_supplier(
    supplier_id: str,
    payload: SupplierUpdate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        return catalog_service.update_supplier(
            db, supplier_id, payload.model_dump(exclude_unset=True)
        )


@router.delete("/{supplier_id}", status_code=204)
def delete_supplier(
    supplier_id: str,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        catalog_service.delete_supplier(db, supplier_id)


@router.get("/{supplier_id}/products", response_model=list[ProductRead])
def supplier_products(supplier_id: str, db: Session = Depends(get_db)):
    with service_errors():
        products = catalog_service.list_supplier_products(db, supplier_id)
    return [serialize_product(product) for product in products]


@router.get("/{supplier_id}/analytics")
def supplier_analytics(supplier_id: str, db: Session = Depends(get_db)):
    with service_errors():
        return analytics_service.supplier_analytics(db, supplier_id)


__all__ = ["router"]
