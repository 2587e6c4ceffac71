from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pos.dependencies import get_db, require_auth, service_errors
from pos.routers.sales import serialize_sale
from pos.schemas.customer import CustomerCreate, CustomerRead, CustomerStatistics, CustomerUpdate
from pos.schemas.sale import SaleRead
from pos.services import customer_service

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.get("", response_model=list[CustomerRead])
def list_customers(
    search: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return customer_service.list_customers(db, search=search, limit=limit, offset=offset)


@router.post("", response_model=CustomerRead, status_code=201)
def create_customer(
    payload: CustomerCreate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        return customer_service.create_customer(db, payload.model_dump())


@router.get("/{customer_id}", response_model=CustomerRead)
def get_customer(customer_id: str, db: Session = Depends(get_db)):
    with service_errors():
        return customer_service.get_customer(db, customer_id)


@router.put("/{customer_id}", response_model=CustomerRead)
def update_customer(
    customer_id: str,
    payload: CustomerUpdate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        return customer_service.update_customer(
            db, customer_id, payload.model_dump(exclude_unset=True)
        )


@router.delete("/{customer_id}", status_code=204)
def delete_customer(
    customer_id: str,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        customer_service.delete_customer(db, customer_id)


@router.get("/{customer_id}/statistics", response_model=CustomerStatistics)
def customer_statistics(customer_id: str, db: Session = Depends(get_db)):
    with service_errors():
        return customer_service.customer_statistics(db, customer_id)


@router.get("/{customer_id}/sales", response_model=list[SaleRead])
def customer_sales(
    customer_id: str,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    with service_errors():
        sales = customer_service.customer_purchase_history(
            db, customer_id, limit=limit, offset=offset
        )
        return [serialize_sale(db, sale) for sale in sales]


__all__ = ["router"]
