from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pos.dependencies import get_db, require_auth, service_errors
from pos.schemas.stock import StockMovementCreate, StockMovementRead, StockMovementSummary
from pos.services import stock_service

router = APIRouter(prefix="/stock", tags=["Stock"])


@router.post("/movements", response_model=StockMovementRead, status_code=201)
def add_stock_movement(
    payload: StockMovementCreate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        return stock_service.add_stock_movement(
            db,
            payload.product_id,
            payload.type,
            payload.quantity,
            reason=payload.reason,
            supplier_id=payload.supplier_id,
            reference_number=payload.reference_number,
            unit_cost=payload.unit_cost,
        )


@router.get("/movements", response_model=list[StockMovementRead])
def list_stock_movements(
    product_id: Optional[str] = None,
    type: Optional[Literal["stock_in", "stock_out"]] = None,
    supplier_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return stock_service.list_stock_movements(
        db,
        product_id=product_id,
        movement_type=type,
        start=start,
        end=end,
        supplier_id=supplier_id,
        limit=limit,
        offset=offset,
    )


@router.get("/summary", response_model=StockMovementSummary)
def stock_summary(
    product_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    return stock_service.stock_movement_summary(db, product_id=product_id, start=start, end=end)


__all__ = ["router"]
