import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pos.core.constants import MOVEMENT_TYPES, STOCK_IN, STOCK_OUT
from pos.core.dates import to_utc
from pos.models.stock_movement import StockMovement
from pos.services.catalog_service import get_product, get_supplier

logger = logging.getLogger(__name__)


def add_stock_movement(
    db: Session,
    product_id: str,
    movement_type: str,
    quantity: int,
    *,
    reason: Optional[str] = None,
    supplier_id: Optional[str] = None,
    reference_number: Optional[str] = None,
    unit_cost: Optional[float] = None,
    created_at: Optional[datetime] = None,
) -> StockMovement:
    if movement_type not in MOVEMENT_TYPES:
        raise ValueError(f"Invalid movement type: {movement_type}")
    if quantity is None or quantity <= 0:
        raise ValueError("quantity must be greater than 0")
    if unit_cost is not None and unit_cost < 0:
        raise ValueError("unit_cost must be non-negative")
    product = get_product(db, product_id)
    if supplier_id:
        get_supplier(db, supplier_id)

    movement = StockMovement(
        product_id=product.id,
        type=movement_type,
        quantity=quantity,
        reason=reason,
        supplier_id=supplier_id or None,
        reference_number=reference_number,
        unit_cost=unit_cost,
    )
    if created_at is not None:
        movement.created_at = to_utc(created_at)

    current = product.quantity or 0
    if movement_type == STOCK_IN:
        product.quantity = current + quantity
    else:
        if quantity > current:
            logger.warning(
                "Stock out of %d for %s exceeds %d on hand; clamping to 0",
                quantity,
                product.name,
                current,
            )
        product.quantity = max(0, current - quantity)

    try:
        db.add(movement)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return movement


def _apply_filters(stmt, product_id=None, movement_type=None, start=None, end=None, supplier_id=None):
    if product_id:
        stmt = stmt.where(StockMovement.product_id == product_id)
    if movement_type:
        stmt = stmt.where(StockMovement.type == movement_type)
    if start is not None:
        stmt = stmt.where(StockMovement.created_at >= to_utc(start))
    if end is not None:
        stmt = stmt.where(StockMovement.created_at < to_utc(end))
    if supplier_id:
        stmt = stmt.where(StockMovement.supplier_id == supplier_id)
    return stmt


def list_stock_movements(
    db: Session,
    *,
    product_id=None,
    movement_type=None,
    start=None,
    end=None,
    supplier_id=None,
    limit: Optional[int] = 50,
    offset: int = 0,
) -> list[StockMovement]:
    stmt = _apply_filters(
        select(StockMovement),
        product_id=product_id,
        movement_type=movement_type,
        start=start,
        end=end,
        supplier_id=supplier_id,
    ).order_by(StockMovement.created_at.desc())
    if limit:
        stmt = stmt.limit(limit).offset(offset)
    return list(db.execute(stmt).scalars().all())


def stock_movement_summary(db: Session, *, product_id=None, start=None, end=None) -> dict:
    stock_in = func.coalesce(
        func.sum(case((StockMovement.type == STOCK_IN, StockMovement.quantity), else_=0)), 0
    )
    stock_out = func.coalesce(
        func.sum(case((StockMovement.type == STOCK_OUT, StockMovement.quantity), else_=0)), 0
    )
    stmt = _apply_filters(
        select(stock_in, stock_out, func.count(StockMovement.id)),
        product_id=product_id,
        start=start,
        end=end,
    )
    total_in, total_out, count = db.execute(stmt).one()
    return {
        "total_stock_in": int(total_in),
        "total_stock_out": int(total_out),
        "net_movement": int(total_in) - int(total_out),
        "movement_count": int(count),
    }


__all__ = ["add_stock_movement", "list_stock_movements", "stock_movement_summary"]
