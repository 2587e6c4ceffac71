from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pos.core.constants import STOCK_IN
from pos.core.dates import to_utc, utc_now
from pos.models.product import Product
from pos.models.sale import Sale, SaleItem
from pos.models.stock_movement import StockMovement
from pos.services.catalog_service import get_supplier
from pos.services.expense_service import expense_totals

TOP_PRODUCTS_LIMIT = 5
RECENT_DELIVERIES_LIMIT = 5


def _percent(part, whole):
    return part / whole * 100 if whole else 0.0


def _growth(current, previous):
    if previous:
        return (current - previous) / previous * 100
    return 100.0 if current else 0.0


def _period_totals(db: Session, start: datetime, end: datetime) -> dict:
    sales_count, revenue = db.execute(
        select(func.count(Sale.id), func.coalesce(func.sum(Sale.total), 0.0)).where(
            Sale.created_at >= start, Sale.created_at < end
        )
    ).one()
    cost, items_sold = db.execute(
        select(
            func.coalesce(func.sum(SaleItem.quantity * SaleItem.cost), 0.0),
            func.coalesce(func.sum(SaleItem.quantity), 0),
        )
        .join(Sale, Sale.id == SaleItem.sale_id)
        .where(Sale.created_at >= start, Sale.created_at < end)
    ).one()
    return {
        "sales_count": int(sales_count),
        "revenue": float(revenue),
        "cost": float(cost),
        "items_sold": int(items_sold),
    }


def top_products(db: Session, start: datetime, end: datetime, limit=TOP_PRODUCTS_LIMIT) -> list[dict]:
    revenue = func.sum(SaleItem.subtotal)
    rows = db.execute(
        select(
            Product.id,
            Product.name,
            func.sum(SaleItem.quantity),
            revenue,
            func.sum(SaleItem.quantity * SaleItem.cost),
        )
        .join(SaleItem, SaleItem.product_id == Product.id)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .where(Sale.created_at >= start, Sale.created_at < end)
        .group_by(Product.id, Product.name)
        .order_by(revenue.desc())
        .limit(limit)
    ).all()
    results = []
    for product_id, name, quantity, product_revenue, product_cost in rows:
        product_revenue = float(product_revenue or 0)
        profit = product_revenue - float(product_cost or 0)
        results.append(
            {
                "product_id": product_id,
                "name": name,
                "quantity": int(quantity or 0),
                "revenue": product_revenue,
                "profit": profit,
                "margin": _percent(profit, product_revenue),
            }
        )
    return results


def sales_analytics(db: Session, days: int = 30, now: Optional[datetime] = None) -> dict:
    if days <= 0:
        raise ValueError("days must be greater than 0")
    end = to_utc(now) if now else utc_now()
    start = end - timedelta(days=days)
    previous_start = start - timedelta(days=days)

    current = _period_totals(db, start, end)
    previous = _period_totals(db, previous_start, start)
    profit = current["revenue"] - current["cost"]
    expenses = expense_totals(db, start, end)
    return {
        "period_days": days,
        "start": start,
        "end": end,
        "total_sales": current["sales_count"],
        "total_revenue": current["revenue"],
        "total_cost": current["cost"],
        "total_profit": profit,
        "total_expenses": expenses["total"],
        "net_profit": profit - expenses["total"],
        "total_balance": current["revenue"] - expenses["total"],
        "expenses_by_category": expenses["by_category"],
        "profit_margin": _percent(profit, current["revenue"]),
        "average_sale": (
            current["revenue"] / current["sales_count"] if current["sales_count"] else 0.0
        ),
        "total_items_sold": current["items_sold"],
        "top_products": top_products(db, start, end),
        "revenue_growth": _growth(current["revenue"], previous["revenue"]),
        "sales_growth": _growth(current["sales_count"], previous["sales_count"]),
    }


def daily_sales(db: Session, start: datetime, end: datetime) -> list[dict]:
    rows = db.execute(
        select(Sale.created_at, Sale.total)
        .where(Sale.created_at >= to_utc(start), Sale.created_at < to_utc(end))
        .order_by(Sale.created_at)
    ).all()
    buckets = defaultdict(lambda: {"sales_count": 0, "revenue": 0.0})
    for created_at, total in rows:
        bucket = buckets[created_at.date()]
        bucket["sales_count"] += 1
        bucket["revenue"] += total or 0.0
    return [{"date": day, **values} for day, values in sorted(buckets.items())]


def payment_method_breakdown(db: Session, start: datetime, end: datetime) -> list[dict]:
    revenue = func.coalesce(func.sum(Sale.total), 0.0)
    rows = db.execute(
        select(Sale.payment_method, func.count(Sale.id), revenue)
        .where(Sale.created_at >= to_utc(start), Sale.created_at < to_utc(end))
        .group_by(Sale.payment_method)
        .order_by(revenue.desc())
    ).all()
    grand_total = sum(float(row[2]) for row in rows)
    return [
        {
            "payment_method": method,
            "sales_count": int(count),
            "revenue": float(amount),
            "share": _percent(float(amount), grand_total),
        }
        for method, count, amount in rows
    ]


def inventory_value(db: Session) -> dict:
    cost_value, retail_value, units, product_count = db.execute(
        select(
            func.coalesce(func.sum(Product.cost * Product.quantity), 0.0),
            func.coalesce(func.sum(Product.price * Product.quantity), 0.0),
            func.coalesce(func.sum(Product.quantity), 0),
            func.count(Product.id),
        )
    ).one()
    low_stock = db.execute(
        select(func.count(Product.id)).where(Product.quantity <= Product.min_stock)
    ).scalar_one()
    return {
        "cost_value": float(cost_value),
        "retail_value": float(retail_value),
        "potential_profit": float(retail_value) - float(cost_value),
        "total_units": int(units),
        "product_count": int(product_count),
        "low_stock_count": int(low_stock),
    }


def supplier_analytics(db: Session, supplier_id: str, now: Optional[datetime] = None) -> dict:
    supplier = get_supplier(db, supplier_id)
    end = to_utc(now) if now else utc_now()
    start = end - timedelta(days=30)

    total_products = db.execute(
        select(func.count(Product.id)).where(Product.supplier_id == supplier.id)
    ).scalar_one()
    purchase_value = db.execute(
        select(
            func.coalesce(
                func.sum(StockMovement.quantity * func.coalesce(StockMovement.unit_cost, 0)),
                0.0,
            )
        ).where(
            StockMovement.supplier_id == supplier.id,
            StockMovement.type == STOCK_IN,
            StockMovement.created_at >= start,
            StockMovement.created_at < end,
        )
    ).scalar_one()
    deliveries = db.execute(
        select(StockMovement, Product.name)
        .join(Product, Product.id == StockMovement.product_id)
        .where(StockMovement.supplier_id == supplier.id, StockMovement.type == STOCK_IN)
        .order_by(StockMovement.created_at.desc())
        .limit(RECENT_DELIVERIES_LIMIT)
    ).all()
    products = db.execute(
        select(Product)
        .where(Product.supplier_id == supplier.id)
        .order_by(Product.quantity.desc(), Product.name)
        .limit(TOP_PRODUCTS_LIMIT)
    ).scalars().all()

    return {
        "supplier_id": supplier.id,
        "supplier_name": supplier.name,
        "total_products": int(total_products),
        "total_purchase_value": float(purchase_value),
        "recent_deliveries": [
            {
                "id": movement.id,
                "product_id": movement.product_id,
                "product_name": product_name,
                "quantity": movement.quantity,
                "unit_cost": movement.unit_cost,
                "reference_number": movement.reference_number,
                "created_at": movement.created_at,
            }
            for movement, product_name in deliveries
        ],
        "top_products": [
            {
                "product_id": product.id,
                "name": product.name,
                "quantity": product.quantity,
                "stock_value": (product.cost or 0) * (product.quantity or 0),
            }
            for product in products
        ],
    }


__all__ = [
    "daily_sales",
    "inventory_value",
    "payment_method_breakdown",
    "sales_analytics",
    "supplier_analytics",
    "top_products",
]
