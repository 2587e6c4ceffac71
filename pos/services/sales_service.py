import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pos.config import get_payment_methods, get_settings
from pos.core.dates import to_utc, utc_now
from pos.core.errors import InsufficientStockError, RecordNotFoundError
from pos.models.product import Product
from pos.models.sale import Sale, SaleItem
from pos.services.catalog_service import product_tiers
from pos.services.customer_service import get_customer, record_visit, reverse_visit
from pos.services.pricing_service import Cart, CartProduct, CartTotals

logger = logging.getLogger(__name__)


def to_cart_product(product: Product) -> CartProduct:
    return CartProduct(
        product_id=product.id,
        name=product.name,
        unit_price=product.price,
        cost=product.cost or 0.0,
        stock=product.quantity or 0,
        tiers=product_tiers(product),
        barcode=product.barcode,
    )


def _line_value(line, key, default=None):
    if isinstance(line, dict):
        return line.get(key, default)
    return getattr(line, key, default)


def build_cart(db: Session, lines: Iterable) -> Cart:
    """Assemble a cart from ``product_id``/``quantity``/``discount`` requests."""
    cart = Cart()
    for line in lines:
        product_id = _line_value(line, "product_id")
        product = db.get(Product, product_id)
        if product is None:
            raise RecordNotFoundError("Product", product_id)
        quantity = int(_line_value(line, "quantity", 1))
        cart.add_product(to_cart_product(product), quantity)
        discount = _line_value(line, "discount") or 0
        if discount:
            cart.update_discount(product_id, float(discount))
    return cart


def quote_cart(db: Session, lines: Iterable) -> CartTotals:
    return build_cart(db, lines).totals()


def _validate_payment(db: Session, payment_method, customer_id):
    settings = get_settings()
    methods = get_payment_methods(settings)
    if not payment_method or not str(payment_method).strip():
        raise ValueError("payment_method is required")
    payment_method = str(payment_method).strip()
    lookup = {method.lower(): method for method in methods}
    if payment_method.lower() not in lookup:
        raise ValueError(
            "Unsupported payment method: {} (expected one of {})".format(
                payment_method, ", ".join(methods)
            )
        )
    payment_method = lookup[payment_method.lower()]
    customer = get_customer(db, customer_id) if customer_id else None
    if payment_method.lower() == settings.DEBT_PAYMENT_METHOD.lower() and customer is None:
        raise ValueError("A customer is required for debt sales")
    return payment_method, customer


def record_sale(
    db: Session,
    cart: Cart,
    payment_method: str,
    *,
    customer_id: Optional[str] = None,
    note: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Sale:
    if cart.is_empty:
        raise ValueError("Cart is empty")
    payment_method, customer = _validate_payment(db, payment_method, customer_id)
    totals = cart.totals()

    try:
        sale = Sale(
            total=totals.final_total,
            payment_method=payment_method,
            note=(note or "").strip() or None,
            customer_id=customer.id if customer else None,
            created_at=to_utc(created_at) if created_at else utc_now(),
        )
        db.add(sale)
        for line in totals.lines:
            product = db.get(Product, line.product_id)
            if product is None:
                raise RecordNotFoundError("Product", line.product_id)
            # Stock may have moved since the cart was built.
            if line.quantity > (product.quantity or 0):
                raise InsufficientStockError(product.name, product.quantity or 0, line.quantity)
            sale.items.append(
                SaleItem(
                    product_id=product.id,
                    quantity=line.quantity,
                    price=line.effective_unit_price,
                    original_price=line.unit_price,
                    bulk_discount=line.bulk_savings,
                    cost=product.cost or 0.0,
                    discount=line.discount,
                    subtotal=line.subtotal,
                )
            )
            product.quantity = product.quantity - line.quantity
        if customer is not None:
            record_visit(customer, totals.final_total)
        db.commit()
    except (SQLAlchemyError, ValueError, LookupError):
        db.rollback()
        raise

    logger.info(
        "Recorded sale %s: %d line(s), total %.2f via %s",
        sale.id,
        len(totals.lines),
        totals.final_total,
        payment_method,
        extra={"sale_id": sale.id},
    )
    return sale


def create_sale(db: Session, payload) -> Sale:
    cart = build_cart(db, payload.items)
    return record_sale(
        db,
        cart,
        payload.payment_method,
        customer_id=payload.customer_id,
        note=payload.note,
        created_at=payload.created_at,
    )


def get_sale(db: Session, sale_id) -> Sale:
    sale = db.get(Sale, sale_id)
    if sale is None:
        raise RecordNotFoundError("Sale", sale_id)
    return sale


def delete_sale(db: Session, sale_id) -> None:
    sale = get_sale(db, sale_id)
    try:
        for item in sale.items:
            product = db.get(Product, item.product_id)
            if product is not None:
                product.quantity = (product.quantity or 0) + item.quantity
        if sale.customer_id:
            customer = sale.customer or get_customer(db, sale.customer_id)
            reverse_visit(customer, sale.total)
        db.delete(sale)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("Deleted sale %s and restored stock", sale_id)


def list_sales(
    db: Session,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    customer_id: Optional[str] = None,
    payment_method: Optional[str] = None,
    limit: Optional[int] = 50,
    offset: int = 0,
) -> list[Sale]:
    stmt = select(Sale).order_by(Sale.created_at.desc())
    if start is not None:
        stmt = stmt.where(Sale.created_at >= to_utc(start))
    if end is not None:
        stmt = stmt.where(Sale.created_at < to_utc(end))
    if customer_id:
        stmt = stmt.where(Sale.customer_id == customer_id)
    if payment_method:
        stmt = stmt.where(Sale.payment_method == payment_method)
    if limit:
        stmt = stmt.limit(limit).offset(offset)
    return list(db.execute(stmt).unique().scalars().all())


def sale_items_with_products(db: Session, sale_id) -> list[tuple[SaleItem, Optional[str]]]:
    rows = db.execute(
        select(SaleItem, Product.name)
        .outerjoin(Product, Product.id == SaleItem.product_id)
        .where(SaleItem.sale_id == sale_id)
        .order_by(Product.name)
    ).all()
    return [(item, name) for item, name in rows]


__all__ = [
    "build_cart",
    "create_sale",
    "delete_sale",
    "get_sale",
    "list_sales",
    "quote_cart",
    "record_sale",
    "sale_items_with_products",
    "to_cart_product",
]
