import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pos.core.errors import RecordNotFoundError
from pos.models.customer import Customer
from pos.models.sale import Sale

logger = logging.getLogger(__name__)

_CUSTOMER_FIELDS = ("name", "phone", "email", "address")


def _commit(db: Session):
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


def list_customers(db: Session, search=None, limit=None, offset=0) -> list[Customer]:
    stmt = select(Customer).order_by(Customer.name)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Customer.name.ilike(pattern),
                Customer.phone.ilike(pattern),
                Customer.email.ilike(pattern),
            )
        )
    if limit:
        stmt = stmt.limit(limit).offset(offset)
    return list(db.execute(stmt).scalars().all())


def get_customer(db: Session, customer_id) -> Customer:
    customer = db.get(Customer, customer_id)
    if customer is None:
        raise RecordNotFoundError("Customer", customer_id)
    return customer


def find_customer_by_name(db: Session, name) -> Optional[Customer]:
    if not name:
        return None
    return (
        db.execute(
            select(Customer).where(func.lower(Customer.name) == str(name).strip().lower())
        )
        .scalars()
        .first()
    )


def find_customer_by_phone(db: Session, phone) -> Optional[Customer]:
    if not phone:
        return None
    return (
        db.execute(select(Customer).where(Customer.phone == str(phone).strip()))
        .scalars()
        .first()
    )


def create_customer(db: Session, values: dict, *, commit=True) -> Customer:
    name = values.get("name")
    if name is None or not str(name).strip():
        raise ValueError("name is required")
    customer = Customer(name=str(name).strip())
    for key in _CUSTOMER_FIELDS[1:]:
        if key in values:
            setattr(customer, key, values[key])
    for key in ("total_spent", "visit_count"):
        if values.get(key) is not None:
            setattr(customer, key, values[key])
    if values.get("id"):
        customer.id = values["id"]
    db.add(customer)
    if commit:
        _commit(db)
    else:
        db.flush()
    return customer


def update_customer(db: Session, customer_id, values: dict, *, commit=True) -> Customer:
    customer = get_customer(db, customer_id)
    if "name" in values:
        if values["name"] is None or not str(values["name"]).strip():
            raise ValueError("name is required")
        values = dict(values, name=str(values["name"]).strip())
    for key in _CUSTOMER_FIELDS:
        if key in values:
            setattr(customer, key, values[key])
    if commit:
        _commit(db)
    return customer


def delete_customer(db: Session, customer_id) -> None:
    customer = get_customer(db, customer_id)
    sale_count = db.execute(
        select(func.count(Sale.id)).where(Sale.customer_id == customer.id)
    ).scalar_one()
    if sale_count:
        logger.warning("Refusing to delete customer %s with %d sale(s)", customer.id, sale_count)
        raise ValueError(
            f"Cannot delete customer with {sale_count} existing sale(s)"
        )
    db.delete(customer)
    _commit(db)


def record_visit(customer: Customer, amount: float) -> None:
    customer.total_spent = (customer.total_spent or 0) + amount
    customer.visit_count = (customer.visit_count or 0) + 1


def reverse_visit(customer: Customer, amount: float) -> None:
    customer.total_spent = max(0.0, (customer.total_spent or 0) - amount)
    customer.visit_count = max(0, (customer.visit_count or 0) - 1)


def customer_statistics(db: Session, customer_id) -> dict:
    customer = get_customer(db, customer_id)
    last_visit = db.execute(
        select(func.max(Sale.created_at)).where(Sale.customer_id == customer.id)
    ).scalar_one()
    visit_count = customer.visit_count or 0
    total_spent = customer.total_spent or 0.0
    return {
        "total_spent": total_spent,
        "visit_count": visit_count,
        "average_order_value": total_spent / visit_count if visit_count else 0.0,
        "last_visit": last_visit,
    }


def customer_purchase_history(db: Session, customer_id, limit=50, offset=0) -> list[Sale]:
    get_customer(db, customer_id)
    return list(
        db.execute(
            select(Sale)
            .where(Sale.customer_id == customer_id)
            .order_by(Sale.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        .unique()
        .scalars()
        .all()
    )


__all__ = [
    "create_customer",
    "customer_purchase_history",
    "customer_statistics",
    "delete_customer",
    "find_customer_by_name",
    "find_customer_by_phone",
    "get_customer",
    "list_customers",
    "record_visit",
    "reverse_visit",
    "update_customer",
]
