import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pos.config import get_settings
from pos.core.dates import parse_datetime, to_utc
from pos.core.errors import RecordNotFoundError
from pos.models.expense import Expense, ExpenseCategory

logger = logging.getLogger(__name__)


def _commit(db: Session):
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


def _clean_text(value, field):
    if value is None or not str(value).strip():
        raise ValueError(f"{field} is required")
    return str(value).strip()


def _clean_amount(value):
    if value is None or isinstance(value, bool):
        raise ValueError("amount is required")
    amount = float(value)
    if amount <= 0:
        raise ValueError("amount must be greater than 0")
    return amount


# ==============================
# Expense categories
# ==============================

def list_expense_categories(db: Session) -> list[ExpenseCategory]:
    return list(
        db.execute(select(ExpenseCategory).order_by(ExpenseCategory.name)).scalars().all()
    )


def get_expense_category(db: Session, category_id) -> ExpenseCategory:
    category = db.get(ExpenseCategory, category_id)
    if category is None:
        raise RecordNotFoundError("Expense category", category_id)
    return category


def find_expense_category_by_name(db: Session, name) -> Optional[ExpenseCategory]:
    if not name:
        return None
    return (
        db.execute(
            select(ExpenseCategory).where(
                func.lower(ExpenseCategory.name) == str(name).strip().lower()
            )
        )
        .scalars()
        .first()
    )


def _ensure_unique_name(db: Session, name, exclude_id=None):
    existing = find_expense_category_by_name(db, name)
    if existing is not None and existing.id != exclude_id:
        raise ValueError(f'Expense category "{name}" already exists')


def create_expense_category(db: Session, values: dict, *, commit=True) -> ExpenseCategory:
    name = _clean_text(values.get("name"), "name")
    _ensure_unique_name(db, name)
    category = ExpenseCategory(name=name, description=values.get("description"))
    if values.get("id"):
        category.id = values["id"]
    db.add(category)
    if commit:
        _commit(db)
    else:
        db.flush()
    return category


def update_expense_category(
    db: Session, category_id, values: dict, *, commit=True
) -> ExpenseCategory:
    category = get_expense_category(db, category_id)
    if "name" in values:
        name = _clean_text(values["name"], "name")
        _ensure_unique_name(db, name, exclude_id=category.id)
        category.name = name
    if "description" in values:
        category.description = values["description"]
    if commit:
        _commit(db)
    return category


def delete_expense_category(db: Session, category_id) -> None:
    category = get_expense_category(db, category_id)
    in_use = db.execute(
        select(func.count(Expense.id)).where(Expense.category_id == category.id)
    ).scalar_one()
    if in_use:
        raise ValueError(f"Cannot delete expense category: {in_use} expense(s) use it")
    db.delete(category)
    _commit(db)


def get_or_create_expense_category(db: Session, name=None) -> ExpenseCategory:
    """Category called ``name``; without a name the first one, or the default."""
    if name is None or not str(name).strip():
        category = (
            db.execute(select(ExpenseCategory).order_by(ExpenseCategory.created_at))
            .scalars()
            .first()
        )
        if category is not None:
            return category
        name = get_settings().DEFAULT_EXPENSE_CATEGORY_NAME
    category = find_expense_category_by_name(db, name)
    if category is not None:
        return category
    logger.info("Creating expense category %s", name)
    return create_expense_category(db, {"name": name}, commit=False)


# ==============================
# Expenses
# ==============================

def list_expenses(
    db: Session,
    *,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    category_id: Optional[str] = None,
    limit: Optional[int] = 50,
    offset: int = 0,
) -> list[Expense]:
    stmt = select(Expense).order_by(Expense.date.desc(), Expense.created_at.desc())
    if start is not None:
        stmt = stmt.where(Expense.date >= to_utc(start))
    if end is not None:
        stmt = stmt.where(Expense.date < to_utc(end))
    if category_id:
        stmt = stmt.where(Expense.category_id == category_id)
    if limit:
        stmt = stmt.limit(limit).offset(offset)
    return list(db.execute(stmt).scalars().all())


def get_expense(db: Session, expense_id) -> Expense:
    expense = db.get(Expense, expense_id)
    if expense is None:
        raise RecordNotFoundError("Expense", expense_id)
    return expense


def create_expense(db: Session, values: dict, *, commit=True) -> Expense:
    category = get_expense_category(db, values.get("category_id"))
    expense = Expense(
        category_id=category.id,
        amount=_clean_amount(values.get("amount")),
        description=_clean_text(values.get("description"), "description"),
    )
    spent_at = parse_datetime(values.get("date"))
    if spent_at is not None:
        expense.date = spent_at
    if values.get("id"):
        expense.id = values["id"]
    db.add(expense)
    if commit:
        _commit(db)
    else:
        db.flush()
    logger.info("Recorded expense %.2f under %s", expense.amount, category.name)
    return expense


def update_expense(db: Session, expense_id, values: dict, *, commit=True) -> Expense:
    expense = get_expense(db, expense_id)
    if "category_id" in values:
        expense.category_id = get_expense_category(db, values["category_id"]).id
    if "amount" in values:
        expense.amount = _clean_amount(values["amount"])
    if "description" in values:
        expense.description = _clean_text(values["description"], "description")
    if values.get("date") is not None:
        expense.date = parse_datetime(values["date"])
    if commit:
        _commit(db)
    return expense


def delete_expense(db: Session, expense_id) -> None:
    db.delete(get_expense(db, expense_id))
    _commit(db)


def expense_totals(db: Session, start: datetime, end: datetime) -> dict:
    """Total spent in ``[start, end)`` and its split by category, largest first."""
    amount = func.coalesce(func.sum(Expense.amount), 0.0)
    rows = db.execute(
        select(ExpenseCategory.id, ExpenseCategory.name, amount)
        .join(Expense, Expense.category_id == ExpenseCategory.id)
        .where(Expense.date >= to_utc(start), Expense.date < to_utc(end))
        .group_by(ExpenseCategory.id, ExpenseCategory.name)
        .order_by(amount.desc())
    ).all()
    total = sum(float(row[2]) for row in rows)
    return {
        "total": total,
        "by_category": [
            {
                "category_id": category_id,
                "category_name": name,
                "amount": float(spent),
                "percentage": float(spent) / total * 100 if total else 0.0,
            }
            for category_id, name, spent in rows
        ],
    }


__all__ = [
    "create_expense",
    "create_expense_category",
    "delete_expense",
    "delete_expense_category",
    "expense_totals",
    "find_expense_category_by_name",
    "get_expense",
    "get_expense_category",
    "get_or_create_expense_category",
    "list_expense_categories",
    "list_expenses",
    "update_expense",
    "update_expense_category",
]
