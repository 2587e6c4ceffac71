from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pos.core.dates import utc_now
from pos.dependencies import get_db, require_auth, service_errors
from pos.models.expense import Expense
from pos.schemas.expense import (
    ExpenseCategoryCreate,
    ExpenseCategoryRead,
    ExpenseCategoryUpdate,
    ExpenseCreate,
    ExpenseRead,
    ExpenseSummary,
    ExpenseUpdate,
)
from pos.services import expense_service

router = APIRouter(prefix="/expenses", tags=["Expenses"])


def serialize_expense(expense: Expense) -> ExpenseRead:
    read = ExpenseRead.model_validate(expense)
    read.category_name = expense.category.name if expense.category else None
    return read


@router.get("/categories", response_model=list[ExpenseCategoryRead])
def list_expense_categories(db: Session = Depends(get_db)):
    return expense_service.list_expense_categories(db)


@router.post("/categories", response_model=ExpenseCategoryRead, status_code=201)
def create_expense_category(
    payload: ExpenseCategoryCreate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        return expense_service.create_expense_category(db, payload.model_dump())


@router.put("/categories/{category_id}", response_model=ExpenseCategoryRead)
def update_expense_category(
    category_id: str,
    payload: ExpenseCategoryUpdate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        return expense_service.update_expense_category(
            db, category_id, payload.model_dump(exclude_unset=True)
        )


@router.delete("/categories/{category_id}", status_code=204)
def delete_expense_category(
    category_id: str,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        expense_service.delete_expense_category(db, category_id)


@router.get("/summary", response_model=ExpenseSummary)
def expense_summary(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    end = end or utc_now()
    start = start or end - timedelta(days=30)
    return {"start": start, "end": end, **expense_service.expense_totals(db, start, end)}


@router.get("", response_model=list[ExpenseRead])
def list_expenses(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    category_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    expenses = expense_service.list_expenses(
        db, start=start, end=end, category_id=category_id, limit=limit, offset=offset
    )
    return [serialize_expense(expense) for expense in expenses]


@router.post("", response_model=ExpenseRead, status_code=201)
def create_expense(
    payload: ExpenseCreate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        return serialize_expense(expense_service.create_expense(db, payload.model_dump()))


@router.get("/{expense_id}", response_model=ExpenseRead)
def get_expense(expense_id: str, db: Session = Depends(get_db)):
    with service_errors():
        return serialize_expense(expense_service.get_expense(db, expense_id))


@router.put("/{expense_id}", response_model=ExpenseRead)
def update_expense(
    expense_id: str,
    payload: ExpenseUpdate,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        expense = expense_service.update_expense(
            db, expense_id, payload.model_dump(exclude_unset=True)
        )
        return serialize_expense(expense)


@router.delete("/{expense_id}", status_code=204)
def delete_expense(
    expense_id: str,
    db: Session = Depends(get_db),
    _auth=Depends(require_auth),
):
    with service_errors():
        expense_service.delete_expense(db, expense_id)


__all__ = ["router"]
