from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ExpenseCategoryBase(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None


class ExpenseCategoryCreate(ExpenseCategoryBase):
    pass


class ExpenseCategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None


class ExpenseCategoryRead(ExpenseCategoryBase):
    id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ExpenseCreate(BaseModel):
    category_id: str
    amount: float = Field(gt=0)
    description: str = Field(min_length=1)
    date: Optional[datetime] = None


class ExpenseUpdate(BaseModel):
    category_id: Optional[str] = None
    amount: Optional[float] = Field(default=None, gt=0)
    description: Optional[str] = Field(default=None, min_length=1)
    date: Optional[datetime] = None


class ExpenseRead(BaseModel):
    id: str
    category_id: str
    category_name: Optional[str] = None
    amount: float
    description: str
    date: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ExpenseCategoryTotal(BaseModel):
    category_id: str
    category_name: str
    amount: float
    percentage: float


class ExpenseSummary(BaseModel):
    start: datetime
    end: datetime
    total: float
    by_category: list[ExpenseCategoryTotal]
