from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CustomerBase(BaseModel):
    name: str = Field(min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class CustomerRead(CustomerBase):
    id: str
    total_spent: float
    visit_count: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CustomerStatistics(BaseModel):
    total_spent: float
    visit_count: int
    average_order_value: float
    last_visit: Optional[datetime] = None
