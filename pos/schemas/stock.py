from datetime import datetime
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class StockMovementCreate(BaseModel):
    product_id: str
    type: Literal["stock_in", "stock_out"] = Field(
        validation_alias=AliasChoices("type", "movement_type"),
    )
    quantity: int = Field(gt=0)
    reason: Optional[str] = None
    supplier_id: Optional[str] = None
    reference_number: Optional[str] = None
    unit_cost: Optional[float] = Field(default=None, ge=0)


class StockMovementRead(BaseModel):
    id: str
    product_id: str
    type: str
    quantity: int
    reason: Optional[str] = None
    supplier_id: Optional[str] = None
    reference_number: Optional[str] = None
    unit_cost: Optional[float] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockMovementSummary(BaseModel):
    total_stock_in: int
    total_stock_out: int
    net_movement: int
    movement_count: int
