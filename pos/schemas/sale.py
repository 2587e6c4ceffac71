from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CartLineRequest(BaseModel):
    product_id: str = Field(validation_alias=AliasChoices("product_id", "productId"))
    quantity: int = Field(gt=0)
    discount: float = Field(default=0, ge=0)


class CartRequest(BaseModel):
    items: List[CartLineRequest] = Field(min_length=1)


class SaleCreate(CartRequest):
    payment_method: str = Field(
        min_length=1,
        validation_alias=AliasChoices("payment_method", "paymentMethod"),
    )
    customer_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("customer_id", "customerId"),
    )
    note: Optional[str] = None
    created_at: Optional[datetime] = None


class TierRead(BaseModel):
    min_quantity: int
    bulk_price: float

    model_config = ConfigDict(from_attributes=True)


class LineQuote(BaseModel):
    product_id: str
    name: str
    quantity: int
    unit_price: float
    effective_unit_price: float
    original_subtotal: float
    bulk_subtotal: float
    bulk_savings: float
    discount: float
    subtotal: float
    total_savings: float
    discount_percentage: float
    applied_tier: Optional[TierRead] = None
    next_tier: Optional[TierRead] = None

    model_config = ConfigDict(from_attributes=True)


class CartQuote(BaseModel):
    original_total: float
    bulk_total: float
    final_total: float
    bulk_savings: float
    manual_savings: float
    total_savings: float
    discount_percentage: float
    item_count: int
    lines: List[LineQuote]

    model_config = ConfigDict(from_attributes=True)


class SaleItemRead(BaseModel):
    id: str
    product_id: str
    product_name: Optional[str] = None
    quantity: int
    price: float
    original_price: Optional[float] = None
    bulk_discount: float
    cost: float
    discount: float
    subtotal: float

    model_config = ConfigDict(from_attributes=True)


class SaleRead(BaseModel):
    id: str
    total: float
    payment_method: str
    note: Optional[str] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    created_at: datetime
    items: List[SaleItemRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
