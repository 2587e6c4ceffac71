from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CategoryBase(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None


class CategoryRead(CategoryBase):
    id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SupplierBase(BaseModel):
    name: str = Field(min_length=1)
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class SupplierCreate(SupplierBase):
    pass


class SupplierUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class SupplierRead(SupplierBase):
    id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BulkTierBase(BaseModel):
    min_quantity: int = Field(gt=0)
    bulk_price: float = Field(gt=0)


class BulkTierCreate(BulkTierBase):
    pass


class BulkTierUpdate(BaseModel):
    min_quantity: Optional[int] = Field(default=None, gt=0)
    bulk_price: Optional[float] = Field(default=None, gt=0)


class BulkTierRead(BulkTierBase):
    id: str
    product_id: str

    model_config = ConfigDict(from_attributes=True)


class ProductBase(BaseModel):
    name: str = Field(min_length=1)
    barcode: Optional[str] = None
    category_id: str
    supplier_id: Optional[str] = None
    price: float = Field(ge=0)
    cost: float = Field(ge=0)
    quantity: int = Field(default=0, ge=0)
    min_stock: Optional[int] = Field(default=None, ge=0)
    image_url: Optional[str] = None


class ProductCreate(ProductBase):
    bulk_pricing: List[BulkTierCreate] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    barcode: Optional[str] = None
    category_id: Optional[str] = None
    supplier_id: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    cost: Optional[float] = Field(default=None, ge=0)
    quantity: Optional[int] = Field(default=None, ge=0)
    min_stock: Optional[int] = Field(default=None, ge=0)
    image_url: Optional[str] = None


class ProductRead(ProductBase):
    id: str
    min_stock: int
    category_name: Optional[str] = None
    supplier_name: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    is_low_stock: bool = False
    bulk_pricing: List[BulkTierRead] = Field(default_factory=list)
    bulk_pricing_summary: str = ""

    model_config = ConfigDict(from_attributes=True)
