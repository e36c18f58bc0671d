from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class VariantPayload(BaseModel):
    variant_id: str
    size: str
    sku: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, ge=0)


class ProductBase(BaseModel):
    product_id: str
    name: str
    category: Optional[str] = None
    unit: str = "kg"
    price: Optional[float] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, ge=0, description="Shipping weight in kg")


class ProductCreate(ProductBase):
    variants: List[VariantPayload] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    weight: Optional[float] = Field(default=None, ge=0)


class ProductRead(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    stock_quantity: int
    created_at: datetime
    updated_at: datetime
    variants: List[VariantPayload] = Field(default_factory=list)
