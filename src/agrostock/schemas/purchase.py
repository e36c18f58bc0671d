from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from agrostock.schemas.inventory import MovementLine, StockTransactionRead

PaymentStatus = Literal["Pending", "Completed", "Failed", "Refunded"]


class SupplierCreate(BaseModel):
    name: str = Field(..., min_length=1)
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)


class SupplierRead(SupplierCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    supplier_id: str
    archived: bool
    created_at: datetime


class PurchaseCreate(BaseModel):
    supplier_id: str
    warehouse_id: str
    purchase_date: Optional[datetime] = None
    total_quantity: int = Field(default=0, ge=0)
    grand_total: float = Field(default=0.0, ge=0)
    payment_status: PaymentStatus = "Pending"
    notes: Optional[str] = None


class PurchaseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    purchase_id: str
    supplier_id: str
    warehouse_id: str
    purchase_date: datetime
    total_quantity: int
    grand_total: float
    payment_status: str
    notes: Optional[str] = None
    stock_transaction: Optional[str] = None


class StockInPurchaseResponse(BaseModel):
    message: str
    stock_transaction: StockTransactionRead
    purchase: PurchaseRead


class SaleCreate(BaseModel):
    order_id: str = Field(..., min_length=1)
    warehouse_id: str = Field(..., min_length=1)
    products: List[MovementLine] = Field(..., min_length=1)
    payment_status: PaymentStatus = "Pending"
    notes: Optional[str] = None
    performed_by: Optional[str] = None


class SaleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sales_transaction_id: str
    order_id: str
    warehouse_id: str
    sale_date: datetime
    total_quantity: int
    grand_total: float
    payment_status: str
    notes: Optional[str] = None
    stock_transaction: Optional[str] = None


class SaleResponse(BaseModel):
    message: str
    sale: SaleRead
    stock_transaction: StockTransactionRead
