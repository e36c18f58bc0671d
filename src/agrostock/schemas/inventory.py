from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from agrostock.models.base import StockTransaction, StockTransactionLine
from agrostock.services import references


class MovementLine(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    variant_id: Optional[str] = None
    unit: Optional[str] = None
    unit_price: Optional[float] = Field(default=None, ge=0)


class AdjustmentLine(BaseModel):
    product_id: str = Field(..., min_length=1)
    new_quantity: int = Field(..., ge=0)
    variant_id: Optional[str] = None
    unit: Optional[str] = None


class StockInRequest(BaseModel):
    warehouse_id: str = Field(..., min_length=1)
    products: List[MovementLine] = Field(..., min_length=1)
    performed_by: Optional[str] = None
    notes: Optional[str] = None
    purchase_id: Optional[str] = None


class StockOutRequest(BaseModel):
    warehouse_id: str = Field(..., min_length=1)
    products: List[MovementLine] = Field(..., min_length=1)
    performed_by: Optional[str] = None
    notes: Optional[str] = None
    sales_transaction_id: Optional[str] = None


class AdjustStockRequest(BaseModel):
    warehouse_id: str = Field(..., min_length=1)
    products: List[AdjustmentLine] = Field(..., min_length=1)
    performed_by: Optional[str] = None
    notes: Optional[str] = None


class MoveStockRequest(BaseModel):
    source_warehouse_id: str = Field(..., min_length=1)
    destination_warehouse_id: str = Field(..., min_length=1)
    products: List[MovementLine] = Field(..., min_length=1)
    performed_by: Optional[str] = None
    notes: Optional[str] = None


class StockInPurchaseRequest(BaseModel):
    warehouse_id: str = Field(..., min_length=1)
    supplier_id: str = Field(..., min_length=1)
    products: List[MovementLine] = Field(..., min_length=1)
    payment_status: str = "Pending"
    purchase_notes: Optional[str] = None
    performed_by: Optional[str] = None
    notes: Optional[str] = None


class StockTransactionLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    variant_id: Optional[str] = None
    quantity: int
    unit: str
    unit_price: Optional[float] = None


class StockTransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: str
    transaction_type: str
    warehouse_id: str
    products: List[StockTransactionLineRead] = Field(default_factory=list)
    related_transaction_type: Optional[str] = None
    related_transaction: Optional[str] = None
    performed_by: str
    notes: str
    timestamp: datetime

    @classmethod
    def from_entry(
        cls, entry: StockTransaction, lines: List[StockTransactionLine]
    ) -> "StockTransactionRead":
        related = references.from_columns(entry.related_transaction_type, entry.related_transaction)
        return cls(
            transaction_id=entry.transaction_id,
            transaction_type=entry.transaction_type,
            warehouse_id=entry.warehouse_id,
            products=[StockTransactionLineRead.model_validate(line) for line in lines],
            related_transaction_type=related.tag if related else None,
            related_transaction=related.id if related else None,
            performed_by=entry.performed_by,
            notes=entry.notes,
            timestamp=entry.timestamp,
        )


class StockTransactionResponse(BaseModel):
    message: str
    stock_transaction: StockTransactionRead


class AdjustStockResponse(BaseModel):
    message: str
    stock_transactions: List[StockTransactionRead]


class MoveStockResponse(BaseModel):
    message: str
    stock_out_transaction: StockTransactionRead
    stock_in_transaction: StockTransactionRead


class LedgerPage(BaseModel):
    transactions: List[StockTransactionRead]
    total: int
    limit: int
    offset: int
