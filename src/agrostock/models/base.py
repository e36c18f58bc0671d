from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import CheckConstraint, Index, UniqueConstraint
from sqlmodel import Field, SQLModel


def _uuid() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionType(str, Enum):
    STOCK_IN = "stockIn"
    STOCK_OUT = "stockOut"
    ADJUST = "adjust"
    MOVE_STOCK = "moveStock"


class Warehouse(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    warehouse_id: str = Field(default_factory=_uuid, index=True, unique=True)
    warehouse_name: str = Field(index=True, unique=True)
    street: Optional[str] = None
    city: Optional[str] = Field(default=None, index=True)
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    contact_person: Optional[str] = None
    storage_capacity: Optional[float] = None
    current_occupancy: int = Field(default=0)
    inventory_management_system: str = Field(default="FIFO")
    temperature_controlled: bool = Field(default=False)
    longitude: float
    latitude: float
    archived: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Product(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: str = Field(index=True, unique=True)
    name: str
    category: Optional[str] = Field(default=None, index=True)
    unit: str = Field(default="kg")
    price: Optional[float] = None
    weight: Optional[float] = Field(default=None, description="Shipping weight in kg")
    stock_quantity: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ProductVariant(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    variant_id: str = Field(index=True, unique=True)
    product_id: str = Field(foreign_key="product.product_id", index=True)
    size: str
    sku: Optional[str] = None
    price: Optional[float] = None
    weight: Optional[float] = None


class InventoryRecord(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("warehouse_id", "product_id", "variant_id", name="uq_inventory_warehouse_product_variant"),
        CheckConstraint("stock_quantity >= 0", name="ck_inventory_stock_non_negative"),
        CheckConstraint("reorder_level >= 0", name="ck_inventory_reorder_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    warehouse_id: str = Field(foreign_key="warehouse.warehouse_id", index=True)
    product_id: str = Field(foreign_key="product.product_id", index=True)
    # empty string when the record is not tied to a variant
    variant_id: str = Field(default="", index=True)
    stock_quantity: int = Field(default=0)
    reorder_level: int = Field(default=10)
    last_updated: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)


class StockTransaction(SQLModel, table=True):
    __table_args__ = (
        Index("ix_stocktransaction_warehouse_type_timestamp", "warehouse_id", "transaction_type", "timestamp"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    transaction_id: str = Field(default_factory=_uuid, index=True, unique=True)
    transaction_type: str = Field(index=True)
    warehouse_id: str = Field(foreign_key="warehouse.warehouse_id", index=True)
    related_transaction_type: Optional[str] = Field(default=None)
    related_transaction: Optional[str] = Field(default=None, index=True)
    performed_by: str = Field(default="System")
    notes: str = Field(default="")
    timestamp: datetime = Field(default_factory=utcnow, index=True)


class StockTransactionLine(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    transaction_id: str = Field(foreign_key="stocktransaction.transaction_id", index=True)
    position: int
    product_id: str = Field(index=True)
    variant_id: Optional[str] = None
    quantity: int
    unit: str = Field(default="kg")
    unit_price: Optional[float] = None


class Supplier(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    supplier_id: str = Field(default_factory=_uuid, index=True, unique=True)
    name: str
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    longitude: Optional[float] = None
    latitude: Optional[float] = None
    archived: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)


class Purchase(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    purchase_id: str = Field(default_factory=_uuid, index=True, unique=True)
    supplier_id: str = Field(foreign_key="supplier.supplier_id", index=True)
    warehouse_id: str = Field(foreign_key="warehouse.warehouse_id", index=True)
    purchase_date: datetime = Field(default_factory=utcnow, index=True)
    total_quantity: int = Field(default=0)
    grand_total: float = Field(default=0.0)
    payment_status: str = Field(default="Pending")
    notes: Optional[str] = None
    stock_transaction: Optional[str] = Field(default=None, index=True)


class SalesTransaction(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    sales_transaction_id: str = Field(default_factory=_uuid, index=True, unique=True)
    order_id: str = Field(index=True)
    warehouse_id: str = Field(foreign_key="warehouse.warehouse_id", index=True)
    sale_date: datetime = Field(default_factory=utcnow, index=True)
    total_quantity: int = Field(default=0)
    grand_total: float = Field(default=0.0)
    payment_status: str = Field(default="Pending")
    notes: Optional[str] = None
    stock_transaction: Optional[str] = Field(default=None, index=True)
