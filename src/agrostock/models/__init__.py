from .base import (
    InventoryRecord,
    Product,
    ProductVariant,
    Purchase,
    SalesTransaction,
    StockTransaction,
    StockTransactionLine,
    Supplier,
    TransactionType,
    Warehouse,
)

__all__ = [
    "InventoryRecord",
    "Product",
    "ProductVariant",
    "Purchase",
    "SalesTransaction",
    "StockTransaction",
    "StockTransactionLine",
    "Supplier",
    "TransactionType",
    "Warehouse",
]
