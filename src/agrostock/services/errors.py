"""Errors raised by the inventory services.

Every error carries the HTTP status the API reports for it, so route handlers
can let them propagate to the application's exception handler.
"""

from __future__ import annotations

from typing import Any, Optional


class StockError(Exception):
    """Base class for inventory domain failures."""

    status_code = 500
    kind = "stock_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def extra(self) -> dict[str, Any]:
        return {}


class NotFoundError(StockError):
    status_code = 404
    kind = "not_found"

    def __init__(self, entity: str, key: str) -> None:
        super().__init__(f"{entity} {key} not found")
        self.entity = entity
        self.key = key


class StockValidationError(StockError):
    status_code = 400
    kind = "validation_error"


class InsufficientStockError(StockError):
    kind = "insufficient_stock"

    def __init__(self, product_id: str, available: int, requested: int, variant_id: Optional[str] = None) -> None:
        label = product_id if not variant_id else f"{product_id} (variant {variant_id})"
        super().__init__(
            f"Insufficient stock for product {label}: available {available}, requested {requested}"
        )
        self.product_id = product_id
        self.variant_id = variant_id
        self.available = available
        self.requested = requested

    def extra(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "available": self.available,
            "requested": self.requested,
        }


class TransactionAbortError(StockError):
    kind = "transaction_aborted"


class MovementTimeoutError(TransactionAbortError):
    status_code = 504
    kind = "movement_timeout"


class StaleInventoryError(TransactionAbortError):
    """A compare-and-set on an inventory record lost a race."""

    kind = "stale_inventory"
