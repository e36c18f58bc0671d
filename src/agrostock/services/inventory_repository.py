"""Per warehouse, product and variant stock counters.

Stock changes are single guarded UPDATE statements so the sufficiency check and
the write cannot be separated by a concurrent request.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from sqlalchemy import func, update
from sqlmodel import Session, select

from agrostock.core.config import Settings, get_settings
from agrostock.models.base import InventoryRecord, utcnow
from agrostock.services.errors import InsufficientStockError, NotFoundError, StaleInventoryError


def _variant_key(variant_id: Optional[str]) -> str:
    return variant_id or ""


class InventoryRepository:
    def __init__(self, session: Session, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    def _match(self, warehouse_id: str, product_id: str, variant_id: Optional[str]) -> tuple[Any, ...]:
        return (
            InventoryRecord.warehouse_id == warehouse_id,
            InventoryRecord.product_id == product_id,
            InventoryRecord.variant_id == _variant_key(variant_id),
        )

    def _execute(self, statement: Any) -> int:
        result = self.session.connection().execute(statement)
        return result.rowcount

    def get(self, warehouse_id: str, product_id: str, variant_id: Optional[str] = None) -> Optional[InventoryRecord]:
        statement = (
            select(InventoryRecord)
            .where(*self._match(warehouse_id, product_id, variant_id))
            .execution_options(populate_existing=True)
        )
        return self.session.exec(statement).first()

    def get_by_id(self, record_id: int) -> InventoryRecord:
        record = self.session.get(InventoryRecord, record_id, populate_existing=True)
        if not record:
            raise NotFoundError("Inventory record", str(record_id))
        return record

    def get_or_create(self, warehouse_id: str, product_id: str, variant_id: Optional[str] = None) -> InventoryRecord:
        record = self.get(warehouse_id, product_id, variant_id)
        if record:
            return record
        record = InventoryRecord(
            warehouse_id=warehouse_id,
            product_id=product_id,
            variant_id=_variant_key(variant_id),
            stock_quantity=0,
            reorder_level=self.settings.default_reorder_level,
        )
        self.session.add(record)
        self.session.flush()
        return record

    def increment(self, warehouse_id: str, product_id: str, variant_id: Optional[str], quantity: int) -> None:
        self.get_or_create(warehouse_id, product_id, variant_id)
        statement = (
            update(InventoryRecord)
            .where(*self._match(warehouse_id, product_id, variant_id))
            .values(
                stock_quantity=InventoryRecord.stock_quantity + quantity,
                last_updated=utcnow(),
            )
        )
        if self._execute(statement) != 1:
            raise StaleInventoryError(f"Inventory record for {product_id} in {warehouse_id} vanished mid-update")

    def decrement(self, warehouse_id: str, product_id: str, variant_id: Optional[str], quantity: int) -> None:
        statement = (
            update(InventoryRecord)
            .where(
                *self._match(warehouse_id, product_id, variant_id),
                InventoryRecord.stock_quantity >= quantity,
            )
            .values(
                stock_quantity=InventoryRecord.stock_quantity - quantity,
                last_updated=utcnow(),
            )
        )
        if self._execute(statement) == 1:
            return
        record = self.get(warehouse_id, product_id, variant_id)
        available = record.stock_quantity if record else 0
        raise InsufficientStockError(product_id, available, quantity, variant_id)

    def compare_and_set(self, record: InventoryRecord, expected: int, new_quantity: int) -> None:
        statement = (
            update(InventoryRecord)
            .where(InventoryRecord.id == record.id, InventoryRecord.stock_quantity == expected)
            .values(stock_quantity=new_quantity, last_updated=utcnow())
        )
        if self._execute(statement) != 1:
            raise StaleInventoryError(
                f"Stock for {record.product_id} in {record.warehouse_id} changed while it was being adjusted"
            )

    def update_reorder_level(self, record: InventoryRecord, reorder_level: int) -> InventoryRecord:
        record.reorder_level = reorder_level
        self.session.add(record)
        self.session.flush()
        return record

    def product_total(self, product_id: str) -> int:
        statement = select(func.coalesce(func.sum(InventoryRecord.stock_quantity), 0)).where(
            InventoryRecord.product_id == product_id
        )
        return int(self.session.exec(statement).one())

    def warehouse_total(self, warehouse_id: str) -> int:
        statement = select(func.coalesce(func.sum(InventoryRecord.stock_quantity), 0)).where(
            InventoryRecord.warehouse_id == warehouse_id
        )
        return int(self.session.exec(statement).one())

    def search(
        self,
        warehouse_id: Optional[str] = None,
        product_id: Optional[str] = None,
        variant_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[InventoryRecord]:
        query = select(InventoryRecord).execution_options(populate_existing=True)
        if warehouse_id:
            query = query.where(InventoryRecord.warehouse_id == warehouse_id)
        if product_id:
            query = query.where(InventoryRecord.product_id == product_id)
        if variant_id:
            query = query.where(InventoryRecord.variant_id == variant_id)
        query = query.order_by(InventoryRecord.id).offset(offset).limit(limit)
        return list(self.session.exec(query).all())

    def low_stock(self, warehouse_id: Optional[str] = None) -> list[InventoryRecord]:
        query = (
            select(InventoryRecord)
            .where(InventoryRecord.stock_quantity <= InventoryRecord.reorder_level)
            .execution_options(populate_existing=True)
        )
        if warehouse_id:
            query = query.where(InventoryRecord.warehouse_id == warehouse_id)
        return list(self.session.exec(query.order_by(InventoryRecord.id)).all())

    def stocked_in(
        self,
        product_id: str,
        variant_id: Optional[str] = None,
        warehouse_ids: Optional[Sequence[str]] = None,
    ) -> list[InventoryRecord]:
        """Records of *product_id* holding stock, optionally limited to some warehouses.

        Without a variant every record of the product qualifies.
        """

        query = (
            select(InventoryRecord)
            .where(InventoryRecord.product_id == product_id, InventoryRecord.stock_quantity > 0)
            .execution_options(populate_existing=True)
        )
        if variant_id:
            query = query.where(InventoryRecord.variant_id == variant_id)
        if warehouse_ids is not None:
            query = query.where(InventoryRecord.warehouse_id.in_(list(warehouse_ids)))  # type: ignore[attr-defined]
        return list(self.session.exec(query.order_by(InventoryRecord.id)).all())
