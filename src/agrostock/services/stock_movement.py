"""Stock movement engine.

Every public operation is one unit of work against the session: items are
validated, inventory records mutated, product and warehouse aggregates
recomputed and ledger entries written, then the session is committed. Any
failure rolls the session back, so a failed call leaves no trace.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Sequence, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlmodel import Session, select

from agrostock.core.config import Settings, get_settings
from agrostock.models.base import (
    Product,
    ProductVariant,
    Purchase,
    SalesTransaction,
    StockTransaction,
    Supplier,
    TransactionType,
    Warehouse,
    utcnow,
)
from agrostock.services import references
from agrostock.services.errors import (
    MovementTimeoutError,
    NotFoundError,
    StaleInventoryError,
    StockError,
    StockValidationError,
    TransactionAbortError,
)
from agrostock.services.inventory_repository import InventoryRepository
from agrostock.services.ledger import Ledger, LedgerLine
from agrostock.services.references import PurchaseRef, RelatedTo, SaleRef, TransactionRef

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE = (OperationalError, IntegrityError, StaleInventoryError)


@dataclass(frozen=True)
class MovementItem:
    product_id: str
    quantity: int
    variant_id: Optional[str] = None
    unit: Optional[str] = None
    unit_price: Optional[float] = None


@dataclass(frozen=True)
class AdjustmentItem:
    product_id: str
    new_quantity: int
    variant_id: Optional[str] = None
    unit: Optional[str] = None


class _Deadline:
    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        self.expires_at = time.monotonic() + seconds

    def check(self, stage: str) -> None:
        if time.monotonic() > self.expires_at:
            raise MovementTimeoutError(f"Stock movement exceeded {self.seconds:g}s while {stage}")


class StockMovementEngine:
    def __init__(self, session: Session, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.inventory = InventoryRepository(session, self.settings)
        self.ledger = Ledger(session)

    # -- public operations -------------------------------------------------

    def stock_in(
        self,
        warehouse_id: str,
        items: Sequence[MovementItem],
        performed_by: Optional[str] = None,
        notes: Optional[str] = None,
        purchase_id: Optional[str] = None,
    ) -> StockTransaction:
        related = PurchaseRef(purchase_id) if purchase_id else None
        return self._run(
            "stockIn",
            lambda deadline: self._stock_in(deadline, warehouse_id, items, performed_by, notes, related),
        )

    def stock_out(
        self,
        warehouse_id: str,
        items: Sequence[MovementItem],
        performed_by: Optional[str] = None,
        notes: Optional[str] = None,
        sales_transaction_id: Optional[str] = None,
    ) -> StockTransaction:
        related = SaleRef(sales_transaction_id) if sales_transaction_id else None
        return self._run(
            "stockOut",
            lambda deadline: self._stock_out(deadline, warehouse_id, items, performed_by, notes, related),
        )

    def adjust_stock(
        self,
        warehouse_id: str,
        items: Sequence[AdjustmentItem],
        performed_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> list[StockTransaction]:
        return self._run(
            "adjustStock",
            lambda deadline: self._adjust(deadline, warehouse_id, items, performed_by, notes),
        )

    def move_stock(
        self,
        source_warehouse_id: str,
        destination_warehouse_id: str,
        items: Sequence[MovementItem],
        performed_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> tuple[StockTransaction, StockTransaction]:
        return self._run(
            "moveStock",
            lambda deadline: self._move(
                deadline, source_warehouse_id, destination_warehouse_id, items, performed_by, notes
            ),
        )

    def receive_purchase(
        self,
        warehouse_id: str,
        items: Sequence[MovementItem],
        supplier_id: str,
        payment_status: str = "Pending",
        purchase_notes: Optional[str] = None,
        performed_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> tuple[StockTransaction, Purchase]:
        """Record a purchase and stock its goods in as a single unit of work."""

        def operation(deadline: _Deadline) -> tuple[StockTransaction, Purchase]:
            self._check_movement_items(items)
            self._require_warehouse(warehouse_id)
            self._require_supplier(supplier_id)
            purchase = Purchase(
                supplier_id=supplier_id,
                warehouse_id=warehouse_id,
                total_quantity=sum(item.quantity for item in items),
                grand_total=_grand_total(items),
                payment_status=payment_status,
                notes=purchase_notes,
            )
            self.session.add(purchase)
            self.session.flush()
            entry = self._stock_in(
                deadline, warehouse_id, items, performed_by, notes, PurchaseRef(purchase.purchase_id)
            )
            return entry, purchase

        return self._run("stockInPurchase", operation)

    def record_sale(
        self,
        warehouse_id: str,
        items: Sequence[MovementItem],
        order_id: str,
        payment_status: str = "Pending",
        sale_notes: Optional[str] = None,
        performed_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> tuple[StockTransaction, SalesTransaction]:
        """Record a sale and stock its goods out as a single unit of work."""

        def operation(deadline: _Deadline) -> tuple[StockTransaction, SalesTransaction]:
            self._check_movement_items(items)
            self._require_warehouse(warehouse_id)
            sale = SalesTransaction(
                order_id=order_id,
                warehouse_id=warehouse_id,
                total_quantity=sum(item.quantity for item in items),
                grand_total=_grand_total(items),
                payment_status=payment_status,
                notes=sale_notes,
            )
            self.session.add(sale)
            self.session.flush()
            entry = self._stock_out(
                deadline, warehouse_id, items, performed_by, notes, SaleRef(sale.sales_transaction_id)
            )
            return entry, sale

        return self._run("sale", operation)

    def rebuild_aggregates(self) -> tuple[int, int]:
        """Recompute every product's stock and every warehouse's occupancy."""

        def operation(deadline: _Deadline) -> tuple[int, int]:
            products = list(self.session.exec(select(Product)).all())
            warehouses = list(self.session.exec(select(Warehouse)).all())
            self._recompute(products, warehouses)
            return len(products), len(warehouses)

        return self._run("rebuildAggregates", operation)

    # -- unit of work -------------------------------------------------------

    def _run(self, label: str, operation: Callable[[_Deadline], T]) -> T:
        attempt = 0
        while True:
            attempt += 1
            started = time.monotonic()
            deadline = _Deadline(self.settings.movement_timeout_seconds)
            try:
                result = operation(deadline)
                deadline.check("committing")
                self.session.commit()
            except _RETRYABLE as exc:
                self.session.rollback()
                if attempt > self.settings.movement_max_retries:
                    logger.warning("%s aborted after %d attempts: %s", label, attempt, exc)
                    raise TransactionAbortError(f"{label} aborted after {attempt} attempts: {exc}") from exc
                logger.warning("%s conflicted on attempt %d, retrying: %s", label, attempt, exc)
                continue
            except StockError as exc:
                self.session.rollback()
                logger.warning("%s aborted: %s", label, exc.detail)
                raise
            except SQLAlchemyError as exc:
                self.session.rollback()
                logger.exception("%s aborted by the store", label)
                raise TransactionAbortError(f"{label} aborted: {exc}") from exc
            except Exception:
                self.session.rollback()
                raise
            logger.info("%s committed in %.3fs", label, time.monotonic() - started)
            return result

    # -- operations inside a unit of work ------------------------------------

    def _stock_in(
        self,
        deadline: _Deadline,
        warehouse_id: str,
        items: Sequence[MovementItem],
        performed_by: Optional[str],
        notes: Optional[str],
        related: Optional[RelatedTo],
    ) -> StockTransaction:
        self._check_movement_items(items)
        warehouse = self._require_warehouse(warehouse_id)
        products = self._require_products(items)
        if related is not None:
            references.ensure_exists(self.session, related)
        deadline.check("validating")

        for item in items:
            self.inventory.increment(warehouse_id, item.product_id, item.variant_id, item.quantity)
            deadline.check("updating inventory")

        self._recompute(products.values(), [warehouse])
        entry = self.ledger.append(
            TransactionType.STOCK_IN.value,
            warehouse_id,
            self._lines(items, products),
            performed_by,
            notes,
            related,
        )
        if related is not None:
            references.attach_back_reference(self.session, related, entry.transaction_id)
        return entry

    def _stock_out(
        self,
        deadline: _Deadline,
        warehouse_id: str,
        items: Sequence[MovementItem],
        performed_by: Optional[str],
        notes: Optional[str],
        related: Optional[RelatedTo],
    ) -> StockTransaction:
        self._check_movement_items(items)
        warehouse = self._require_warehouse(warehouse_id)
        products = self._require_products(items)
        if related is not None:
            references.ensure_exists(self.session, related)
        deadline.check("validating")

        for item in items:
            self.inventory.decrement(warehouse_id, item.product_id, item.variant_id, item.quantity)
            deadline.check("updating inventory")

        self._recompute(products.values(), [warehouse])
        entry = self.ledger.append(
            TransactionType.STOCK_OUT.value,
            warehouse_id,
            self._lines(items, products),
            performed_by,
            notes,
            related,
        )
        if related is not None:
            references.attach_back_reference(self.session, related, entry.transaction_id)
        return entry

    def _adjust(
        self,
        deadline: _Deadline,
        warehouse_id: str,
        items: Sequence[AdjustmentItem],
        performed_by: Optional[str],
        notes: Optional[str],
    ) -> list[StockTransaction]:
        if not items:
            raise StockValidationError("At least one product must be provided")
        for index, item in enumerate(items):
            if not item.product_id:
                raise StockValidationError(f"products.{index}.product_id is required")
            if item.new_quantity < 0:
                raise StockValidationError(f"products.{index}.new_quantity must be a non-negative number")
        warehouse = self._require_warehouse(warehouse_id)
        products = self._require_products(items)
        deadline.check("validating")

        changes: list[tuple[AdjustmentItem, int]] = []
        for item in items:
            record = self.inventory.get(warehouse_id, item.product_id, item.variant_id)
            current = record.stock_quantity if record else 0
            delta = item.new_quantity - current
            if delta == 0:
                continue
            if record is None:
                record = self.inventory.get_or_create(warehouse_id, item.product_id, item.variant_id)
            self.inventory.compare_and_set(record, current, item.new_quantity)
            changes.append((item, delta))
            deadline.check("updating inventory")

        if not changes:
            return []

        touched = {item.product_id for item, _ in changes}
        self._recompute([products[product_id] for product_id in touched], [warehouse])
        entries = []
        for item, delta in changes:
            product = products[item.product_id]
            transaction_type = TransactionType.STOCK_IN if delta > 0 else TransactionType.STOCK_OUT
            line = LedgerLine(
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=abs(delta),
                unit=item.unit or product.unit or self.settings.default_unit,
            )
            entries.append(
                self.ledger.append(transaction_type.value, warehouse_id, [line], performed_by, notes)
            )
        return entries

    def _move(
        self,
        deadline: _Deadline,
        source_warehouse_id: str,
        destination_warehouse_id: str,
        items: Sequence[MovementItem],
        performed_by: Optional[str],
        notes: Optional[str],
    ) -> tuple[StockTransaction, StockTransaction]:
        if source_warehouse_id == destination_warehouse_id:
            raise StockValidationError("Source and destination warehouses must be different")
        self._check_movement_items(items)
        source = self._require_warehouse(source_warehouse_id)
        destination = self._require_warehouse(destination_warehouse_id)
        products = self._require_products(items)
        deadline.check("validating")

        for item in items:
            self.inventory.decrement(source_warehouse_id, item.product_id, item.variant_id, item.quantity)
            self.inventory.increment(destination_warehouse_id, item.product_id, item.variant_id, item.quantity)
            deadline.check("updating inventory")

        self._recompute(products.values(), [source, destination])
        lines = self._lines(items, products)
        outgoing = self.ledger.append(
            TransactionType.MOVE_STOCK.value, source_warehouse_id, lines, performed_by, notes
        )
        incoming = self.ledger.append(
            TransactionType.MOVE_STOCK.value,
            destination_warehouse_id,
            lines,
            performed_by,
            notes,
            TransactionRef(outgoing.transaction_id),
        )
        self.ledger.link(outgoing, TransactionRef(incoming.transaction_id))
        return outgoing, incoming

    # -- helpers --------------------------------------------------------------

    def _check_movement_items(self, items: Sequence[MovementItem]) -> None:
        if not items:
            raise StockValidationError("At least one product must be provided")
        for index, item in enumerate(items):
            if not item.product_id:
                raise StockValidationError(f"products.{index}.product_id is required")
            if item.quantity <= 0:
                raise StockValidationError(f"products.{index}.quantity must be greater than 0")

    def _require_warehouse(self, warehouse_id: str) -> Warehouse:
        warehouse = self.session.exec(select(Warehouse).where(Warehouse.warehouse_id == warehouse_id)).first()
        if not warehouse:
            raise NotFoundError("Warehouse", warehouse_id)
        return warehouse

    def _require_supplier(self, supplier_id: str) -> Supplier:
        supplier = self.session.exec(select(Supplier).where(Supplier.supplier_id == supplier_id)).first()
        if not supplier:
            raise NotFoundError("Supplier", supplier_id)
        return supplier

    def _require_products(self, items: Iterable[Any]) -> dict[str, Product]:
        products: dict[str, Product] = {}
        for item in items:
            if item.product_id not in products:
                product = self.session.exec(select(Product).where(Product.product_id == item.product_id)).first()
                if not product:
                    raise NotFoundError("Product", item.product_id)
                products[item.product_id] = product
            if item.variant_id:
                variant = self.session.exec(
                    select(ProductVariant).where(ProductVariant.variant_id == item.variant_id)
                ).first()
                if not variant:
                    raise NotFoundError("Variant", item.variant_id)
                if variant.product_id != item.product_id:
                    raise StockValidationError(
                        f"Variant {item.variant_id} does not belong to product {item.product_id}"
                    )
        return products

    def _recompute(self, products: Iterable[Product], warehouses: Iterable[Warehouse]) -> None:
        now = utcnow()
        for product in products:
            product.stock_quantity = self.inventory.product_total(product.product_id)
            product.updated_at = now
            self.session.add(product)
        for warehouse in warehouses:
            warehouse.current_occupancy = self.inventory.warehouse_total(warehouse.warehouse_id)
            self.session.add(warehouse)
        self.session.flush()

    def _lines(self, items: Sequence[MovementItem], products: dict[str, Product]) -> list[LedgerLine]:
        return [
            LedgerLine(
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=item.quantity,
                unit=item.unit or products[item.product_id].unit or self.settings.default_unit,
                unit_price=item.unit_price,
            )
            for item in items
        ]


def _grand_total(items: Sequence[MovementItem]) -> float:
    return float(sum(item.quantity * (item.unit_price or 0.0) for item in items))
