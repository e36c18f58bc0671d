"""Append-only stock movement ledger."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy import func
from sqlmodel import Session, select

from agrostock.models.base import StockTransaction, StockTransactionLine, utcnow
from agrostock.services.errors import NotFoundError
from agrostock.services.references import RelatedTo


@dataclass(frozen=True)
class LedgerLine:
    product_id: str
    quantity: int
    unit: str
    variant_id: Optional[str] = None
    unit_price: Optional[float] = None


class Ledger:
    def __init__(self, session: Session) -> None:
        self.session = session

    def append(
        self,
        transaction_type: str,
        warehouse_id: str,
        lines: Sequence[LedgerLine],
        performed_by: Optional[str] = None,
        notes: Optional[str] = None,
        related: Optional[RelatedTo] = None,
    ) -> StockTransaction:
        entry = StockTransaction(
            transaction_type=transaction_type,
            warehouse_id=warehouse_id,
            performed_by=performed_by or "System",
            notes=notes or "",
            timestamp=utcnow(),
        )
        if related is not None:
            entry.related_transaction_type = related.tag
            entry.related_transaction = related.id
        self.session.add(entry)
        self.session.flush()
        for position, line in enumerate(lines):
            self.session.add(
                StockTransactionLine(
                    transaction_id=entry.transaction_id,
                    position=position,
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    quantity=line.quantity,
                    unit=line.unit,
                    unit_price=line.unit_price,
                )
            )
        self.session.flush()
        return entry

    def link(self, entry: StockTransaction, related: RelatedTo) -> StockTransaction:
        """Attach a back-reference; the only change ever made to an existing entry."""

        if entry.related_transaction and entry.related_transaction != related.id:
            raise ValueError(f"Stock transaction {entry.transaction_id} is already linked")
        entry.related_transaction_type = related.tag
        entry.related_transaction = related.id
        self.session.add(entry)
        self.session.flush()
        return entry

    def get(self, transaction_id: str) -> StockTransaction:
        entry = self.session.exec(
            select(StockTransaction).where(StockTransaction.transaction_id == transaction_id)
        ).first()
        if not entry:
            raise NotFoundError("Stock transaction", transaction_id)
        return entry

    def lines_for(self, entry: StockTransaction) -> list[StockTransactionLine]:
        statement = (
            select(StockTransactionLine)
            .where(StockTransactionLine.transaction_id == entry.transaction_id)
            .order_by(StockTransactionLine.position)
        )
        return list(self.session.exec(statement).all())

    def search(
        self,
        warehouse_id: Optional[str] = None,
        product_id: Optional[str] = None,
        transaction_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[StockTransaction], int]:
        query = select(StockTransaction)
        count_query = select(func.count()).select_from(StockTransaction)
        conditions = []
        if warehouse_id:
            conditions.append(StockTransaction.warehouse_id == warehouse_id)
        if transaction_type:
            conditions.append(StockTransaction.transaction_type == transaction_type)
        if product_id:
            matching = select(StockTransactionLine.transaction_id).where(
                StockTransactionLine.product_id == product_id
            )
            conditions.append(StockTransaction.transaction_id.in_(matching))  # type: ignore[union-attr]
        for condition in conditions:
            query = query.where(condition)
            count_query = count_query.where(condition)

        total = self.session.exec(count_query).one()
        query = (
            query.order_by(StockTransaction.timestamp.desc(), StockTransaction.id.desc())  # type: ignore[union-attr]
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.exec(query).all()), total
