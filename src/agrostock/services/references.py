"""Typed "caused by" references attached to ledger entries.

A ledger entry may point at the purchase that filled a stock-in, the sale that
drained a stock-out, or the paired entry of a move. The reference is persisted
as a tag plus an id; in code it is one of the frozen dataclasses below.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, ClassVar, Optional, Union

from sqlmodel import Session, select

from agrostock.models.base import Purchase, SalesTransaction, StockTransaction
from agrostock.services.errors import NotFoundError, StockValidationError


@dataclass(frozen=True)
class PurchaseRef:
    tag: ClassVar[str] = "Purchase"
    id: str


@dataclass(frozen=True)
class SaleRef:
    tag: ClassVar[str] = "SalesTransaction"
    id: str


@dataclass(frozen=True)
class TransactionRef:
    tag: ClassVar[str] = "StockTransaction"
    id: str


RelatedTo = Union[PurchaseRef, SaleRef, TransactionRef]

_BY_TAG: dict[str, type] = {cls.tag: cls for cls in (PurchaseRef, SaleRef, TransactionRef)}


def from_columns(tag: Optional[str], reference_id: Optional[str]) -> Optional[RelatedTo]:
    if not tag or not reference_id:
        return None
    ref_type = _BY_TAG.get(tag)
    if ref_type is None:
        raise ValueError(f"Unknown related transaction type {tag!r}")
    return ref_type(reference_id)


def _load_purchase(session: Session, ref: RelatedTo) -> Purchase:
    purchase = session.exec(select(Purchase).where(Purchase.purchase_id == ref.id)).first()
    if not purchase:
        raise NotFoundError("Purchase", ref.id)
    return purchase


def _load_sale(session: Session, ref: RelatedTo) -> SalesTransaction:
    sale = session.exec(
        select(SalesTransaction).where(SalesTransaction.sales_transaction_id == ref.id)
    ).first()
    if not sale:
        raise NotFoundError("Sales transaction", ref.id)
    return sale


def _load_transaction(session: Session, ref: RelatedTo) -> StockTransaction:
    entry = session.exec(select(StockTransaction).where(StockTransaction.transaction_id == ref.id)).first()
    if not entry:
        raise NotFoundError("Stock transaction", ref.id)
    return entry


_LOADERS: dict[type, Callable[[Session, RelatedTo], object]] = {
    PurchaseRef: _load_purchase,
    SaleRef: _load_sale,
    TransactionRef: _load_transaction,
}


def ensure_exists(session: Session, ref: RelatedTo) -> None:
    """Raise ``NotFoundError`` when the referenced row is missing.

    A purchase or sale drives exactly one ledger entry, so one that is already
    linked is rejected with ``StockValidationError``.
    """

    target = _LOADERS[type(ref)](session, ref)
    if isinstance(ref, TransactionRef):
        return
    linked = target.stock_transaction  # type: ignore[attr-defined]
    if linked:
        raise StockValidationError(f"{ref.tag} {ref.id} is already linked to stock transaction {linked}")


def attach_back_reference(session: Session, ref: RelatedTo, transaction_id: str) -> None:
    """Point the referenced purchase or sale at the ledger entry it caused.

    Ledger-to-ledger references are written by the ledger itself.
    """

    if isinstance(ref, TransactionRef):
        return
    target = _LOADERS[type(ref)](session, ref)
    target.stock_transaction = transaction_id  # type: ignore[attr-defined]
    session.add(target)
