from fastapi import APIRouter, Depends
from sqlmodel import Session

from agrostock.api.deps import get_db, pagination_params
from agrostock.schemas.inventory import LedgerPage, StockTransactionRead
from agrostock.schemas.warehouse import InventoryRecordRead, InventoryRecordUpdate
from agrostock.services.inventory_repository import InventoryRepository
from agrostock.services.ledger import Ledger

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("/stock", response_model=list[InventoryRecordRead])
def list_stock(
    warehouse_id: str | None = None,
    product_id: str | None = None,
    variant_id: str | None = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
) -> list[InventoryRecordRead]:
    limit, offset = pagination
    records = InventoryRepository(db).search(
        warehouse_id=warehouse_id, product_id=product_id, variant_id=variant_id, limit=limit, offset=offset
    )
    return [InventoryRecordRead.model_validate(record) for record in records]


@router.get("/low-stock", response_model=list[InventoryRecordRead])
def list_low_stock(warehouse_id: str | None = None, db: Session = Depends(get_db)) -> list[InventoryRecordRead]:
    return [InventoryRecordRead.model_validate(record) for record in InventoryRepository(db).low_stock(warehouse_id)]


@router.patch("/records/{record_id}", response_model=InventoryRecordRead)
def update_inventory_record(
    record_id: int, payload: InventoryRecordUpdate, db: Session = Depends(get_db)
) -> InventoryRecordRead:
    repository = InventoryRepository(db)
    record = repository.update_reorder_level(repository.get_by_id(record_id), payload.reorder_level)
    db.commit()
    db.refresh(record)
    return InventoryRecordRead.model_validate(record)


@router.get("/transactions", response_model=LedgerPage)
def list_transactions(
    warehouse_id: str | None = None,
    product_id: str | None = None,
    transaction_type: str | None = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
) -> LedgerPage:
    limit, offset = pagination
    ledger = Ledger(db)
    entries, total = ledger.search(
        warehouse_id=warehouse_id,
        product_id=product_id,
        transaction_type=transaction_type,
        limit=limit,
        offset=offset,
    )
    return LedgerPage(
        transactions=[StockTransactionRead.from_entry(entry, ledger.lines_for(entry)) for entry in entries],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/transactions/{transaction_id}", response_model=StockTransactionRead)
def get_transaction(transaction_id: str, db: Session = Depends(get_db)) -> StockTransactionRead:
    ledger = Ledger(db)
    entry = ledger.get(transaction_id)
    return StockTransactionRead.from_entry(entry, ledger.lines_for(entry))
