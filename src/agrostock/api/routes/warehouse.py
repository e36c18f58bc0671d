from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select

from agrostock.api.deps import get_db, pagination_params
from agrostock.models.base import Warehouse, utcnow
from agrostock.schemas.warehouse import InventoryRecordRead, WarehouseCreate, WarehouseRead, WarehouseUpdate
from agrostock.services.inventory_repository import InventoryRepository

router = APIRouter(prefix="/warehouses", tags=["warehouses"])


def _get_warehouse(db: Session, warehouse_id: str) -> Warehouse:
    warehouse = db.exec(select(Warehouse).where(Warehouse.warehouse_id == warehouse_id)).first()
    if not warehouse:
        raise HTTPException(status_code=404, detail="Warehouse not found")
    return warehouse


@router.post("", response_model=WarehouseRead, status_code=status.HTTP_201_CREATED)
def create_warehouse(payload: WarehouseCreate, db: Session = Depends(get_db)) -> Warehouse:
    existing = db.exec(select(Warehouse).where(Warehouse.warehouse_name == payload.warehouse_name)).first()
    if existing:
        raise HTTPException(status_code=400, detail="Warehouse name already exists")
    warehouse = Warehouse(**payload.model_dump())
    db.add(warehouse)
    db.commit()
    db.refresh(warehouse)
    return warehouse


@router.get("", response_model=list[WarehouseRead])
def list_warehouses(
    include_archived: bool = False,
    city: str | None = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
) -> list[Warehouse]:
    limit, offset = pagination
    query = select(Warehouse)
    if not include_archived:
        query = query.where(Warehouse.archived == False)  # noqa: E712
    if city:
        query = query.where(Warehouse.city == city)
    query = query.order_by(Warehouse.id).offset(offset).limit(limit)
    return list(db.exec(query).all())


@router.get("/{warehouse_id}", response_model=WarehouseRead)
def get_warehouse(warehouse_id: str, db: Session = Depends(get_db)) -> Warehouse:
    return _get_warehouse(db, warehouse_id)


@router.patch("/{warehouse_id}", response_model=WarehouseRead)
def update_warehouse(warehouse_id: str, payload: WarehouseUpdate, db: Session = Depends(get_db)) -> Warehouse:
    warehouse = _get_warehouse(db, warehouse_id)
    update_data = payload.model_dump(exclude_unset=True)
    name = update_data.get("warehouse_name")
    if name and name != warehouse.warehouse_name:
        clash = db.exec(select(Warehouse).where(Warehouse.warehouse_name == name)).first()
        if clash:
            raise HTTPException(status_code=400, detail="Warehouse name already exists")
    for key, value in update_data.items():
        setattr(warehouse, key, value)
    warehouse.updated_at = utcnow()
    db.add(warehouse)
    db.commit()
    db.refresh(warehouse)
    return warehouse


@router.delete("/{warehouse_id}", response_model=WarehouseRead)
def archive_warehouse(warehouse_id: str, db: Session = Depends(get_db)) -> Warehouse:
    """Warehouses are archived rather than deleted so their ledger stays resolvable."""

    warehouse = _get_warehouse(db, warehouse_id)
    warehouse.archived = True
    warehouse.updated_at = utcnow()
    db.add(warehouse)
    db.commit()
    db.refresh(warehouse)
    return warehouse


@router.get("/{warehouse_id}/inventory", response_model=list[InventoryRecordRead])
def warehouse_inventory(
    warehouse_id: str,
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
) -> list[InventoryRecordRead]:
    _get_warehouse(db, warehouse_id)
    limit, offset = pagination
    records = InventoryRepository(db).search(warehouse_id=warehouse_id, limit=limit, offset=offset)
    return [InventoryRecordRead.model_validate(record) for record in records]
