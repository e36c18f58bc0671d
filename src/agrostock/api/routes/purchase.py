from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select

from agrostock.api.deps import get_db, get_movement_engine, pagination_params
from agrostock.api.routes.movement import to_movement_items
from agrostock.models.base import Purchase, SalesTransaction, Supplier, Warehouse
from agrostock.schemas.inventory import StockTransactionRead
from agrostock.schemas.purchase import (
    PurchaseCreate,
    PurchaseRead,
    SaleCreate,
    SaleRead,
    SaleResponse,
    SupplierCreate,
    SupplierRead,
)
from agrostock.services.stock_movement import StockMovementEngine

router = APIRouter(tags=["purchases"])


@router.post("/suppliers", response_model=SupplierRead, status_code=status.HTTP_201_CREATED)
def create_supplier(payload: SupplierCreate, db: Session = Depends(get_db)) -> Supplier:
    supplier = Supplier(**payload.model_dump())
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier


@router.get("/suppliers", response_model=list[SupplierRead])
def list_suppliers(
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
) -> list[Supplier]:
    limit, offset = pagination
    query = select(Supplier).where(Supplier.archived == False).order_by(Supplier.id)  # noqa: E712
    return list(db.exec(query.offset(offset).limit(limit)).all())


@router.get("/suppliers/{supplier_id}", response_model=SupplierRead)
def get_supplier(supplier_id: str, db: Session = Depends(get_db)) -> Supplier:
    supplier = db.exec(select(Supplier).where(Supplier.supplier_id == supplier_id)).first()
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    return supplier


@router.post("/purchases", response_model=PurchaseRead, status_code=status.HTTP_201_CREATED)
def create_purchase(payload: PurchaseCreate, db: Session = Depends(get_db)) -> Purchase:
    """Record a purchase without moving stock; stock it in later with its purchase id."""

    if not db.exec(select(Supplier).where(Supplier.supplier_id == payload.supplier_id)).first():
        raise HTTPException(status_code=404, detail="Supplier not found")
    if not db.exec(select(Warehouse).where(Warehouse.warehouse_id == payload.warehouse_id)).first():
        raise HTTPException(status_code=404, detail="Warehouse not found")
    data = payload.model_dump(exclude_none=True)
    purchase = Purchase(**data)
    db.add(purchase)
    db.commit()
    db.refresh(purchase)
    return purchase


@router.get("/purchases", response_model=list[PurchaseRead])
def list_purchases(
    supplier_id: str | None = None,
    warehouse_id: str | None = None,
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
) -> list[Purchase]:
    limit, offset = pagination
    query = select(Purchase)
    if supplier_id:
        query = query.where(Purchase.supplier_id == supplier_id)
    if warehouse_id:
        query = query.where(Purchase.warehouse_id == warehouse_id)
    query = query.order_by(Purchase.purchase_date.desc()).offset(offset).limit(limit)  # type: ignore[attr-defined]
    return list(db.exec(query).all())


@router.get("/purchases/{purchase_id}", response_model=PurchaseRead)
def get_purchase(purchase_id: str, db: Session = Depends(get_db)) -> Purchase:
    purchase = db.exec(select(Purchase).where(Purchase.purchase_id == purchase_id)).first()
    if not purchase:
        raise HTTPException(status_code=404, detail="Purchase not found")
    return purchase


@router.post("/sales", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
def create_sale(payload: SaleCreate, engine: StockMovementEngine = Depends(get_movement_engine)) -> SaleResponse:
    entry, sale = engine.record_sale(
        payload.warehouse_id,
        to_movement_items(payload.products),
        order_id=payload.order_id,
        payment_status=payload.payment_status,
        sale_notes=payload.notes,
        performed_by=payload.performed_by,
    )
    return SaleResponse(
        message="Sale recorded and stock removed successfully",
        sale=SaleRead.model_validate(sale),
        stock_transaction=StockTransactionRead.from_entry(entry, engine.ledger.lines_for(entry)),
    )


@router.get("/sales/{sales_transaction_id}", response_model=SaleRead)
def get_sale(sales_transaction_id: str, db: Session = Depends(get_db)) -> SalesTransaction:
    sale = db.exec(
        select(SalesTransaction).where(SalesTransaction.sales_transaction_id == sales_transaction_id)
    ).first()
    if not sale:
        raise HTTPException(status_code=404, detail="Sales transaction not found")
    return sale
