from typing import Iterable

from fastapi import APIRouter, Depends, status

from agrostock.api.deps import get_movement_engine
from agrostock.models.base import StockTransaction
from agrostock.schemas.inventory import (
    AdjustmentLine,
    AdjustStockRequest,
    AdjustStockResponse,
    MovementLine,
    MoveStockRequest,
    MoveStockResponse,
    StockInPurchaseRequest,
    StockInRequest,
    StockOutRequest,
    StockTransactionRead,
    StockTransactionResponse,
)
from agrostock.schemas.purchase import PurchaseRead, StockInPurchaseResponse
from agrostock.services.stock_movement import AdjustmentItem, MovementItem, StockMovementEngine

router = APIRouter(prefix="/warehouses", tags=["stock movements"])


def to_movement_items(lines: Iterable[MovementLine]) -> list[MovementItem]:
    return [
        MovementItem(
            product_id=line.product_id,
            quantity=line.quantity,
            variant_id=line.variant_id,
            unit=line.unit,
            unit_price=line.unit_price,
        )
        for line in lines
    ]


def to_adjustment_items(lines: Iterable[AdjustmentLine]) -> list[AdjustmentItem]:
    return [
        AdjustmentItem(
            product_id=line.product_id,
            new_quantity=line.new_quantity,
            variant_id=line.variant_id,
            unit=line.unit,
        )
        for line in lines
    ]


def _read(engine: StockMovementEngine, entry: StockTransaction) -> StockTransactionRead:
    return StockTransactionRead.from_entry(entry, engine.ledger.lines_for(entry))


@router.post("/stock-in", response_model=StockTransactionResponse, status_code=status.HTTP_201_CREATED)
def stock_in(
    payload: StockInRequest, engine: StockMovementEngine = Depends(get_movement_engine)
) -> StockTransactionResponse:
    entry = engine.stock_in(
        payload.warehouse_id,
        to_movement_items(payload.products),
        performed_by=payload.performed_by,
        notes=payload.notes,
        purchase_id=payload.purchase_id,
    )
    return StockTransactionResponse(message="Stock added successfully", stock_transaction=_read(engine, entry))


@router.post("/stock-out", response_model=StockTransactionResponse)
def stock_out(
    payload: StockOutRequest, engine: StockMovementEngine = Depends(get_movement_engine)
) -> StockTransactionResponse:
    entry = engine.stock_out(
        payload.warehouse_id,
        to_movement_items(payload.products),
        performed_by=payload.performed_by,
        notes=payload.notes,
        sales_transaction_id=payload.sales_transaction_id,
    )
    return StockTransactionResponse(message="Stock removed successfully", stock_transaction=_read(engine, entry))


@router.post("/adjust-stock", response_model=AdjustStockResponse)
def adjust_stock(
    payload: AdjustStockRequest, engine: StockMovementEngine = Depends(get_movement_engine)
) -> AdjustStockResponse:
    entries = engine.adjust_stock(
        payload.warehouse_id,
        to_adjustment_items(payload.products),
        performed_by=payload.performed_by,
        notes=payload.notes,
    )
    return AdjustStockResponse(
        message="Stock adjusted successfully",
        stock_transactions=[_read(engine, entry) for entry in entries],
    )


@router.post("/move-stock", response_model=MoveStockResponse)
def move_stock(
    payload: MoveStockRequest, engine: StockMovementEngine = Depends(get_movement_engine)
) -> MoveStockResponse:
    outgoing, incoming = engine.move_stock(
        payload.source_warehouse_id,
        payload.destination_warehouse_id,
        to_movement_items(payload.products),
        performed_by=payload.performed_by,
        notes=payload.notes,
    )
    return MoveStockResponse(
        message="Stock moved successfully",
        stock_out_transaction=_read(engine, outgoing),
        stock_in_transaction=_read(engine, incoming),
    )


@router.post(
    "/stock-in-purchase", response_model=StockInPurchaseResponse, status_code=status.HTTP_201_CREATED
)
def stock_in_purchase(
    payload: StockInPurchaseRequest, engine: StockMovementEngine = Depends(get_movement_engine)
) -> StockInPurchaseResponse:
    entry, purchase = engine.receive_purchase(
        payload.warehouse_id,
        to_movement_items(payload.products),
        supplier_id=payload.supplier_id,
        payment_status=payload.payment_status,
        purchase_notes=payload.purchase_notes,
        performed_by=payload.performed_by,
        notes=payload.notes,
    )
    return StockInPurchaseResponse(
        message="Purchase recorded and stock added successfully",
        stock_transaction=_read(engine, entry),
        purchase=PurchaseRead.model_validate(purchase),
    )
