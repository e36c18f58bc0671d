import threading
from datetime import timezone

import pytest
from sqlalchemy import update
from sqlmodel import Session, select

from agrostock.core.config import Settings
from agrostock.models.base import (
    InventoryRecord,
    Product,
    Purchase,
    SalesTransaction,
    StockTransaction,
    Supplier,
    Warehouse,
)
from agrostock.services.errors import (
    InsufficientStockError,
    MovementTimeoutError,
    NotFoundError,
    StockValidationError,
    TransactionAbortError,
)
from agrostock.services.inventory_repository import InventoryRepository
from agrostock.services.ledger import Ledger, LedgerLine
from agrostock.services.stock_movement import AdjustmentItem, MovementItem, StockMovementEngine


def _stock(session: Session, warehouse: Warehouse, product: Product, variant_id: str | None = None) -> int:
    record = InventoryRepository(session).get(warehouse.warehouse_id, product.product_id, variant_id)
    return record.stock_quantity if record else 0


def _ledger(session: Session) -> list[StockTransaction]:
    return list(session.exec(select(StockTransaction).order_by(StockTransaction.id)).all())


def test_stock_out_beyond_available_fails_and_leaves_stock(session, make_warehouse, make_product, put_stock) -> None:
    w1 = make_warehouse("W1")
    p1 = make_product("p1")
    put_stock(w1, p1, 10)
    engine = StockMovementEngine(session)

    with pytest.raises(InsufficientStockError) as excinfo:
        engine.stock_out(w1.warehouse_id, [MovementItem("p1", 15)])

    assert excinfo.value.available == 10
    assert excinfo.value.requested == 15
    assert "p1" in excinfo.value.detail
    assert _stock(session, w1, p1) == 10
    assert _ledger(session) == []


def test_failed_item_rolls_back_earlier_items(session, make_warehouse, make_product, put_stock) -> None:
    w1 = make_warehouse("W1")
    apples = make_product("apples")
    pears = make_product("pears")
    put_stock(w1, apples, 10)
    put_stock(w1, pears, 1)
    engine = StockMovementEngine(session)

    with pytest.raises(InsufficientStockError):
        engine.stock_out(w1.warehouse_id, [MovementItem("apples", 5), MovementItem("pears", 2)])

    assert _stock(session, w1, apples) == 10
    assert _stock(session, w1, pears) == 1
    assert _ledger(session) == []


def test_stock_in_creates_record_and_single_ledger_entry(session, make_warehouse, make_product) -> None:
    w1 = make_warehouse("W1")
    rice = make_product("rice", unit="bag")
    wheat = make_product("wheat")
    engine = StockMovementEngine(session)

    entry = engine.stock_in(
        w1.warehouse_id,
        [MovementItem("rice", 12, unit_price=3.0), MovementItem("wheat", 8, unit="t")],
        performed_by="alice",
    )

    assert _stock(session, w1, rice) == 12
    assert _stock(session, w1, wheat) == 8
    assert entry.transaction_type == "stockIn"
    assert entry.performed_by == "alice"
    assert entry.notes == ""
    lines = engine.ledger.lines_for(entry)
    assert [(line.product_id, line.quantity, line.unit) for line in lines] == [
        ("rice", 12, "bag"),
        ("wheat", 8, "t"),
    ]
    assert len(_ledger(session)) == 1

    session.refresh(rice)
    session.refresh(w1)
    assert rice.stock_quantity == 12
    assert w1.current_occupancy == 20


def test_stock_in_rejects_bad_items(session, make_warehouse, make_product) -> None:
    w1 = make_warehouse("W1")
    make_product("rice", variants=(("rice-5kg", 5.0),))
    make_product("wheat")
    engine = StockMovementEngine(session)

    with pytest.raises(StockValidationError):
        engine.stock_in(w1.warehouse_id, [])
    with pytest.raises(StockValidationError):
        engine.stock_in(w1.warehouse_id, [MovementItem("rice", 0)])
    with pytest.raises(StockValidationError):
        engine.stock_in(w1.warehouse_id, [MovementItem("wheat", 1, variant_id="rice-5kg")])
    with pytest.raises(NotFoundError):
        engine.stock_in(w1.warehouse_id, [MovementItem("barley", 1)])
    with pytest.raises(NotFoundError):
        engine.stock_in("missing", [MovementItem("rice", 1)])
    with pytest.raises(NotFoundError):
        engine.stock_in(w1.warehouse_id, [MovementItem("rice", 1)], purchase_id="missing")
    assert _ledger(session) == []


def test_variants_are_tracked_separately(session, make_warehouse, make_product) -> None:
    w1 = make_warehouse("W1")
    rice = make_product("rice", variants=(("rice-5kg", 5.0), ("rice-25kg", 25.0)))
    engine = StockMovementEngine(session)

    engine.stock_in(w1.warehouse_id, [MovementItem("rice", 4, variant_id="rice-5kg")])
    engine.stock_in(w1.warehouse_id, [MovementItem("rice", 3, variant_id="rice-25kg")])
    engine.stock_out(w1.warehouse_id, [MovementItem("rice", 1, variant_id="rice-5kg")])

    assert _stock(session, w1, rice, "rice-5kg") == 3
    assert _stock(session, w1, rice, "rice-25kg") == 3
    with pytest.raises(InsufficientStockError):
        engine.stock_out(w1.warehouse_id, [MovementItem("rice", 4, variant_id="rice-25kg")])


def test_move_stock_moves_quantity_and_links_both_entries(session, make_warehouse, make_product, put_stock) -> None:
    w1 = make_warehouse("W1")
    w2 = make_warehouse("W2", latitude=17.1)
    p1 = make_product("p1")
    put_stock(w1, p1, 10)
    engine = StockMovementEngine(session)

    outgoing, incoming = engine.move_stock(w1.warehouse_id, w2.warehouse_id, [MovementItem("p1", 4)])

    assert _stock(session, w1, p1) == 6
    assert _stock(session, w2, p1) == 4
    assert outgoing.transaction_type == incoming.transaction_type == "moveStock"
    assert outgoing.warehouse_id == w1.warehouse_id
    assert incoming.warehouse_id == w2.warehouse_id
    assert incoming.related_transaction_type == "StockTransaction"
    assert incoming.related_transaction == outgoing.transaction_id
    assert outgoing.related_transaction == incoming.transaction_id
    assert len(_ledger(session)) == 2


def test_move_stock_conserves_total_quantity(session, make_warehouse, make_product, put_stock) -> None:
    w1 = make_warehouse("W1")
    w2 = make_warehouse("W2", latitude=17.1)
    p1 = make_product("p1")
    put_stock(w1, p1, 7)
    put_stock(w2, p1, 5)
    engine = StockMovementEngine(session)

    engine.move_stock(w2.warehouse_id, w1.warehouse_id, [MovementItem("p1", 5)])

    assert _stock(session, w1, p1) + _stock(session, w2, p1) == 12
    assert _stock(session, w2, p1) == 0
    session.refresh(p1)
    assert p1.stock_quantity == 12


def test_move_stock_rejects_same_warehouse_and_shortfall(session, make_warehouse, make_product, put_stock) -> None:
    w1 = make_warehouse("W1")
    w2 = make_warehouse("W2", latitude=17.1)
    p1 = make_product("p1")
    put_stock(w1, p1, 3)
    engine = StockMovementEngine(session)

    with pytest.raises(StockValidationError):
        engine.move_stock(w1.warehouse_id, w1.warehouse_id, [MovementItem("p1", 1)])
    with pytest.raises(InsufficientStockError):
        engine.move_stock(w1.warehouse_id, w2.warehouse_id, [MovementItem("p1", 4)])

    assert _stock(session, w1, p1) == 3
    assert InventoryRepository(session).get(w2.warehouse_id, "p1") is None
    assert _ledger(session) == []


def test_adjust_to_current_quantity_is_a_no_op(session, make_warehouse, make_product, put_stock) -> None:
    w1 = make_warehouse("W1")
    p1 = make_product("p1")
    put_stock(w1, p1, 10)
    engine = StockMovementEngine(session)

    entries = engine.adjust_stock(w1.warehouse_id, [AdjustmentItem("p1", 10)])

    assert entries == []
    assert _stock(session, w1, p1) == 10
    assert _ledger(session) == []


def test_adjust_records_signed_changes_per_item(session, make_warehouse, make_product, put_stock) -> None:
    w1 = make_warehouse("W1")
    p1 = make_product("p1")
    p2 = make_product("p2")
    p3 = make_product("p3")
    put_stock(w1, p1, 10)
    put_stock(w1, p2, 4)
    engine = StockMovementEngine(session)

    entries = engine.adjust_stock(
        w1.warehouse_id,
        [AdjustmentItem("p1", 7), AdjustmentItem("p2", 4), AdjustmentItem("p3", 5)],
        notes="cycle count",
    )

    assert [entry.transaction_type for entry in entries] == ["stockOut", "stockIn"]
    assert [engine.ledger.lines_for(entry)[0].quantity for entry in entries] == [3, 5]
    assert all(entry.notes == "cycle count" for entry in entries)
    assert _stock(session, w1, p1) == 7
    assert _stock(session, w1, p2) == 4
    assert _stock(session, w1, p3) == 5


def test_adjust_rejects_negative_quantity(session, make_warehouse, make_product, put_stock) -> None:
    w1 = make_warehouse("W1")
    p1 = make_product("p1")
    put_stock(w1, p1, 2)

    with pytest.raises(StockValidationError):
        StockMovementEngine(session).adjust_stock(w1.warehouse_id, [AdjustmentItem("p1", -1)])
    assert _stock(session, w1, p1) == 2


def test_receive_purchase_links_purchase_and_entry(session, make_warehouse, make_product) -> None:
    w1 = make_warehouse("W1")
    make_product("maize")
    supplier = Supplier(name="Green Farms")
    session.add(supplier)
    session.commit()
    session.refresh(supplier)
    engine = StockMovementEngine(session)

    entry, purchase = engine.receive_purchase(
        w1.warehouse_id,
        [MovementItem("maize", 20, unit_price=1.5), MovementItem("maize", 5, unit_price=2.0)],
        supplier_id=supplier.supplier_id,
    )

    assert entry.related_transaction_type == "Purchase"
    assert entry.related_transaction == purchase.purchase_id
    assert purchase.stock_transaction == entry.transaction_id
    assert purchase.total_quantity == 25
    assert purchase.grand_total == pytest.approx(40.0)
    assert _stock(session, w1, session.exec(select(Product)).one()) == 25


def test_stock_in_against_existing_purchase_sets_back_reference(session, make_warehouse, make_product) -> None:
    w1 = make_warehouse("W1")
    make_product("maize")
    supplier = Supplier(name="Green Farms")
    session.add(supplier)
    session.commit()
    purchase = Purchase(supplier_id=supplier.supplier_id, warehouse_id=w1.warehouse_id)
    session.add(purchase)
    session.commit()
    session.refresh(purchase)

    entry = StockMovementEngine(session).stock_in(
        w1.warehouse_id, [MovementItem("maize", 3)], purchase_id=purchase.purchase_id
    )

    session.refresh(purchase)
    assert purchase.stock_transaction == entry.transaction_id


def test_record_sale_stocks_out_and_links_sale(session, make_warehouse, make_product, put_stock) -> None:
    w1 = make_warehouse("W1")
    p1 = make_product("p1")
    put_stock(w1, p1, 9)
    engine = StockMovementEngine(session)

    entry, sale = engine.record_sale(w1.warehouse_id, [MovementItem("p1", 4, unit_price=2.5)], order_id="order-1")

    assert entry.transaction_type == "stockOut"
    assert entry.related_transaction_type == "SalesTransaction"
    assert sale.stock_transaction == entry.transaction_id
    assert sale.grand_total == pytest.approx(10.0)
    assert _stock(session, w1, p1) == 5


def test_failed_sale_leaves_no_sale_behind(session, make_warehouse, make_product, put_stock) -> None:
    w1 = make_warehouse("W1")
    p1 = make_product("p1")
    put_stock(w1, p1, 1)

    with pytest.raises(InsufficientStockError):
        StockMovementEngine(session).record_sale(w1.warehouse_id, [MovementItem("p1", 2)], order_id="order-2")

    assert session.exec(select(SalesTransaction)).all() == []
    assert _stock(session, w1, p1) == 1


def test_movement_overrunning_deadline_times_out(session, make_warehouse, make_product) -> None:
    w1 = make_warehouse("W1")
    p1 = make_product("p1")
    engine = StockMovementEngine(session, Settings(movement_timeout_seconds=1e-9))

    with pytest.raises(MovementTimeoutError):
        engine.stock_in(w1.warehouse_id, [MovementItem("p1", 1)])

    assert _stock(session, w1, p1) == 0
    assert _ledger(session) == []


def test_rebuild_aggregates_recomputes_totals(session, make_warehouse, make_product, put_stock) -> None:
    w1 = make_warehouse("W1")
    w2 = make_warehouse("W2", latitude=17.1)
    p1 = make_product("p1")
    put_stock(w1, p1, 3)
    put_stock(w2, p1, 4)

    assert StockMovementEngine(session).rebuild_aggregates() == (1, 2)

    session.refresh(p1)
    session.refresh(w2)
    assert p1.stock_quantity == 7
    assert w2.current_occupancy == 4


def test_stock_in_twice_against_one_purchase_is_rejected(session, make_warehouse, make_product) -> None:
    w1 = make_warehouse("W1")
    maize = make_product("maize")
    supplier = Supplier(name="Green Farms")
    session.add(supplier)
    session.commit()
    purchase = Purchase(supplier_id=supplier.supplier_id, warehouse_id=w1.warehouse_id)
    session.add(purchase)
    session.commit()
    session.refresh(purchase)
    engine = StockMovementEngine(session)

    first = engine.stock_in(w1.warehouse_id, [MovementItem("maize", 3)], purchase_id=purchase.purchase_id)
    with pytest.raises(StockValidationError) as excinfo:
        engine.stock_in(w1.warehouse_id, [MovementItem("maize", 3)], purchase_id=purchase.purchase_id)

    assert "already linked" in excinfo.value.detail
    session.refresh(purchase)
    assert purchase.stock_transaction == first.transaction_id
    assert _stock(session, w1, maize) == 3
    assert len(_ledger(session)) == 1


def test_ledger_timestamps_are_timezone_aware(session, make_warehouse) -> None:
    w1 = make_warehouse("W1")

    entry = Ledger(session).append("stockIn", w1.warehouse_id, [LedgerLine(product_id="p1", quantity=1, unit="kg")])

    assert entry.timestamp.tzinfo is timezone.utc


def _seed_file_database(file_engine, quantity: int) -> tuple[str, str]:  # type: ignore[no-untyped-def]
    with Session(file_engine) as session:
        warehouse = Warehouse(warehouse_name="W1", latitude=17.0, longitude=78.0)
        session.add(warehouse)
        session.add(Product(product_id="p1", name="P1"))
        session.flush()
        session.add(InventoryRecord(warehouse_id=warehouse.warehouse_id, product_id="p1", stock_quantity=quantity))
        session.commit()
        return warehouse.warehouse_id, "p1"


def _file_stock(file_engine, warehouse_id: str, product_id: str) -> int:  # type: ignore[no-untyped-def]
    with Session(file_engine) as session:
        return InventoryRepository(session).get(warehouse_id, product_id).stock_quantity


def test_concurrent_stock_outs_never_overdraw(file_engine) -> None:
    warehouse_id, product_id = _seed_file_database(file_engine, 10)
    settings = Settings(movement_max_retries=20)
    start = threading.Barrier(8)
    outcomes: list[str] = []
    outcomes_lock = threading.Lock()

    def take_three() -> None:
        with Session(file_engine) as session:
            engine = StockMovementEngine(session, settings)
            start.wait()
            try:
                engine.stock_out(warehouse_id, [MovementItem(product_id, 3)])
                outcome = "ok"
            except InsufficientStockError:
                outcome = "insufficient"
        with outcomes_lock:
            outcomes.append(outcome)

    workers = [threading.Thread(target=take_three) for _ in range(8)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()

    assert sorted(outcomes) == ["insufficient"] * 5 + ["ok"] * 3
    assert _file_stock(file_engine, warehouse_id, product_id) == 1
    with Session(file_engine) as session:
        assert len(session.exec(select(StockTransaction)).all()) == 3


def _race_compare_and_set(monkeypatch, file_engine, races: int) -> None:  # type: ignore[no-untyped-def]
    """Let a second connection commit +5 just before each of the first *races* compare-and-sets."""
    original = InventoryRepository.compare_and_set
    remaining = [races]

    def racing(self, record, expected, new_quantity):  # type: ignore[no-untyped-def]
        if remaining[0] > 0:
            remaining[0] -= 1
            with file_engine.begin() as connection:
                connection.execute(
                    update(InventoryRecord)
                    .where(InventoryRecord.id == record.id)
                    .values(stock_quantity=InventoryRecord.stock_quantity + 5)
                )
        return original(self, record, expected, new_quantity)

    monkeypatch.setattr(InventoryRepository, "compare_and_set", racing)


def test_adjust_retries_after_losing_compare_and_set(monkeypatch, file_engine) -> None:
    warehouse_id, product_id = _seed_file_database(file_engine, 10)
    _race_compare_and_set(monkeypatch, file_engine, races=1)

    with Session(file_engine) as session:
        entries = StockMovementEngine(session).adjust_stock(warehouse_id, [AdjustmentItem(product_id, 4)])
        assert [entry.transaction_type for entry in entries] == ["stockOut"]
        lines = Ledger(session).lines_for(entries[0])
        # the retry measures the change against the concurrently written 15
        assert lines[0].quantity == 11

    assert _file_stock(file_engine, warehouse_id, product_id) == 4


def test_adjust_without_retries_aborts_and_changes_nothing(monkeypatch, file_engine) -> None:
    warehouse_id, product_id = _seed_file_database(file_engine, 10)
    _race_compare_and_set(monkeypatch, file_engine, races=1)

    with Session(file_engine) as session:
        engine = StockMovementEngine(session, Settings(movement_max_retries=0))
        with pytest.raises(TransactionAbortError):
            engine.adjust_stock(warehouse_id, [AdjustmentItem(product_id, 4)])

    # only the competing writer's change survives
    assert _file_stock(file_engine, warehouse_id, product_id) == 15
    with Session(file_engine) as session:
        assert session.exec(select(StockTransaction)).all() == []
