import os

os.environ.setdefault("DB__CONN", "sqlite://")

from collections.abc import Generator  # noqa: E402
from typing import Any, Callable  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from agrostock.api.deps import get_db  # noqa: E402
from agrostock.db.session import build_engine  # noqa: E402
from agrostock.main import create_application  # noqa: E402
from agrostock.models.base import InventoryRecord, Product, ProductVariant, Warehouse  # noqa: E402

TEST_DATABASE_URL = "sqlite://"


@pytest.fixture(name="db_engine")
def db_engine_fixture() -> Generator[Any, None, None]:
    engine = build_engine(TEST_DATABASE_URL)
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="file_engine")
def file_engine_fixture(tmp_path) -> Generator[Any, None, None]:  # type: ignore[no-untyped-def]
    """A file-backed database, so separate connections really run concurrently."""
    engine = build_engine(f"sqlite:///{tmp_path / 'agrostock.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(db_engine) -> Generator[Session, None, None]:  # type: ignore[no-untyped-def]
    with Session(db_engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(db_engine):  # type: ignore[no-untyped-def]
    app = create_application()

    def get_db_override() -> Generator[Session, None, None]:
        with Session(db_engine) as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    app.dependency_overrides[get_db] = get_db_override

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="make_warehouse")
def make_warehouse_fixture(session: Session) -> Callable[..., Warehouse]:
    def _make(name: str, latitude: float = 17.0, longitude: float = 78.0, **extra: Any) -> Warehouse:
        warehouse = Warehouse(warehouse_name=name, latitude=latitude, longitude=longitude, **extra)
        session.add(warehouse)
        session.commit()
        session.refresh(warehouse)
        return warehouse

    return _make


@pytest.fixture(name="make_product")
def make_product_fixture(session: Session) -> Callable[..., Product]:
    def _make(product_id: str, weight: float | None = None, variants: tuple[tuple[str, float | None], ...] = (), **extra: Any) -> Product:
        product = Product(product_id=product_id, name=product_id.title(), weight=weight, **extra)
        session.add(product)
        session.flush()
        for variant_id, variant_weight in variants:
            session.add(ProductVariant(variant_id=variant_id, product_id=product_id, size=variant_id, weight=variant_weight))
        session.commit()
        session.refresh(product)
        return product

    return _make


@pytest.fixture(name="put_stock")
def put_stock_fixture(session: Session) -> Callable[..., InventoryRecord]:
    """Seed an inventory record directly, bypassing the ledger."""

    def _put(warehouse: Warehouse, product: Product, quantity: int, variant_id: str = "") -> InventoryRecord:
        record = InventoryRecord(
            warehouse_id=warehouse.warehouse_id,
            product_id=product.product_id,
            variant_id=variant_id,
            stock_quantity=quantity,
        )
        session.add(record)
        session.commit()
        session.refresh(record)
        return record

    return _put
