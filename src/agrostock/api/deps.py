from typing import Generator

from fastapi import Depends
from sqlmodel import Session

from agrostock.core.config import get_settings
from agrostock.db.session import session_scope
from agrostock.services.delivery import DeliveryEstimator
from agrostock.services.stock_movement import StockMovementEngine


def get_db() -> Generator[Session, None, None]:
    with session_scope() as session:
        yield session


def pagination_params(limit: int | None = None, offset: int = 0) -> tuple[int, int]:
    settings = get_settings()
    if limit is None or limit <= 0:
        limit = settings.default_page_size
    if limit > settings.max_page_size:
        limit = settings.max_page_size
    return limit, max(offset, 0)


def get_movement_engine(db: Session = Depends(get_db)) -> StockMovementEngine:
    return StockMovementEngine(db)


def get_delivery_estimator(db: Session = Depends(get_db)) -> DeliveryEstimator:
    return DeliveryEstimator(db)
