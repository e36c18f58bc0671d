"""Nearest stocked warehouse selection and delivery time estimates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlmodel import Session, select

from agrostock.models.base import InventoryRecord, Product, ProductVariant, Warehouse
from agrostock.services.errors import NotFoundError
from agrostock.services.geo import GeoPoint, haversine_m
from agrostock.services.inventory_repository import InventoryRepository

logger = logging.getLogger(__name__)

LIGHT_PARCEL_MAX_KG = 2.0
# (distance ceiling in km, days up to 2 kg, days above 2 kg)
DELIVERY_BANDS = (
    (50.0, 2, 3),
    (100.0, 3, 4),
    (200.0, 4, 5),
    (500.0, 5, 7),
)
BEYOND_BANDS_DAYS = (7, 10)


def delivery_days_for(distance_km: float, weight_kg: Optional[float] = None) -> int:
    """Delivery days for a parcel; an unknown weight is quoted as a light parcel."""
    heavy = weight_kg is not None and weight_kg > LIGHT_PARCEL_MAX_KG
    for ceiling, light_days, heavy_days in DELIVERY_BANDS:
        if distance_km <= ceiling:
            return heavy_days if heavy else light_days
    light_days, heavy_days = BEYOND_BANDS_DAYS
    return heavy_days if heavy else light_days


@dataclass(frozen=True)
class NearestWarehouse:
    warehouse_id: str
    warehouse_name: str
    distance_m: float
    product_availability: int


@dataclass(frozen=True)
class DeliveryEstimate:
    warehouse_id: str
    warehouse_name: str
    distance_km: float
    delivery_days: int
    product_availability: int
    weight_kg: Optional[float]


class DeliveryEstimator:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.inventory = InventoryRepository(session)

    def find_nearest_stocked(
        self,
        user_location: GeoPoint,
        product_id: str,
        variant_id: Optional[str] = None,
        candidate_warehouse_ids: Optional[Sequence[str]] = None,
    ) -> Optional[NearestWarehouse]:
        """Closest warehouse holding stock of the product.

        Without candidates every non-archived warehouse is considered. Ties on
        distance go to the record met first: candidate order, then record age.
        """

        records = self.inventory.stocked_in(product_id, variant_id, candidate_warehouse_ids)
        if not records:
            return None

        warehouse_query = select(Warehouse).where(
            Warehouse.warehouse_id.in_(sorted({record.warehouse_id for record in records}))  # type: ignore[attr-defined]
        )
        if candidate_warehouse_ids is None:
            warehouse_query = warehouse_query.where(Warehouse.archived == False)  # noqa: E712
        warehouses = {warehouse.warehouse_id: warehouse for warehouse in self.session.exec(warehouse_query).all()}

        # without a variant every variant record counts towards the warehouse's availability
        available: dict[str, int] = {}
        for record in records:
            available[record.warehouse_id] = available.get(record.warehouse_id, 0) + record.stock_quantity

        if candidate_warehouse_ids is not None:
            order = {warehouse_id: index for index, warehouse_id in enumerate(candidate_warehouse_ids)}
            records.sort(key=lambda record: order.get(record.warehouse_id, len(order)))

        best: Optional[tuple[InventoryRecord, Warehouse, float]] = None
        for record in records:
            warehouse = warehouses.get(record.warehouse_id)
            if warehouse is None:
                continue
            distance = haversine_m(
                user_location.latitude, user_location.longitude, warehouse.latitude, warehouse.longitude
            )
            if best is None or distance < best[2]:
                best = (record, warehouse, distance)

        if best is None:
            return None
        _, warehouse, distance = best
        return NearestWarehouse(
            warehouse_id=warehouse.warehouse_id,
            warehouse_name=warehouse.warehouse_name,
            distance_m=distance,
            product_availability=available[warehouse.warehouse_id],
        )

    def estimate_delivery(
        self,
        user_location: GeoPoint,
        product_id: str,
        variant_id: Optional[str] = None,
        candidate_warehouse_ids: Optional[Sequence[str]] = None,
        weight: Optional[float] = None,
    ) -> Optional[DeliveryEstimate]:
        """Pick the nearest stocked candidate and quote delivery days.

        Returns ``None`` when no candidate holds stock.
        """

        weight_kg = self._resolve_weight(product_id, variant_id, weight)
        nearest = self.find_nearest_stocked(user_location, product_id, variant_id, candidate_warehouse_ids)
        if nearest is None:
            logger.info("No stock of product %s (variant %s) in candidate warehouses", product_id, variant_id)
            return None

        distance_km = nearest.distance_m / 1000
        return DeliveryEstimate(
            warehouse_id=nearest.warehouse_id,
            warehouse_name=nearest.warehouse_name,
            distance_km=distance_km,
            delivery_days=delivery_days_for(distance_km, weight_kg),
            product_availability=nearest.product_availability,
            weight_kg=weight_kg,
        )

    def _resolve_weight(self, product_id: str, variant_id: Optional[str], weight: Optional[float]) -> Optional[float]:
        product = self.session.exec(select(Product).where(Product.product_id == product_id)).first()
        if not product:
            raise NotFoundError("Product", product_id)
        if weight is not None:
            return weight
        if variant_id:
            variant = self.session.exec(
                select(ProductVariant).where(
                    ProductVariant.variant_id == variant_id, ProductVariant.product_id == product_id
                )
            ).first()
            if not variant:
                raise NotFoundError("Variant", variant_id)
            if variant.weight is not None:
                return variant.weight
        return product.weight
