"""Great-circle distances and the warehouse area-of-interest heuristic."""

from __future__ import annotations

from dataclasses import dataclass
from math import asin, cos, radians, sin, sqrt
from typing import Iterable

from sqlmodel import Session, select

from agrostock.models.base import Warehouse

EARTH_RADIUS_M = 6_371_000.0
# warehouses this close to the nearest one count as part of its cluster
CLUSTER_RADIUS_M = 20_000.0
DENSITY_NEIGHBOUR = 4
EPSILON_M = 1.0


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class RankedWarehouse:
    warehouse_id: str
    warehouse_name: str
    longitude: float
    latitude: float
    distance_m: float

    @property
    def coordinates(self) -> list[float]:
        return [self.longitude, self.latitude]


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres."""
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * asin(min(1.0, sqrt(a)))


def _between(first: RankedWarehouse, second: RankedWarehouse) -> float:
    return haversine_m(first.latitude, first.longitude, second.latitude, second.longitude)


def rank_by_distance(origin: GeoPoint, warehouses: Iterable[Warehouse]) -> list[RankedWarehouse]:
    """Non-archived warehouses ordered by distance from *origin*, nearest first."""

    ranked = [
        RankedWarehouse(
            warehouse_id=warehouse.warehouse_id,
            warehouse_name=warehouse.warehouse_name,
            longitude=warehouse.longitude,
            latitude=warehouse.latitude,
            distance_m=haversine_m(origin.latitude, origin.longitude, warehouse.latitude, warehouse.longitude),
        )
        for warehouse in warehouses
        if not warehouse.archived
    ]
    ranked.sort(key=lambda item: item.distance_m)
    return ranked


def outer_radius(ranked: list[RankedWarehouse]) -> float:
    """Distance from the user that bounds the area of interest.

    *ranked* must be non-empty and sorted nearest first. The 4th neighbour is
    the density signal: when it sits within the cluster radius of the nearest
    warehouse the area reaches out to it, otherwise the first later warehouse
    close to the nearest one sets the bound, and failing that the area
    collapses onto the nearest warehouse.
    """

    nearest = ranked[0]
    if len(ranked) < DENSITY_NEIGHBOUR:
        return ranked[-1].distance_m

    neighbour = ranked[DENSITY_NEIGHBOUR - 1]
    if _between(nearest, neighbour) <= CLUSTER_RADIUS_M:
        return neighbour.distance_m
    for candidate in ranked[DENSITY_NEIGHBOUR:]:
        if _between(nearest, candidate) <= CLUSTER_RADIUS_M:
            return candidate.distance_m
    return nearest.distance_m


def select_area_of_interest(origin: GeoPoint, warehouses: Iterable[Warehouse]) -> list[RankedWarehouse]:
    ranked = rank_by_distance(origin, warehouses)
    if not ranked:
        return []

    nearest = ranked[0]
    radius = outer_radius(ranked)
    if radius <= nearest.distance_m + EPSILON_M:
        return [nearest]
    return [item for item in ranked if nearest.distance_m <= item.distance_m <= radius]


def warehouses_in_area_of_interest(session: Session, origin: GeoPoint) -> list[RankedWarehouse]:
    warehouses = session.exec(select(Warehouse).where(Warehouse.archived == False)).all()  # noqa: E712
    return select_area_of_interest(origin, warehouses)
