from typing import Optional, Union

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlmodel import Session

from agrostock.api.deps import get_db, get_delivery_estimator
from agrostock.schemas.common import Message
from agrostock.schemas.delivery import DeliveryEstimateRead, DeliveryEstimateRequest
from agrostock.schemas.warehouse import AreaOfInterestRead, NearestWarehouseRead
from agrostock.services.delivery import DeliveryEstimator
from agrostock.services.geo import GeoPoint, warehouses_in_area_of_interest

router = APIRouter(tags=["delivery"])

NO_STOCK = {"message": "No stock"}


@router.post(
    "/products/estimate-delivery",
    response_model=DeliveryEstimateRead,
    responses={404: {"model": Message}},
)
def estimate_delivery(
    payload: DeliveryEstimateRequest,
    estimator: DeliveryEstimator = Depends(get_delivery_estimator),
) -> Union[DeliveryEstimateRead, JSONResponse]:
    estimate = estimator.estimate_delivery(
        GeoPoint(latitude=payload.user_location.latitude, longitude=payload.user_location.longitude),
        payload.product_id,
        variant_id=payload.variant_id,
        candidate_warehouse_ids=payload.warehouse_ids or None,
        weight=payload.weight,
    )
    if estimate is None:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=NO_STOCK)
    return DeliveryEstimateRead(
        warehouse_id=estimate.warehouse_id,
        warehouse_name=estimate.warehouse_name,
        distance=round(estimate.distance_km, 3),
        delivery_days=estimate.delivery_days,
        product_availability=estimate.product_availability,
    )


@router.get("/warehouses/area-of-interest", response_model=AreaOfInterestRead)
def area_of_interest(
    lat: float = Query(..., ge=-90, le=90),
    long: float = Query(..., ge=-180, le=180),
    db: Session = Depends(get_db),
) -> AreaOfInterestRead:
    selected = warehouses_in_area_of_interest(db, GeoPoint(latitude=lat, longitude=long))
    return AreaOfInterestRead(
        warehouses=[item.warehouse_id for item in selected],
        coordinates=[item.coordinates for item in selected],
    )


@router.get(
    "/warehouses/nearest-with-product",
    response_model=NearestWarehouseRead,
    responses={404: {"model": Message}},
)
def nearest_with_product(
    product_id: str,
    lat: float = Query(..., ge=-90, le=90),
    long: float = Query(..., ge=-180, le=180),
    variant_id: Optional[str] = None,
    estimator: DeliveryEstimator = Depends(get_delivery_estimator),
) -> Union[NearestWarehouseRead, JSONResponse]:
    nearest = estimator.find_nearest_stocked(GeoPoint(latitude=lat, longitude=long), product_id, variant_id)
    if nearest is None:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=NO_STOCK)
    return NearestWarehouseRead(
        warehouse_id=nearest.warehouse_id,
        warehouse_name=nearest.warehouse_name,
        distance=round(nearest.distance_m, 1),
        product_availability=nearest.product_availability,
    )
