from typing import List, Optional

from pydantic import BaseModel, Field

from agrostock.schemas.warehouse import GeoLocation


class DeliveryEstimateRequest(BaseModel):
    user_location: GeoLocation
    product_id: str = Field(..., min_length=1)
    variant_id: Optional[str] = None
    warehouse_ids: List[str] = Field(default_factory=list)
    weight: Optional[float] = Field(default=None, ge=0, description="Parcel weight in kg")


class DeliveryEstimateRead(BaseModel):
    warehouse_id: str
    warehouse_name: str
    distance: float = Field(..., description="Distance in kilometres")
    delivery_days: int
    product_availability: int
