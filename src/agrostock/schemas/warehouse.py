from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GeoLocation(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class WarehouseBase(BaseModel):
    warehouse_name: str = Field(..., min_length=1)
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    contact_person: Optional[str] = None
    storage_capacity: Optional[float] = Field(default=None, ge=0)
    inventory_management_system: Literal["FIFO", "LIFO", "FEFO"] = "FIFO"
    temperature_controlled: bool = False
    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)


class WarehouseCreate(WarehouseBase):
    pass


class WarehouseUpdate(BaseModel):
    warehouse_name: Optional[str] = Field(default=None, min_length=1)
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    contact_person: Optional[str] = None
    storage_capacity: Optional[float] = Field(default=None, ge=0)
    inventory_management_system: Optional[Literal["FIFO", "LIFO", "FEFO"]] = None
    temperature_controlled: Optional[bool] = None
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    archived: Optional[bool] = None


class WarehouseRead(WarehouseBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    warehouse_id: str
    current_occupancy: int
    archived: bool
    created_at: datetime
    updated_at: datetime


class InventoryRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    warehouse_id: str
    product_id: str
    variant_id: Optional[str] = None
    stock_quantity: int
    reorder_level: int
    last_updated: datetime

    @field_validator("variant_id", mode="before")
    @classmethod
    def _blank_variant_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class InventoryRecordUpdate(BaseModel):
    reorder_level: int = Field(..., ge=0)


class AreaOfInterestRead(BaseModel):
    warehouses: List[str]
    coordinates: List[List[float]] = Field(
        default_factory=list, description="[longitude, latitude] of each warehouse, nearest first"
    )


class NearestWarehouseRead(BaseModel):
    warehouse_id: str
    warehouse_name: str
    distance: float = Field(..., description="Distance in metres")
    product_availability: int
