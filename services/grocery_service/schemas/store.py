"""Store and serviceability schemas (GeoJSON in, GeoJSON out)."""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class StoreCreate(BaseModel):
    name: str
    location: dict[str, Any]
    service_area: dict[str, Any]
    is_active: bool = True


class StoreUpdate(BaseModel):
    name: Optional[str] = None
    location: Optional[dict[str, Any]] = None
    service_area: Optional[dict[str, Any]] = None
    is_active: Optional[bool] = None


class StoreResponse(BaseModel):
    id: uuid.UUID
    name: str
    location: dict[str, Any]
    service_area: dict[str, Any] = Field(validation_alias="service_area_geojson")
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NearestStoreResponse(BaseModel):
    found: bool
    coordinates: list[float]
    max_distance_m: float
    distance_m: Optional[float] = None
    store: Optional[StoreResponse] = None


class ServiceabilityResponse(BaseModel):
    serviceable: bool
    coordinates: list[float]
    store: Optional[StoreResponse] = None
