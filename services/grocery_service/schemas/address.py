"""Address request/response schemas."""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from services.grocery_service.models.enums import AddressTag

PINCODE_PATTERN = r"^[0-9]{6}$"
PLACE_NAME_PATTERN = r"^[A-Za-z\s-]+$"


def _lower(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


class AddressCreate(BaseModel):
    """Coordinates are ``[longitude, latitude]``; range checks happen on save."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    tag: AddressTag = AddressTag.HOME
    house_details: str = Field(..., min_length=3, max_length=100)
    apartment_name: Optional[str] = Field(None, max_length=80)
    street: str = Field(..., min_length=3, max_length=120)
    landmark: Optional[str] = Field(None, max_length=100)
    city: str = Field(..., min_length=2, max_length=50, pattern=PLACE_NAME_PATTERN)
    state: str = Field(..., min_length=2, max_length=50, pattern=PLACE_NAME_PATTERN)
    pincode: str = Field(..., pattern=PINCODE_PATTERN)
    coordinates: list[Any]
    is_verified: bool = False
    delivery_instructions: Optional[str] = Field(None, max_length=200)

    @field_validator("tag", "city", "state", mode="before")
    @classmethod
    def lower_case(cls, v):
        return _lower(v)


class AddressUpdate(BaseModel):
    """Partial edit. ``user_id`` and ``is_default`` are dropped if sent."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    tag: Optional[AddressTag] = None
    house_details: Optional[str] = Field(None, min_length=3, max_length=100)
    apartment_name: Optional[str] = Field(None, max_length=80)
    street: Optional[str] = Field(None, min_length=3, max_length=120)
    landmark: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(
        None, min_length=2, max_length=50, pattern=PLACE_NAME_PATTERN
    )
    state: Optional[str] = Field(
        None, min_length=2, max_length=50, pattern=PLACE_NAME_PATTERN
    )
    pincode: Optional[str] = Field(None, pattern=PINCODE_PATTERN)
    coordinates: Optional[list[Any]] = None
    is_verified: Optional[bool] = None
    delivery_instructions: Optional[str] = Field(None, max_length=200)

    @field_validator("tag", "city", "state", mode="before")
    @classmethod
    def lower_case(cls, v):
        return _lower(v)


class AddressResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    tag: AddressTag
    house_details: str
    apartment_name: Optional[str] = None
    street: str
    landmark: Optional[str] = None
    city: str
    state: str
    pincode: str
    coordinates: list[float]
    is_default: bool
    is_verified: bool
    delivery_instructions: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AddressDeleteResponse(BaseModel):
    deleted_id: uuid.UUID
    promoted_default_id: Optional[uuid.UUID] = None
