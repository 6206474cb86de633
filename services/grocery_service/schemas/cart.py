"""Cart schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CartItemAdd(BaseModel):
    store_id: uuid.UUID
    product_id: uuid.UUID
    quantity: int = Field(1, ge=1)


class CartItemUpdate(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(..., ge=1)


class CartLineResponse(BaseModel):
    product_id: uuid.UUID
    name: Optional[str] = None
    image: Optional[str] = None
    quantity: int
    unit_price: Optional[Decimal] = None
    line_total: Optional[Decimal] = None
    in_stock: bool


class CartResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    store_id: uuid.UUID
    items: list[CartLineResponse]
    item_count: int
    # Display only; checkout re-prices from inventory
    total_estimate: Decimal
    updated_at: datetime
