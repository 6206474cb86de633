"""Inventory ledger schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.grocery_service.models.enums import StockOperation

# ============================================================================
# REQUESTS
# ============================================================================


class InventoryItemIn(BaseModel):
    product_id: uuid.UUID
    stock: int = Field(..., ge=0)
    selling_price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    discount_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)


class InventoryUpsertRequest(InventoryItemIn):
    store_id: uuid.UUID


class BulkUpsertRequest(BaseModel):
    store_id: uuid.UUID
    items: list[InventoryItemIn] = Field(..., min_length=1)


class StockAdjustRequest(BaseModel):
    quantity: int = Field(..., ge=0)
    operation: StockOperation
    notes: Optional[str] = Field(None, max_length=500)


class StockLine(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(..., ge=1)


class DeductStockRequest(BaseModel):
    store_id: uuid.UUID
    items: list[StockLine] = Field(..., min_length=1)
    reference_id: Optional[str] = Field(None, max_length=64)


class CheckAvailabilityRequest(BaseModel):
    store_id: uuid.UUID
    items: list[StockLine] = Field(..., min_length=1)


# ============================================================================
# RESPONSES
# ============================================================================


class ProductSummary(BaseModel):
    id: uuid.UUID
    name: str
    brand: Optional[str] = None
    uom: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class InventoryResponse(BaseModel):
    id: uuid.UUID
    store_id: uuid.UUID
    product_id: uuid.UUID
    stock: int
    selling_price: Decimal
    discount_percentage: Decimal
    final_price: Decimal
    product: Optional[ProductSummary] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockChangeResponse(BaseModel):
    product_id: uuid.UUID
    inventory_id: uuid.UUID
    quantity: int
    stock_after: int

    model_config = ConfigDict(from_attributes=True)


class AvailabilityLine(BaseModel):
    product_id: uuid.UUID
    requested: int
    available: int
    in_stock: bool


class StockFailure(BaseModel):
    product_id: uuid.UUID
    requested: int
    available: int
    reason: str


class AvailabilityResponse(BaseModel):
    available: bool
    items: list[AvailabilityLine]
    failures: list[StockFailure]
