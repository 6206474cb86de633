"""Order schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from services.grocery_service.models.enums import OrderStatus, PaymentStatus
from services.grocery_service.schemas.inventory import StockLine


class OrderCreate(BaseModel):
    store_id: uuid.UUID
    address_id: uuid.UUID
    items: list[StockLine] = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("items", "items_purchased"),
    )
    total_amount: Optional[Decimal] = Field(None, gt=0)
    clear_cart: bool = True


class CheckoutRequest(BaseModel):
    """Cart checkout; the default address is used when none is given."""

    address_id: Optional[uuid.UUID] = None
    total_amount: Optional[Decimal] = Field(None, gt=0)


class OrderStatusUpdate(BaseModel):
    order_status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None


class OrderItemResponse(BaseModel):
    product_id: uuid.UUID
    name: str
    image: Optional[str] = None
    quantity: int
    price_at_purchase: Decimal
    total_item_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    id: uuid.UUID
    order_number: str
    user_id: str
    store_id: uuid.UUID
    total_amount: Decimal
    order_status: OrderStatus
    payment_status: PaymentStatus
    delivery_address: dict[str, Any]
    items: list[OrderItemResponse]
    cancelled_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderListResponse(BaseModel):
    count: int
    orders: list[OrderResponse]


class OrderTrackResponse(BaseModel):
    id: uuid.UUID
    order_number: str
    order_status: OrderStatus
    payment_status: PaymentStatus
    created_at: datetime
    updated_at: datetime
    cancelled_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
