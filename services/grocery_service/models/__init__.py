"""Grocery Service models package."""

from services.grocery_service.models.address import Address
from services.grocery_service.models.catalog import Product
from services.grocery_service.models.commerce import Cart, CartItem, Order, OrderItem
from services.grocery_service.models.enums import (
    CANCELLABLE_STATUSES,
    ORDER_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    AddressTag,
    InventoryMovementType,
    OrderStatus,
    PaymentStatus,
    StockOperation,
)
from services.grocery_service.models.inventory import InventoryMovement, InventoryRecord
from services.grocery_service.models.store import Store

__all__ = [
    "Address",
    "AddressTag",
    "CANCELLABLE_STATUSES",
    "Cart",
    "CartItem",
    "InventoryMovement",
    "InventoryMovementType",
    "InventoryRecord",
    "ORDER_TRANSITIONS",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PAYMENT_TRANSITIONS",
    "PaymentStatus",
    "Product",
    "StockOperation",
    "Store",
]
