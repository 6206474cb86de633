"""Grocery service routers package."""

from services.grocery_service.routers.addresses import router as addresses_router
from services.grocery_service.routers.cart import router as cart_router
from services.grocery_service.routers.inventory import router as inventory_router
from services.grocery_service.routers.orders import router as orders_router
from services.grocery_service.routers.stores import router as stores_router

__all__ = [
    "addresses_router",
    "cart_router",
    "inventory_router",
    "orders_router",
    "stores_router",
]
