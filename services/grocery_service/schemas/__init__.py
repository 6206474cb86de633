"""Grocery Service schemas package.

Re-exports all schemas so routers can import from
``services.grocery_service.schemas`` directly.
"""

from services.grocery_service.schemas.address import (  # noqa: F401
    AddressCreate,
    AddressDeleteResponse,
    AddressResponse,
    AddressUpdate,
)
from services.grocery_service.schemas.cart import (  # noqa: F401
    CartItemAdd,
    CartItemUpdate,
    CartLineResponse,
    CartResponse,
)
from services.grocery_service.schemas.inventory import (  # noqa: F401
    AvailabilityLine,
    AvailabilityResponse,
    BulkUpsertRequest,
    CheckAvailabilityRequest,
    DeductStockRequest,
    InventoryItemIn,
    InventoryResponse,
    InventoryUpsertRequest,
    ProductSummary,
    StockAdjustRequest,
    StockChangeResponse,
    StockFailure,
    StockLine,
)
from services.grocery_service.schemas.order import (  # noqa: F401
    CheckoutRequest,
    OrderCreate,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    OrderTrackResponse,
)
from services.grocery_service.schemas.store import (  # noqa: F401
    NearestStoreResponse,
    ServiceabilityResponse,
    StoreCreate,
    StoreResponse,
    StoreUpdate,
)
