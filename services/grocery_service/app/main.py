"""FastAPI application for the Grocery Service."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from libs.common.config import get_settings
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.grocery_service.routers import (
    addresses_router,
    cart_router,
    inventory_router,
    orders_router,
    stores_router,
)
from slowapi.errors import RateLimitExceeded


def create_app() -> FastAPI:
    """Create and configure the Grocery Service FastAPI app."""
    settings = get_settings()
    app = FastAPI(
        title="Grocery Service",
        version="0.1.0",
        description="Store serviceability, addresses, inventory, cart and orders.",
    )

    # Add rate limiter state to app
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add observability (structured logging + request tracing)
    add_observability_middleware(app)

    # Add global exception handlers for consistent error responses
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": settings.SERVICE_NAME}

    app.include_router(stores_router)
    app.include_router(addresses_router)
    app.include_router(inventory_router)
    app.include_router(cart_router)
    app.include_router(orders_router)

    return app


app = create_app()
