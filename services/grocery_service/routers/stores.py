"""Store endpoints: public serviceability lookups and admin management."""

import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.rate_limit import geo_limit
from libs.common.responses import Envelope, success_response
from libs.db.session import get_async_db
from services.grocery_service.schemas import (
    NearestStoreResponse,
    ServiceabilityResponse,
    StoreCreate,
    StoreResponse,
    StoreUpdate,
)
from services.grocery_service.services import serviceability, store_registry
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/store", tags=["stores"])
settings = get_settings()


# ---------------------------------------------------------------------------
# Public lookups (declared before /{store_id})
# ---------------------------------------------------------------------------


@router.get("/nearest", response_model=Envelope[NearestStoreResponse])
@geo_limit
async def get_nearest_store(
    request: Request,
    longitude: float = Query(...),
    latitude: float = Query(...),
    db: AsyncSession = Depends(get_async_db),
):
    """Closest active store within the configured radius."""
    max_distance = settings.NEAREST_STORE_MAX_DISTANCE_M
    nearest = await serviceability.find_nearest_store(
        db, [longitude, latitude], max_distance
    )
    if nearest is None:
        return success_response(
            "No nearby stores found",
            NearestStoreResponse(
                found=False,
                coordinates=[longitude, latitude],
                max_distance_m=max_distance,
            ),
        )
    return success_response(
        "Nearest store found",
        NearestStoreResponse(
            found=True,
            coordinates=[longitude, latitude],
            max_distance_m=max_distance,
            distance_m=round(nearest.distance_m, 2),
            store=StoreResponse.model_validate(nearest.store),
        ),
    )


@router.get("/check-serviceability", response_model=Envelope[ServiceabilityResponse])
@geo_limit
async def check_serviceability(
    request: Request,
    longitude: float = Query(...),
    latitude: float = Query(...),
    db: AsyncSession = Depends(get_async_db),
):
    result = await serviceability.check_serviceability(db, [longitude, latitude])
    if not result.serviceable:
        return success_response(
            "Location is not within any store's service area",
            ServiceabilityResponse(
                serviceable=False, coordinates=[result.longitude, result.latitude]
            ),
        )
    return success_response(
        "Location is within a store's service area",
        ServiceabilityResponse(
            serviceable=True,
            coordinates=[result.longitude, result.latitude],
            store=StoreResponse.model_validate(result.store),
        ),
    )


# ---------------------------------------------------------------------------
# Management
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=Envelope[StoreResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_store(
    payload: StoreCreate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    store = await store_registry.create_store(
        db,
        name=payload.name,
        location=payload.location,
        service_area=payload.service_area,
        is_active=payload.is_active,
    )
    return success_response(
        "Store created successfully", StoreResponse.model_validate(store)
    )


@router.get("", response_model=Envelope[list[StoreResponse]])
async def list_stores(
    active_only: bool = Query(False),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    stores = await store_registry.list_stores(db, active_only=active_only)
    return success_response(
        "Stores fetched successfully",
        [StoreResponse.model_validate(store) for store in stores],
    )


@router.get("/{store_id}", response_model=Envelope[StoreResponse])
async def get_store(
    store_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
):
    store = await store_registry.get_store(db, store_id)
    return success_response(
        "Store fetched successfully", StoreResponse.model_validate(store)
    )


@router.patch("/{store_id}", response_model=Envelope[StoreResponse])
async def update_store(
    store_id: uuid.UUID,
    payload: StoreUpdate,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Toggle availability or redraw the service area."""
    store = await store_registry.update_store(
        db, store_id, **payload.model_dump(exclude_unset=True)
    )
    return success_response(
        "Store updated successfully", StoreResponse.model_validate(store)
    )
