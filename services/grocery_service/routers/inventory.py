"""Inventory ledger endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import get_current_user, require_admin
from libs.auth.models import AuthUser
from libs.common.responses import Envelope, success_response
from libs.db.session import get_async_db
from services.grocery_service.schemas import (
    AvailabilityResponse,
    BulkUpsertRequest,
    CheckAvailabilityRequest,
    DeductStockRequest,
    InventoryResponse,
    InventoryUpsertRequest,
    StockAdjustRequest,
    StockChangeResponse,
)
from services.grocery_service.services import inventory_ledger
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/inventory", tags=["inventory"])


# ---------------------------------------------------------------------------
# Writes (admin)
# ---------------------------------------------------------------------------


@router.post("/upsert", response_model=Envelope[InventoryResponse])
async def upsert_inventory(
    payload: InventoryUpsertRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    record = await inventory_ledger.upsert_inventory(
        db,
        store_id=payload.store_id,
        product_id=payload.product_id,
        stock=payload.stock,
        selling_price=payload.selling_price,
        discount_percentage=payload.discount_percentage,
        performed_by=current_user.user_id,
    )
    return success_response(
        "Inventory saved successfully", InventoryResponse.model_validate(record)
    )


@router.post("/bulk-upsert", response_model=Envelope[list[InventoryResponse]])
async def bulk_upsert_inventory(
    payload: BulkUpsertRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    records = await inventory_ledger.bulk_upsert(
        db,
        store_id=payload.store_id,
        items=payload.items,
        performed_by=current_user.user_id,
    )
    return success_response(
        f"{len(records)} inventory records saved",
        [InventoryResponse.model_validate(record) for record in records],
    )


@router.patch("/{inventory_id}/stock", response_model=Envelope[InventoryResponse])
async def adjust_stock(
    inventory_id: uuid.UUID,
    payload: StockAdjustRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Set, increment or decrement; decrements stop at zero."""
    record = await inventory_ledger.adjust_stock(
        db,
        inventory_id,
        quantity=payload.quantity,
        operation=payload.operation,
        performed_by=current_user.user_id,
        notes=payload.notes,
    )
    return success_response(
        "Stock updated successfully", InventoryResponse.model_validate(record)
    )


@router.post("/deduct-stock", response_model=Envelope[list[StockChangeResponse]])
async def deduct_stock(
    payload: DeductStockRequest,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """All-or-nothing deduction; a failed batch returns every deficient item."""
    changes = await inventory_ledger.deduct_for_order(
        db,
        store_id=payload.store_id,
        items=payload.items,
        reference_id=payload.reference_id,
        performed_by=current_user.user_id,
    )
    return success_response(
        "Stock deducted successfully",
        [StockChangeResponse.model_validate(change) for change in changes],
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@router.post("/check-availability", response_model=Envelope[AvailabilityResponse])
async def check_availability(
    payload: CheckAvailabilityRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    report = await inventory_ledger.check_availability(
        db, store_id=payload.store_id, items=payload.items
    )
    message = (
        "All items are available"
        if report["available"]
        else "Some items are not available in the requested quantity"
    )
    return success_response(message, report)


@router.get("/store/{store_id}", response_model=Envelope[list[InventoryResponse]])
async def get_store_inventory(
    store_id: uuid.UUID,
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    records = await inventory_ledger.get_store_inventory(db, store_id)
    return success_response(
        "Inventory fetched successfully",
        [InventoryResponse.model_validate(record) for record in records],
    )


@router.get("/store/{store_id}/menu", response_model=Envelope[list[InventoryResponse]])
async def get_store_menu(
    store_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_db),
):
    """What a customer can buy from this store right now."""
    records = await inventory_ledger.get_store_menu(db, store_id)
    return success_response(
        "Menu fetched successfully",
        [InventoryResponse.model_validate(record) for record in records],
    )


@router.get(
    "/store/{store_id}/low-stock", response_model=Envelope[list[InventoryResponse]]
)
async def get_low_stock(
    store_id: uuid.UUID,
    threshold: Optional[int] = Query(None, ge=0),
    current_user: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    records = await inventory_ledger.get_low_stock(db, store_id, threshold)
    return success_response(
        "Low stock items fetched successfully",
        [InventoryResponse.model_validate(record) for record in records],
    )
