"""Order endpoints: placement, history, cancellation and fulfilment status."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user, require_roles
from libs.auth.models import AuthUser, Role
from libs.common.responses import Envelope, success_response
from libs.db.session import get_async_db
from services.grocery_service.schemas import (
    CheckoutRequest,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    OrderTrackResponse,
)
from services.grocery_service.services import order_assembler
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/order", tags=["orders"])

require_fulfilment_role = require_roles(Role.ADMIN.value, Role.DELIVERY.value)


@router.post(
    "",
    response_model=Envelope[OrderResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_order(
    payload: OrderCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Place an order; stock is deducted in the same transaction."""
    order = await order_assembler.create_order(
        db,
        user_id=current_user.user_id,
        store_id=payload.store_id,
        items=payload.items,
        address_id=payload.address_id,
        total_amount=payload.total_amount,
        clear_cart=payload.clear_cart,
    )
    return success_response(
        "Order created successfully", OrderResponse.model_validate(order)
    )


@router.post(
    "/checkout",
    response_model=Envelope[OrderResponse],
    status_code=status.HTTP_201_CREATED,
)
async def checkout_cart(
    payload: CheckoutRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    order = await order_assembler.create_order_from_cart(
        db,
        user_id=current_user.user_id,
        address_id=payload.address_id,
        total_amount=payload.total_amount,
    )
    return success_response(
        "Order created successfully", OrderResponse.model_validate(order)
    )


@router.get("", response_model=Envelope[OrderListResponse])
async def list_my_orders(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    orders = await order_assembler.list_orders(db, user_id=current_user.user_id)
    return success_response(
        "Orders fetched successfully",
        OrderListResponse(
            count=len(orders),
            orders=[OrderResponse.model_validate(order) for order in orders],
        ),
    )


@router.get("/{order_id}", response_model=Envelope[OrderResponse])
async def get_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    order = await order_assembler.get_order(db, order_id, identity=current_user)
    return success_response(
        "Order fetched successfully", OrderResponse.model_validate(order)
    )


@router.get("/{order_id}/track", response_model=Envelope[OrderTrackResponse])
async def track_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    tracking = await order_assembler.track_order(db, order_id, identity=current_user)
    return success_response("Order status fetched successfully", tracking)


@router.patch("/{order_id}/cancel", response_model=Envelope[OrderResponse])
async def cancel_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    order = await order_assembler.cancel_order(
        db, order_id, user_id=current_user.user_id
    )
    return success_response(
        "Order cancelled successfully", OrderResponse.model_validate(order)
    )


@router.patch("/{order_id}/status", response_model=Envelope[OrderResponse])
async def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    current_user: AuthUser = Depends(require_fulfilment_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Admin or delivery partner; transitions only move forward."""
    order = await order_assembler.update_order_status(
        db,
        order_id,
        order_status=payload.order_status,
        payment_status=payload.payment_status,
        performed_by=current_user.user_id,
    )
    return success_response(
        "Order status updated successfully", OrderResponse.model_validate(order)
    )
