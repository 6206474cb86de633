"""Cart endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.responses import Envelope, success_response
from libs.db.session import get_async_db
from services.grocery_service.schemas import CartItemAdd, CartItemUpdate, CartResponse
from services.grocery_service.services import cart_ops
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/cart", tags=["cart"])


async def _cart_body(db: AsyncSession, cart) -> Optional[CartResponse]:
    if cart is None:
        return None
    return CartResponse.model_validate(await cart_ops.cart_summary(db, cart))


@router.get("", response_model=Envelope[Optional[CartResponse]])
async def get_cart(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    cart = await cart_ops.get_cart(db, user_id=current_user.user_id)
    if cart is None:
        return success_response("No active cart found", None)
    return success_response("Cart fetched successfully", await _cart_body(db, cart))


@router.post(
    "/items",
    response_model=Envelope[CartResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_to_cart(
    payload: CartItemAdd,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Add a product; a cart holds items from one store only."""
    cart = await cart_ops.add_item(
        db,
        user_id=current_user.user_id,
        store_id=payload.store_id,
        product_id=payload.product_id,
        quantity=payload.quantity,
    )
    return success_response(
        "Item added to cart successfully", await _cart_body(db, cart)
    )


@router.patch("/items", response_model=Envelope[CartResponse])
async def update_cart_item(
    payload: CartItemUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    cart = await cart_ops.update_item_quantity(
        db,
        user_id=current_user.user_id,
        product_id=payload.product_id,
        quantity=payload.quantity,
    )
    return success_response(
        "Cart item updated successfully", await _cart_body(db, cart)
    )


@router.delete("/items/{product_id}", response_model=Envelope[Optional[CartResponse]])
async def remove_from_cart(
    product_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    cart = await cart_ops.remove_item(
        db, user_id=current_user.user_id, product_id=product_id
    )
    if cart is None:
        return success_response("Item removed and cart cleared", None)
    return success_response(
        "Item removed from cart successfully", await _cart_body(db, cart)
    )


@router.delete("", response_model=Envelope[None])
async def clear_cart(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    await cart_ops.clear_cart(db, user_id=current_user.user_id)
    return success_response("Cart cleared successfully", None)
