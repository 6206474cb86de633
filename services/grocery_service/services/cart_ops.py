"""Cart operations: one cart per user, bound to a single store."""

import uuid
from decimal import Decimal
from typing import Any, Optional

from libs.common.errors import Conflict, NotFound, ValidationError
from libs.common.logging import get_logger
from services.grocery_service.models import Cart, CartItem
from services.grocery_service.services.inventory_ledger import (
    ensure_store,
    get_inventory_record,
    get_records_for_products,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def _check_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be a positive integer")
    return quantity


async def get_cart(db: AsyncSession, *, user_id: str) -> Optional[Cart]:
    result = await db.execute(
        select(Cart)
        .where(Cart.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _require_cart(db: AsyncSession, user_id: str) -> Cart:
    cart = await get_cart(db, user_id=user_id)
    if not cart:
        raise NotFound("No active cart found")
    return cart


def _find_item(cart: Cart, product_id: uuid.UUID) -> Optional[CartItem]:
    for item in cart.items:
        if item.product_id == product_id:
            return item
    return None


async def cart_summary(db: AsyncSession, cart: Cart) -> dict[str, Any]:
    """Cart with lines priced from live inventory.

    Totals are for display; checkout re-prices from the ledger.
    """
    records = await get_records_for_products(
        db,
        store_id=cart.store_id,
        product_ids=[item.product_id for item in cart.items],
    )
    lines = []
    total = Decimal("0.00")
    for item in cart.items:
        record = records.get(item.product_id)
        unit_price = record.final_price if record else None
        line_total = unit_price * item.quantity if unit_price is not None else None
        if line_total is not None:
            total += line_total
        lines.append(
            {
                "product_id": item.product_id,
                "name": record.product.name if record else None,
                "image": record.product.image_url if record else None,
                "quantity": item.quantity,
                "unit_price": unit_price,
                "line_total": line_total,
                "in_stock": bool(record and record.stock >= item.quantity),
            }
        )

    return {
        "id": cart.id,
        "user_id": cart.user_id,
        "store_id": cart.store_id,
        "items": lines,
        "item_count": sum(item.quantity for item in cart.items),
        "total_estimate": total,
        "updated_at": cart.updated_at,
    }


async def _refresh_estimate(db: AsyncSession, cart: Cart) -> None:
    summary = await cart_summary(db, cart)
    cart.total_price_estimate = summary["total_estimate"]


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


async def add_item(
    db: AsyncSession,
    *,
    user_id: str,
    store_id: uuid.UUID,
    product_id: uuid.UUID,
    quantity: int,
) -> Cart:
    """Add ``quantity`` of a product, creating the cart bound to ``store_id``.

    A cart bound to another store is left untouched and the call is rejected.
    """
    quantity = _check_quantity(quantity)
    cart = await get_cart(db, user_id=user_id)

    if cart and cart.store_id != store_id:
        raise Conflict(
            "Cannot add items from different stores. Clear your cart first.",
            data={"cart_store_id": str(cart.store_id)},
        )

    store = await ensure_store(db, store_id)
    if not store.is_active:
        raise ValidationError("Store is not accepting orders")

    record = await get_inventory_record(db, store_id=store_id, product_id=product_id)
    if not record:
        raise NotFound("Product is not available in this store")

    if cart is None:
        cart = Cart(user_id=user_id, store_id=store_id, items=[])
        db.add(cart)

    item = _find_item(cart, product_id)
    if item:
        item.quantity += quantity
    else:
        cart.items.append(CartItem(product_id=product_id, quantity=quantity))

    await _refresh_estimate(db, cart)
    await db.commit()

    logger.info(
        "Added %d of product %s to cart of user %s", quantity, product_id, user_id
    )
    return await _require_cart(db, user_id)


async def update_item_quantity(
    db: AsyncSession, *, user_id: str, product_id: uuid.UUID, quantity: int
) -> Cart:
    quantity = _check_quantity(quantity)
    cart = await _require_cart(db, user_id)

    item = _find_item(cart, product_id)
    if not item:
        raise NotFound("Item not found in cart")
    item.quantity = quantity

    await _refresh_estimate(db, cart)
    await db.commit()
    return await _require_cart(db, user_id)


async def remove_item(
    db: AsyncSession, *, user_id: str, product_id: uuid.UUID
) -> Optional[Cart]:
    """Remove one line. Returns ``None`` when that empties and deletes the cart."""
    cart = await _require_cart(db, user_id)

    item = _find_item(cart, product_id)
    if not item:
        raise NotFound("Item not found in cart")
    cart.items.remove(item)

    if not cart.items:
        await db.delete(cart)
        await db.commit()
        logger.info("Cart of user %s emptied and removed", user_id)
        return None

    await _refresh_estimate(db, cart)
    await db.commit()
    return await _require_cart(db, user_id)


async def clear_cart(db: AsyncSession, *, user_id: str) -> None:
    cart = await _require_cart(db, user_id)
    await db.delete(cart)
    await db.commit()
    logger.info("Cleared cart of user %s", user_id)


async def discard_cart(
    db: AsyncSession, *, user_id: str, store_id: Optional[uuid.UUID] = None
) -> bool:
    """Delete the user's cart inside the caller's transaction; does not commit.

    With ``store_id`` only a cart bound to that store is removed.
    """
    cart = await get_cart(db, user_id=user_id)
    if not cart or (store_id is not None and cart.store_id != store_id):
        return False
    await db.delete(cart)
    return True
