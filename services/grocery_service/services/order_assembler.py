"""Order assembly and lifecycle.

An order is written in the same transaction as the stock deduction for its
lines, so an order never exists without the stock behind it. Orders embed a
copy of the delivery address and of each line's name and price.
"""

import uuid
from decimal import Decimal
from typing import Any, Iterable, Optional

from libs.auth.models import AuthUser
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    Forbidden,
    InvalidStateTransition,
    NotFound,
    TransactionAborted,
    ValidationError,
)
from libs.common.logging import get_logger
from services.grocery_service.models import (
    CANCELLABLE_STATUSES,
    ORDER_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
)
from services.grocery_service.services import address_registry, cart_ops
from services.grocery_service.services.inventory_ledger import (
    apply_deduction,
    apply_restock,
    ensure_store,
    get_records_for_products,
    normalise_lines,
)
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

TOTAL_TOLERANCE = Decimal("0.01")


def _parse_status(enum_cls, value: Any, label: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        raise ValidationError(f"Invalid {label}: {value}")


# ============================================================================
# QUERIES
# ============================================================================


async def _load_order(
    db: AsyncSession, order_id: uuid.UUID, *, for_update: bool = False
) -> Order:
    query = (
        select(Order)
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    order = result.scalar_one_or_none()
    if not order:
        raise NotFound("Order not found")
    return order


async def list_orders(db: AsyncSession, *, user_id: str) -> list[Order]:
    result = await db.execute(
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return list(result.scalars().all())


async def get_order(
    db: AsyncSession, order_id: uuid.UUID, *, identity: AuthUser
) -> Order:
    """Visible to its owner and to admins."""
    order = await _load_order(db, order_id)
    if order.user_id != identity.user_id and not identity.is_admin:
        raise Forbidden("You are not authorized to view this order")
    return order


async def track_order(
    db: AsyncSession, order_id: uuid.UUID, *, identity: AuthUser
) -> dict[str, Any]:
    order = await get_order(db, order_id, identity=identity)
    return {
        "id": order.id,
        "order_number": order.order_number,
        "order_status": order.order_status,
        "payment_status": order.payment_status,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
        "cancelled_at": order.cancelled_at,
        "delivered_at": order.delivered_at,
    }


# ============================================================================
# CREATION
# ============================================================================


async def create_order(
    db: AsyncSession,
    *,
    user_id: str,
    store_id: uuid.UUID,
    items: Iterable[Any],
    address_id: uuid.UUID,
    total_amount: Optional[Any] = None,
    clear_cart: bool = True,
) -> Order:
    """Deduct stock and persist the order in one transaction.

    Lines are priced from the ledger. A client-supplied ``total_amount`` that
    differs from the computed total by more than 0.01 rejects the order.
    """
    lines = normalise_lines(items)

    store = await ensure_store(db, store_id)
    if not store.is_active:
        raise ValidationError("Store is not accepting orders")

    address = await address_registry.get_owned_address(
        db, address_id, user_id=user_id
    )
    order_number = Order.generate_order_number()

    try:
        await apply_deduction(
            db,
            store_id=store_id,
            items=[{"product_id": pid, "quantity": qty} for pid, qty in lines.items()],
            reference_id=order_number,
            performed_by=user_id,
        )

        records = await get_records_for_products(
            db, store_id=store_id, product_ids=lines.keys()
        )
        order_items = []
        total = Decimal("0.00")
        for product_id, quantity in lines.items():
            record = records[product_id]
            price = record.final_price
            line_total = price * quantity
            total += line_total
            order_items.append(
                OrderItem(
                    product_id=product_id,
                    name=record.product.name,
                    image=record.product.image_url,
                    quantity=quantity,
                    price_at_purchase=price,
                    total_item_price=line_total,
                )
            )

        if total <= 0:
            raise ValidationError("Total amount must be greater than 0")
        if total_amount is not None:
            try:
                claimed = Decimal(str(total_amount))
            except ArithmeticError:
                raise ValidationError("Total amount must be numeric")
            if abs(claimed - total) > TOTAL_TOLERANCE:
                raise ValidationError(
                    "Order total does not match current prices",
                    data={"expected_total": str(total), "received_total": str(claimed)},
                )

        order = Order(
            order_number=order_number,
            user_id=user_id,
            store_id=store_id,
            total_amount=total,
            order_status=OrderStatus.PLACED,
            payment_status=PaymentStatus.PENDING,
            delivery_address=address.snapshot(),
            items=order_items,
        )
        db.add(order)

        if clear_cart:
            await cart_ops.discard_cart(db, user_id=user_id, store_id=store_id)

        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise
    except DBAPIError as e:
        await db.rollback()
        logger.error("Order creation aborted for user %s: %s", user_id, e)
        raise TransactionAborted() from e
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Order %s placed by user %s (store=%s, total=%s)",
        order_number,
        user_id,
        store_id,
        total,
    )
    return await _load_order(db, order.id)


async def create_order_from_cart(
    db: AsyncSession,
    *,
    user_id: str,
    address_id: Optional[uuid.UUID] = None,
    total_amount: Optional[Any] = None,
) -> Order:
    """Check out the user's cart; falls back to the default address."""
    cart = await cart_ops.get_cart(db, user_id=user_id)
    if not cart or not cart.items:
        raise NotFound("No active cart found")

    if address_id is None:
        default = await address_registry.get_default_address(db, user_id=user_id)
        if not default:
            raise NotFound("No delivery address found")
        address_id = default.id

    return await create_order(
        db,
        user_id=user_id,
        store_id=cart.store_id,
        items=[
            {"product_id": item.product_id, "quantity": item.quantity}
            for item in cart.items
        ],
        address_id=address_id,
        total_amount=total_amount,
        clear_cart=True,
    )


# ============================================================================
# LIFECYCLE
# ============================================================================


async def _restore_order_stock(
    db: AsyncSession, order: Order, performed_by: Optional[str]
) -> None:
    await apply_restock(
        db,
        store_id=order.store_id,
        items=[
            {"product_id": item.product_id, "quantity": item.quantity}
            for item in order.items
        ],
        reference_id=order.order_number,
        performed_by=performed_by,
    )


def _mark_cancelled(order: Order) -> None:
    order.order_status = OrderStatus.CANCELLED
    order.cancelled_at = utc_now()
    if order.payment_status == PaymentStatus.PAID:
        order.payment_status = PaymentStatus.REFUNDED


async def cancel_order(
    db: AsyncSession, order_id: uuid.UUID, *, user_id: str
) -> Order:
    """Owner cancellation from PLACED or PACKING; stock is credited back."""
    try:
        order = await _load_order(db, order_id, for_update=True)
        if order.user_id != user_id:
            raise Forbidden("You are not authorized to cancel this order")
        if order.order_status not in CANCELLABLE_STATUSES:
            raise InvalidStateTransition(
                f"Cannot cancel order with status: {order.order_status.value}"
            )

        await _restore_order_stock(db, order, user_id)
        _mark_cancelled(order)
        await db.commit()
    except DBAPIError as e:
        await db.rollback()
        raise TransactionAborted() from e
    except Exception:
        await db.rollback()
        raise

    logger.info("Order %s cancelled by user %s", order.order_number, user_id)
    return await _load_order(db, order_id)


async def update_order_status(
    db: AsyncSession,
    order_id: uuid.UUID,
    *,
    order_status: Optional[Any] = None,
    payment_status: Optional[Any] = None,
    performed_by: Optional[str] = None,
) -> Order:
    """Move an order forward along its lifecycle (admin/delivery).

    Same-status updates are no-ops. Cancelling here restores stock like a
    customer cancellation does.
    """
    new_status = _parse_status(OrderStatus, order_status, "order status")
    new_payment = _parse_status(PaymentStatus, payment_status, "payment status")
    if new_status is None and new_payment is None:
        raise ValidationError("Provide at least one status to update")

    try:
        order = await _load_order(db, order_id, for_update=True)
        current_status = order.order_status
        current_payment = order.payment_status

        status_change = new_status is not None and new_status != current_status
        payment_change = new_payment is not None and new_payment != current_payment

        if status_change and new_status not in ORDER_TRANSITIONS[current_status]:
            raise InvalidStateTransition(
                f"Cannot move order from {current_status.value} to {new_status.value}"
            )
        if payment_change and new_payment not in PAYMENT_TRANSITIONS[current_payment]:
            raise InvalidStateTransition(
                f"Cannot move payment from {current_payment.value} to {new_payment.value}"
            )
        if (
            status_change
            and new_status == OrderStatus.CANCELLED
            and payment_change
            and new_payment == PaymentStatus.PAID
        ):
            raise InvalidStateTransition("Cannot mark a cancelled order as paid")

        if status_change:
            if new_status == OrderStatus.CANCELLED:
                await _restore_order_stock(db, order, performed_by)
                _mark_cancelled(order)
            else:
                order.order_status = new_status
                if new_status == OrderStatus.DELIVERED:
                    order.delivered_at = utc_now()
        if payment_change:
            order.payment_status = new_payment

        await db.commit()
    except DBAPIError as e:
        await db.rollback()
        raise TransactionAborted() from e
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Order %s status %s/%s -> %s/%s (by %s)",
        order.order_number,
        current_status.value,
        current_payment.value,
        order.order_status.value,
        order.payment_status.value,
        performed_by,
    )
    return await _load_order(db, order_id)
