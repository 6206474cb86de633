"""Inventory ledger: per-store stock and price, with oversell-safe deduction.

Every deduction is a conditional ``UPDATE ... WHERE stock >= :quantity``.
A batch runs inside a savepoint; if any line fails its condition the whole
savepoint is rolled back and the caller receives the full failure report.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    InsufficientStock,
    NotFound,
    TransactionAborted,
    ValidationError,
)
from libs.common.logging import get_logger
from services.grocery_service.models import (
    InventoryMovement,
    InventoryMovementType,
    InventoryRecord,
    Product,
    StockOperation,
    Store,
)
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)
settings = get_settings()

REASON_NOT_FOUND = "not_found"
REASON_INSUFFICIENT = "insufficient_stock"

_UPSERT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


@dataclass(frozen=True)
class StockChange:
    product_id: uuid.UUID
    inventory_id: uuid.UUID
    quantity: int
    stock_after: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": str(self.product_id),
            "inventory_id": str(self.inventory_id),
            "quantity": self.quantity,
            "stock_after": self.stock_after,
        }


# ============================================================================
# INPUT NORMALISATION
# ============================================================================


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _as_uuid(value: Any, label: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label}: {value!r}")


def normalise_lines(items: Iterable[Any]) -> dict[uuid.UUID, int]:
    """Collapse ``[{product_id, quantity}, ...]`` into ``{product_id: total}``.

    Keys come back sorted so every batch touches rows in the same order.
    """
    totals: dict[uuid.UUID, int] = {}
    for item in items or ():
        product_id = _as_uuid(_field(item, "product_id"), "product id")
        quantity = _field(item, "quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(
                f"Quantity for product {product_id} must be a positive integer"
            )
        totals[product_id] = totals.get(product_id, 0) + quantity

    if not totals:
        raise ValidationError("At least one item is required")
    return {product_id: totals[product_id] for product_id in sorted(totals, key=str)}


def validate_record_values(
    stock: Any, selling_price: Any, discount_percentage: Any
) -> tuple[int, Decimal, Decimal]:
    if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
        raise ValidationError("Stock must be a non-negative integer")
    try:
        price = Decimal(str(selling_price))
        discount = Decimal(str(discount_percentage if discount_percentage is not None else 0))
    except (InvalidOperation, ValueError):
        raise ValidationError("Price and discount must be numeric")
    if not price.is_finite() or price <= 0:
        raise ValidationError("Selling price must be greater than zero")
    if not discount.is_finite() or discount < 0 or discount > 100:
        raise ValidationError("Discount percentage must be between 0 and 100")
    return stock, price, discount


# ============================================================================
# LOOKUPS
# ============================================================================


async def ensure_store(db: AsyncSession, store_id: uuid.UUID) -> Store:
    store = await db.get(Store, store_id)
    if not store:
        raise NotFound("Store not found")
    return store


async def _ensure_products(db: AsyncSession, product_ids: Iterable[uuid.UUID]) -> None:
    wanted = set(product_ids)
    result = await db.execute(select(Product.id).where(Product.id.in_(wanted)))
    missing = wanted - set(result.scalars().all())
    if missing:
        raise NotFound(
            "Product not found",
            data={"product_ids": sorted(str(pid) for pid in missing)},
        )


async def get_inventory(db: AsyncSession, inventory_id: uuid.UUID) -> InventoryRecord:
    result = await db.execute(
        select(InventoryRecord)
        .where(InventoryRecord.id == inventory_id)
        .options(selectinload(InventoryRecord.product))
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    if not record:
        raise NotFound("Inventory record not found")
    return record


async def get_inventory_record(
    db: AsyncSession, *, store_id: uuid.UUID, product_id: uuid.UUID
) -> Optional[InventoryRecord]:
    result = await db.execute(
        select(InventoryRecord)
        .where(
            InventoryRecord.store_id == store_id,
            InventoryRecord.product_id == product_id,
        )
        .options(selectinload(InventoryRecord.product))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_records_for_products(
    db: AsyncSession, *, store_id: uuid.UUID, product_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, InventoryRecord]:
    result = await db.execute(
        select(InventoryRecord)
        .where(
            InventoryRecord.store_id == store_id,
            InventoryRecord.product_id.in_(list(product_ids)),
        )
        .options(selectinload(InventoryRecord.product))
        .execution_options(populate_existing=True)
    )
    return {record.product_id: record for record in result.scalars().all()}


async def get_store_inventory(
    db: AsyncSession, store_id: uuid.UUID
) -> list[InventoryRecord]:
    await ensure_store(db, store_id)
    result = await db.execute(
        select(InventoryRecord)
        .join(Product, InventoryRecord.product_id == Product.id)
        .where(InventoryRecord.store_id == store_id)
        .options(selectinload(InventoryRecord.product))
        .order_by(Product.name, InventoryRecord.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_store_menu(
    db: AsyncSession, store_id: uuid.UUID
) -> list[InventoryRecord]:
    """Sellable lines: in stock, active product."""
    await ensure_store(db, store_id)
    result = await db.execute(
        select(InventoryRecord)
        .join(Product, InventoryRecord.product_id == Product.id)
        .where(
            InventoryRecord.store_id == store_id,
            InventoryRecord.stock > 0,
            Product.is_active.is_(True),
        )
        .options(selectinload(InventoryRecord.product))
        .order_by(Product.name, InventoryRecord.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_low_stock(
    db: AsyncSession, store_id: uuid.UUID, threshold: Optional[int] = None
) -> list[InventoryRecord]:
    if threshold is None:
        threshold = settings.LOW_STOCK_THRESHOLD
    if threshold < 0:
        raise ValidationError("Threshold must be non-negative")

    await ensure_store(db, store_id)
    result = await db.execute(
        select(InventoryRecord)
        .where(
            InventoryRecord.store_id == store_id,
            InventoryRecord.stock <= threshold,
        )
        .options(selectinload(InventoryRecord.product))
        .order_by(InventoryRecord.stock, InventoryRecord.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


# ============================================================================
# UPSERT
# ============================================================================


def _record_row(
    store_id: uuid.UUID, product_id: uuid.UUID, stock: int, price: Decimal, discount: Decimal
) -> dict[str, Any]:
    now = utc_now()
    return {
        "id": uuid.uuid4(),
        "store_id": store_id,
        "product_id": product_id,
        "stock": stock,
        "selling_price": price,
        "discount_percentage": discount,
        "created_at": now,
        "updated_at": now,
    }


async def _write_records(db: AsyncSession, rows: list[dict[str, Any]]) -> None:
    """Insert-or-replace keyed on (store_id, product_id)."""
    insert_fn = _UPSERT_INSERTS.get(db.get_bind().dialect.name)
    if insert_fn is not None:
        table = InventoryRecord.__table__
        stmt = insert_fn(table).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.store_id, table.c.product_id],
            set_={
                "stock": stmt.excluded.stock,
                "selling_price": stmt.excluded.selling_price,
                "discount_percentage": stmt.excluded.discount_percentage,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await db.execute(stmt)
        return

    # Dialects without ON CONFLICT: lock-and-update, insert the rest
    existing = await db.execute(
        select(InventoryRecord)
        .where(
            InventoryRecord.store_id == rows[0]["store_id"],
            InventoryRecord.product_id.in_([row["product_id"] for row in rows]),
        )
        .with_for_update()
    )
    by_product = {record.product_id: record for record in existing.scalars().all()}
    for row in rows:
        record = by_product.get(row["product_id"])
        if record is None:
            db.add(InventoryRecord(**row))
        else:
            record.stock = row["stock"]
            record.selling_price = row["selling_price"]
            record.discount_percentage = row["discount_percentage"]
    await db.flush()


def _log_movement(
    db: AsyncSession,
    record_id: uuid.UUID,
    *,
    movement_type: InventoryMovementType,
    quantity: int,
    stock_after: int,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    performed_by: Optional[str] = None,
    notes: Optional[str] = None,
) -> None:
    db.add(
        InventoryMovement(
            inventory_id=record_id,
            movement_type=movement_type,
            quantity=quantity,
            stock_after=stock_after,
            reference_type=reference_type,
            reference_id=reference_id,
            performed_by=performed_by,
            notes=notes,
        )
    )


async def bulk_upsert(
    db: AsyncSession,
    *,
    store_id: uuid.UUID,
    items: list[Any],
    performed_by: Optional[str] = None,
) -> list[InventoryRecord]:
    """Create or replace many records of one store in a single statement.

    Every item is validated before anything is written; duplicate product ids
    in one batch are rejected.
    """
    if not items:
        raise ValidationError("At least one inventory item is required")

    rows: list[dict[str, Any]] = []
    seen: set[uuid.UUID] = set()
    for index, item in enumerate(items):
        product_id = _as_uuid(_field(item, "product_id"), "product id")
        if product_id in seen:
            raise ValidationError(f"Duplicate product {product_id} at position {index}")
        seen.add(product_id)
        stock, price, discount = validate_record_values(
            _field(item, "stock"),
            _field(item, "selling_price"),
            _field(item, "discount_percentage"),
        )
        rows.append(_record_row(store_id, product_id, stock, price, discount))

    await ensure_store(db, store_id)
    await _ensure_products(db, seen)

    before = {
        product_id: record.stock
        for product_id, record in (
            await get_records_for_products(db, store_id=store_id, product_ids=seen)
        ).items()
    }

    try:
        await _write_records(db, rows)
        records = await get_records_for_products(db, store_id=store_id, product_ids=seen)
        for product_id, record in records.items():
            delta = record.stock - before.get(product_id, 0)
            if delta:
                _log_movement(
                    db,
                    record.id,
                    movement_type=(
                        InventoryMovementType.RESTOCK
                        if delta > 0
                        else InventoryMovementType.ADJUSTMENT
                    ),
                    quantity=delta,
                    stock_after=record.stock,
                    reference_type="upsert",
                    performed_by=performed_by,
                )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Upserted %d inventory records for store %s", len(rows), store_id)
    return [records[row["product_id"]] for row in rows]


async def upsert_inventory(
    db: AsyncSession,
    *,
    store_id: uuid.UUID,
    product_id: uuid.UUID,
    stock: int,
    selling_price: Any,
    discount_percentage: Any = 0,
    performed_by: Optional[str] = None,
) -> InventoryRecord:
    """Idempotent create-or-replace of one (store, product) record."""
    records = await bulk_upsert(
        db,
        store_id=store_id,
        items=[
            {
                "product_id": product_id,
                "stock": stock,
                "selling_price": selling_price,
                "discount_percentage": discount_percentage,
            }
        ],
        performed_by=performed_by,
    )
    return records[0]


# ============================================================================
# MANUAL ADJUSTMENT
# ============================================================================


async def adjust_stock(
    db: AsyncSession,
    inventory_id: uuid.UUID,
    *,
    quantity: int,
    operation: StockOperation,
    performed_by: Optional[str] = None,
    notes: Optional[str] = None,
) -> InventoryRecord:
    """Set, increment or decrement stock. Decrements clamp at zero."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        raise ValidationError("Quantity must be a non-negative integer")
    operation = StockOperation(operation)

    try:
        result = await db.execute(
            select(InventoryRecord)
            .where(InventoryRecord.id == inventory_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()
        if not record:
            raise NotFound("Inventory record not found")

        before = record.stock
        if operation == StockOperation.SET:
            after = quantity
        elif operation == StockOperation.INCREMENT:
            after = before + quantity
        else:
            after = max(0, before - quantity)

        record.stock = after
        if after != before:
            _log_movement(
                db,
                record.id,
                movement_type=(
                    InventoryMovementType.RESTOCK
                    if operation == StockOperation.INCREMENT
                    else InventoryMovementType.ADJUSTMENT
                ),
                quantity=after - before,
                stock_after=after,
                reference_type="manual",
                performed_by=performed_by,
                notes=notes,
            )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if operation == StockOperation.DECREMENT and before < quantity:
        logger.warning(
            "Decrement of %d on inventory %s clamped at zero (stock was %d)",
            quantity,
            inventory_id,
            before,
        )
    logger.info(
        "Adjusted inventory %s: %s %d (%d -> %d)",
        inventory_id,
        operation.value,
        quantity,
        before,
        after,
    )
    return await get_inventory(db, inventory_id)


# ============================================================================
# ORDER DEDUCTION / RESTORATION
# ============================================================================


async def _describe_failure(
    db: AsyncSession, store_id: uuid.UUID, product_id: uuid.UUID, requested: int
) -> dict[str, Any]:
    result = await db.execute(
        select(InventoryRecord.stock).where(
            InventoryRecord.store_id == store_id,
            InventoryRecord.product_id == product_id,
        )
    )
    available = result.scalar_one_or_none()
    return {
        "product_id": str(product_id),
        "requested": requested,
        "available": available or 0,
        "reason": REASON_NOT_FOUND if available is None else REASON_INSUFFICIENT,
    }


async def apply_deduction(
    db: AsyncSession,
    *,
    store_id: uuid.UUID,
    items: Iterable[Any],
    reference_type: str = "order",
    reference_id: Optional[str] = None,
    performed_by: Optional[str] = None,
) -> list[StockChange]:
    """Conditionally deduct every line inside a savepoint; does not commit.

    Raises ``InsufficientStock`` with one entry per failing line, after the
    savepoint has been rolled back so no line stays deducted.
    """
    lines = normalise_lines(items)
    changes: list[StockChange] = []
    failures: list[dict[str, Any]] = []

    try:
        async with db.begin_nested():
            for product_id, quantity in lines.items():
                result = await db.execute(
                    update(InventoryRecord)
                    .where(
                        InventoryRecord.store_id == store_id,
                        InventoryRecord.product_id == product_id,
                        InventoryRecord.stock >= quantity,
                    )
                    .values(stock=InventoryRecord.stock - quantity, updated_at=utc_now())
                    .returning(InventoryRecord.id, InventoryRecord.stock)
                    .execution_options(synchronize_session=False)
                )
                row = result.first()
                if row is None:
                    failures.append(
                        await _describe_failure(db, store_id, product_id, quantity)
                    )
                    continue
                changes.append(
                    StockChange(
                        product_id=product_id,
                        inventory_id=row.id,
                        quantity=quantity,
                        stock_after=row.stock,
                    )
                )

            if failures:
                raise InsufficientStock(failures)

            for change in changes:
                _log_movement(
                    db,
                    change.inventory_id,
                    movement_type=InventoryMovementType.SALE,
                    quantity=-change.quantity,
                    stock_after=change.stock_after,
                    reference_type=reference_type,
                    reference_id=reference_id,
                    performed_by=performed_by,
                )
    except InsufficientStock:
        logger.warning(
            "Rejected stock deduction for store %s",
            store_id,
            extra={"extra_fields": {"failures": failures}},
        )
        raise

    return changes


async def deduct_for_order(
    db: AsyncSession,
    *,
    store_id: uuid.UUID,
    items: Iterable[Any],
    reference_id: Optional[str] = None,
    performed_by: Optional[str] = None,
) -> list[StockChange]:
    """All-or-nothing stock deduction for a batch, committed on success."""
    try:
        await ensure_store(db, store_id)
        changes = await apply_deduction(
            db,
            store_id=store_id,
            items=items,
            reference_id=reference_id,
            performed_by=performed_by,
        )
        await db.commit()
    except DBAPIError as e:
        await db.rollback()
        logger.error("Stock deduction aborted for store %s: %s", store_id, e)
        raise TransactionAborted() from e
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Deducted stock for %d products in store %s", len(changes), store_id
    )
    return changes


async def check_availability(
    db: AsyncSession, *, store_id: uuid.UUID, items: Iterable[Any]
) -> dict[str, Any]:
    """Read-only dry run of a deduction."""
    lines = normalise_lines(items)
    await ensure_store(db, store_id)
    records = await get_records_for_products(
        db, store_id=store_id, product_ids=lines.keys()
    )

    report: list[dict[str, Any]] = []
    failures: list[dict[str, Any]] = []
    for product_id, requested in lines.items():
        record = records.get(product_id)
        available = record.stock if record else 0
        in_stock = record is not None and record.stock >= requested
        report.append(
            {
                "product_id": str(product_id),
                "requested": requested,
                "available": available,
                "in_stock": in_stock,
            }
        )
        if not in_stock:
            failures.append(
                {
                    "product_id": str(product_id),
                    "requested": requested,
                    "available": available,
                    "reason": REASON_NOT_FOUND if record is None else REASON_INSUFFICIENT,
                }
            )

    return {"available": not failures, "items": report, "failures": failures}


async def apply_restock(
    db: AsyncSession,
    *,
    store_id: uuid.UUID,
    items: Iterable[Any],
    reference_type: str = "order",
    reference_id: Optional[str] = None,
    performed_by: Optional[str] = None,
) -> list[StockChange]:
    """Credit stock back for each line; does not commit.

    Lines whose record no longer exists are skipped.
    """
    changes: list[StockChange] = []
    for product_id, quantity in normalise_lines(items).items():
        result = await db.execute(
            update(InventoryRecord)
            .where(
                InventoryRecord.store_id == store_id,
                InventoryRecord.product_id == product_id,
            )
            .values(stock=InventoryRecord.stock + quantity, updated_at=utc_now())
            .returning(InventoryRecord.id, InventoryRecord.stock)
            .execution_options(synchronize_session=False)
        )
        row = result.first()
        if row is None:
            logger.warning(
                "Cannot restore %d of product %s: no inventory in store %s",
                quantity,
                product_id,
                store_id,
            )
            continue
        _log_movement(
            db,
            row.id,
            movement_type=InventoryMovementType.RETURN,
            quantity=quantity,
            stock_after=row.stock,
            reference_type=reference_type,
            reference_id=reference_id,
            performed_by=performed_by,
        )
        changes.append(
            StockChange(
                product_id=product_id,
                inventory_id=row.id,
                quantity=quantity,
                stock_after=row.stock,
            )
        )
    return changes


async def restore_for_order(
    db: AsyncSession,
    *,
    store_id: uuid.UUID,
    items: Iterable[Any],
    reference_id: Optional[str] = None,
    performed_by: Optional[str] = None,
) -> list[StockChange]:
    try:
        changes = await apply_restock(
            db,
            store_id=store_id,
            items=items,
            reference_id=reference_id,
            performed_by=performed_by,
        )
        await db.commit()
    except DBAPIError as e:
        await db.rollback()
        raise TransactionAborted() from e
    except Exception:
        await db.rollback()
        raise

    logger.info("Restored stock for %d products in store %s", len(changes), store_id)
    return changes
