"""Unit tests for the inventory ledger.

Covers upserts, manual adjustments, and the all-or-nothing deduction that
guards against overselling.
"""

import asyncio
import uuid
from decimal import Decimal

import pytest
from libs.common.errors import InsufficientStock, NotFound, ValidationError
from services.grocery_service.models import (
    InventoryMovement,
    InventoryMovementType,
    StockOperation,
)
from services.grocery_service.services import inventory_ledger
from sqlalchemy import select
from tests.factories import InventoryFactory, ProductFactory, StoreFactory


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _stocked_store(db, *stocks, price=Decimal("50.00")):
    """A store carrying one product per entry in ``stocks``."""
    store = StoreFactory.create()
    products = [ProductFactory.create() for _ in stocks]
    db.add(store)
    db.add_all(products)
    await db.flush()
    records = [
        InventoryFactory.create(
            store_id=store.id, product_id=product.id, stock=stock, selling_price=price
        )
        for product, stock in zip(products, stocks)
    ]
    db.add_all(records)
    await db.commit()
    return store, products, records


async def _stock_of(db, record_id) -> int:
    record = await inventory_ledger.get_inventory(db, record_id)
    return record.stock


async def _movements(db, record_id):
    result = await db.execute(
        select(InventoryMovement)
        .where(InventoryMovement.inventory_id == record_id)
        .order_by(InventoryMovement.created_at)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Line normalisation
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_normalise_lines_merges_duplicates_and_sorts():
    a, b = sorted([uuid.uuid4(), uuid.uuid4()], key=str)
    lines = inventory_ledger.normalise_lines(
        [
            {"product_id": str(b), "quantity": 1},
            {"product_id": a, "quantity": 2},
            {"product_id": b, "quantity": 3},
        ]
    )
    assert list(lines.items()) == [(a, 2), (b, 4)]


@pytest.mark.unit
@pytest.mark.parametrize(
    "items",
    [
        [],
        [{"product_id": "not-a-uuid", "quantity": 1}],
        [{"product_id": str(uuid.uuid4()), "quantity": 0}],
        [{"product_id": str(uuid.uuid4()), "quantity": 1.5}],
        [{"product_id": str(uuid.uuid4()), "quantity": True}],
    ],
)
def test_normalise_lines_rejects_bad_input(items):
    with pytest.raises(ValidationError):
        inventory_ledger.normalise_lines(items)


# ---------------------------------------------------------------------------
# Upsert / adjust
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_upsert_is_idempotent_and_logs_movements(db_session):
    store = StoreFactory.create()
    product = ProductFactory.create()
    db_session.add_all([store, product])
    await db_session.commit()

    first = await inventory_ledger.upsert_inventory(
        db_session,
        store_id=store.id,
        product_id=product.id,
        stock=20,
        selling_price="80.00",
        discount_percentage="10",
        performed_by="admin",
    )
    second = await inventory_ledger.upsert_inventory(
        db_session,
        store_id=store.id,
        product_id=product.id,
        stock=15,
        selling_price="90.00",
        performed_by="admin",
    )

    assert second.id == first.id
    assert second.stock == 15
    assert second.selling_price == Decimal("90.00")
    assert second.final_price == Decimal("90.00")

    movements = await _movements(db_session, first.id)
    assert [(m.movement_type, m.quantity) for m in movements] == [
        (InventoryMovementType.RESTOCK, 20),
        (InventoryMovementType.ADJUSTMENT, -5),
    ]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_bulk_upsert_rejects_duplicates_and_unknown_products(db_session):
    store, (product,), _ = await _stocked_store(db_session, 5)
    item = {"product_id": product.id, "stock": 1, "selling_price": "10"}

    with pytest.raises(ValidationError, match="Duplicate"):
        await inventory_ledger.bulk_upsert(
            db_session, store_id=store.id, items=[item, item]
        )
    with pytest.raises(NotFound):
        await inventory_ledger.bulk_upsert(
            db_session,
            store_id=store.id,
            items=[{"product_id": uuid.uuid4(), "stock": 1, "selling_price": "10"}],
        )


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize(
    "stock, price, discount",
    [(-1, "10", "0"), (1, "0", "0"), (1, "10", "101"), (1, "abc", "0")],
)
async def test_upsert_validates_values(db_session, stock, price, discount):
    store, (product,), _ = await _stocked_store(db_session, 5)
    with pytest.raises(ValidationError):
        await inventory_ledger.upsert_inventory(
            db_session,
            store_id=store.id,
            product_id=product.id,
            stock=stock,
            selling_price=price,
            discount_percentage=discount,
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_adjust_stock_operations(db_session):
    _, _, (record,) = await _stocked_store(db_session, 10)

    updated = await inventory_ledger.adjust_stock(
        db_session, record.id, quantity=5, operation=StockOperation.INCREMENT
    )
    assert updated.stock == 15

    updated = await inventory_ledger.adjust_stock(
        db_session, record.id, quantity=100, operation="decrement"
    )
    assert updated.stock == 0

    updated = await inventory_ledger.adjust_stock(
        db_session, record.id, quantity=7, operation=StockOperation.SET
    )
    assert updated.stock == 7


@pytest.mark.asyncio
@pytest.mark.unit
async def test_low_stock_and_menu(db_session):
    store, products, records = await _stocked_store(db_session, 0, 3, 40)

    low = await inventory_ledger.get_low_stock(db_session, store.id, threshold=5)
    assert [r.id for r in low] == [records[0].id, records[1].id]

    menu = await inventory_ledger.get_store_menu(db_session, store.id)
    assert {r.id for r in menu} == {records[1].id, records[2].id}


# ---------------------------------------------------------------------------
# Deduction
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deduct_for_order_decrements_and_logs_sale(db_session):
    store, (p1, p2), (r1, r2) = await _stocked_store(db_session, 10, 4)

    changes = await inventory_ledger.deduct_for_order(
        db_session,
        store_id=store.id,
        items=[
            {"product_id": p1.id, "quantity": 3},
            {"product_id": p2.id, "quantity": 4},
        ],
        reference_id="ORD-TEST",
    )

    assert {c.product_id: c.stock_after for c in changes} == {p1.id: 7, p2.id: 0}
    assert await _stock_of(db_session, r1.id) == 7
    assert await _stock_of(db_session, r2.id) == 0

    (sale,) = await _movements(db_session, r1.id)
    assert sale.movement_type == InventoryMovementType.SALE
    assert sale.quantity == -3
    assert sale.reference_id == "ORD-TEST"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deduction_is_all_or_nothing(db_session):
    store, (p1, p2), (r1, r2) = await _stocked_store(db_session, 10, 2)
    missing = uuid.uuid4()

    with pytest.raises(InsufficientStock) as exc_info:
        await inventory_ledger.deduct_for_order(
            db_session,
            store_id=store.id,
            items=[
                {"product_id": p1.id, "quantity": 5},
                {"product_id": p2.id, "quantity": 3},
                {"product_id": missing, "quantity": 1},
            ],
        )

    failures = {f["product_id"]: f for f in exc_info.value.failures}
    assert set(failures) == {str(p2.id), str(missing)}
    assert failures[str(p2.id)] == {
        "product_id": str(p2.id),
        "requested": 3,
        "available": 2,
        "reason": "insufficient_stock",
    }
    assert failures[str(missing)]["reason"] == "not_found"
    assert failures[str(missing)]["available"] == 0

    # Nothing was deducted, not even the satisfiable line
    assert await _stock_of(db_session, r1.id) == 10
    assert await _stock_of(db_session, r2.id) == 2
    assert await _movements(db_session, r1.id) == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deduction_for_unknown_store_is_not_found(db_session):
    store, (product,), (record,) = await _stocked_store(db_session, 5)

    with pytest.raises(NotFound):
        await inventory_ledger.deduct_for_order(
            db_session,
            store_id=uuid.uuid4(),
            items=[{"product_id": product.id, "quantity": 1}],
        )

    assert await _stock_of(db_session, record.id) == 5


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deduction_merges_repeated_lines(db_session):
    store, (product,), (record,) = await _stocked_store(db_session, 5)

    with pytest.raises(InsufficientStock):
        await inventory_ledger.deduct_for_order(
            db_session,
            store_id=store.id,
            items=[
                {"product_id": product.id, "quantity": 3},
                {"product_id": product.id, "quantity": 3},
            ],
        )
    assert await _stock_of(db_session, record.id) == 5


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deduction_to_exactly_zero(db_session):
    store, (product,), (record,) = await _stocked_store(db_session, 3)
    await inventory_ledger.deduct_for_order(
        db_session, store_id=store.id, items=[{"product_id": product.id, "quantity": 3}]
    )
    assert await _stock_of(db_session, record.id) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_deductions_never_oversell(db_session, session_factory):
    store, (product,), (record,) = await _stocked_store(db_session, 12)
    # Release the fixture session's connection before the race
    await db_session.close()

    async def attempt() -> bool:
        async with session_factory() as session:
            try:
                await inventory_ledger.deduct_for_order(
                    session,
                    store_id=store.id,
                    items=[{"product_id": product.id, "quantity": 3}],
                )
            except InsufficientStock:
                return False
            return True

    results = await asyncio.gather(*(attempt() for _ in range(8)))

    assert results.count(True) == 4
    assert await _stock_of(db_session, record.id) == 0


# ---------------------------------------------------------------------------
# Availability / restock
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_check_availability_is_read_only(db_session):
    store, (p1, p2), (r1, _) = await _stocked_store(db_session, 4, 1)

    report = await inventory_ledger.check_availability(
        db_session,
        store_id=store.id,
        items=[
            {"product_id": p1.id, "quantity": 4},
            {"product_id": p2.id, "quantity": 2},
        ],
    )

    assert report["available"] is False
    assert [f["product_id"] for f in report["failures"]] == [str(p2.id)]
    assert await _stock_of(db_session, r1.id) == 4


@pytest.mark.asyncio
@pytest.mark.unit
async def test_restore_for_order_credits_stock(db_session):
    store, (product,), (record,) = await _stocked_store(db_session, 2)

    changes = await inventory_ledger.restore_for_order(
        db_session,
        store_id=store.id,
        items=[
            {"product_id": product.id, "quantity": 5},
            {"product_id": uuid.uuid4(), "quantity": 1},
        ],
        reference_id="ORD-RET",
    )

    assert len(changes) == 1
    assert await _stock_of(db_session, record.id) == 7
    (movement,) = await _movements(db_session, record.id)
    assert movement.movement_type == InventoryMovementType.RETURN
