"""Integration tests for cart endpoints."""

from decimal import Decimal

import pytest
from tests.factories import InventoryFactory, ProductFactory, StoreFactory


async def _store_with_product(db, price=Decimal("30.00"), stock=10):
    store = StoreFactory.create()
    product = ProductFactory.create(name="Farm Eggs")
    db.add_all([store, product])
    await db.flush()
    db.add(
        InventoryFactory.create(
            store_id=store.id, product_id=product.id, selling_price=price, stock=stock
        )
    )
    await db.commit()
    return store, product


@pytest.mark.asyncio
@pytest.mark.integration
async def test_empty_cart(client):
    response = await client.get("/cart")
    assert response.status_code == 200
    assert response.json()["data"] is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_add_update_and_read_cart(client, db_session):
    store, product = await _store_with_product(db_session)

    added = await client.post(
        "/cart/items",
        json={"store_id": str(store.id), "product_id": str(product.id), "quantity": 2},
    )
    assert added.status_code == 201, added.text
    data = added.json()["data"]
    assert data["store_id"] == str(store.id)
    assert data["items"][0]["name"] == "Farm Eggs"
    assert data["total_estimate"] == "60.00"

    updated = await client.patch(
        "/cart/items", json={"product_id": str(product.id), "quantity": 5}
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["item_count"] == 5

    fetched = await client.get("/cart")
    assert fetched.json()["data"]["items"][0]["line_total"] == "150.00"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cart_rejects_second_store(client, db_session):
    store_a, product_a = await _store_with_product(db_session)
    store_b, product_b = await _store_with_product(db_session)

    await client.post(
        "/cart/items",
        json={"store_id": str(store_a.id), "product_id": str(product_a.id)},
    )
    response = await client.post(
        "/cart/items",
        json={"store_id": str(store_b.id), "product_id": str(product_b.id)},
    )

    assert response.status_code == 409
    body = response.json()
    assert body["message"] == "Cannot add items from different stores. Clear your cart first."
    assert body["data"]["cart_store_id"] == str(store_a.id)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_remove_last_item_and_clear(client, db_session):
    store, product = await _store_with_product(db_session)
    await client.post(
        "/cart/items",
        json={"store_id": str(store.id), "product_id": str(product.id)},
    )

    response = await client.delete(f"/cart/items/{product.id}")
    assert response.status_code == 200
    assert response.json()["data"] is None

    response = await client.delete("/cart")
    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_zero_quantity_is_rejected(client, db_session):
    store, product = await _store_with_product(db_session)
    response = await client.post(
        "/cart/items",
        json={"store_id": str(store.id), "product_id": str(product.id), "quantity": 0},
    )
    assert response.status_code == 400
