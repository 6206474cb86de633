"""Seed script for grocery test data.

Creates two dark stores with overlapping service areas, a handful of products,
and inventory for both stores so serviceability, cart and checkout can be
tried end-to-end.

Usage:
    python -m services.grocery_service.seed_grocery_data
"""

import asyncio
from decimal import Decimal

from libs.common.logging import configure_logging, get_logger
from libs.db.config import AsyncSessionLocal
from services.grocery_service.models import Product, Store
from services.grocery_service.services import inventory_ledger, store_registry
from sqlalchemy import func, select

logger = get_logger(__name__)


def _square(lng: float, lat: float, half_side: float) -> dict:
    ring = [
        [lng - half_side, lat - half_side],
        [lng + half_side, lat - half_side],
        [lng + half_side, lat + half_side],
        [lng - half_side, lat + half_side],
        [lng - half_side, lat - half_side],
    ]
    return {"type": "Polygon", "coordinates": [ring]}


STORES = [
    {
        "name": "Koramangala Dark Store",
        "location": {"type": "Point", "coordinates": [77.6245, 12.9352]},
        "service_area": _square(77.6245, 12.9352, 0.03),
    },
    {
        "name": "Indiranagar Dark Store",
        "location": {"type": "Point", "coordinates": [77.6408, 12.9784]},
        "service_area": _square(77.6408, 12.9784, 0.05),
    },
]

PRODUCTS = [
    # (name, brand, uom, price, discount)
    ("Toned Milk", "Nandini", "500 ml", Decimal("27.00"), Decimal("0")),
    ("Brown Bread", "Modern", "400 g", Decimal("55.00"), Decimal("5")),
    ("Farm Eggs", "Eggoz", "6 pcs", Decimal("72.00"), Decimal("10")),
    ("Basmati Rice", "India Gate", "1 kg", Decimal("189.00"), Decimal("12.5")),
    ("Bananas", None, "1 dozen", Decimal("60.00"), Decimal("0")),
    ("Tomatoes", None, "1 kg", Decimal("40.00"), Decimal("0")),
]


async def seed_grocery_data():
    async with AsyncSessionLocal() as db:
        print("Seeding grocery data...")

        existing = await db.execute(select(func.count()).select_from(Store))
        count = existing.scalar()
        if count and count > 0:
            print(f"Grocery data already exists ({count} stores). Skipping seed.")
            return

        # =====================================================================
        # 1. STORES
        # =====================================================================
        stores = []
        for spec in STORES:
            store = await store_registry.create_store(db, **spec)
            stores.append(store)
            print(f"  Store: {store.name} ({store.id})")

        # =====================================================================
        # 2. PRODUCTS
        # =====================================================================
        products = []
        for name, brand, uom, _, _ in PRODUCTS:
            product = Product(name=name, brand=brand, uom=uom)
            db.add(product)
            products.append(product)
        await db.commit()
        print(f"  {len(products)} products")

        # =====================================================================
        # 3. INVENTORY
        # =====================================================================
        for offset, store in enumerate(stores):
            items = [
                {
                    "product_id": product.id,
                    "stock": 5 + 20 * ((index + offset) % 3),
                    "selling_price": price,
                    "discount_percentage": discount,
                }
                for index, (product, (_, _, _, price, discount)) in enumerate(
                    zip(products, PRODUCTS)
                )
            ]
            await inventory_ledger.bulk_upsert(
                db, store_id=store.id, items=items, performed_by="seed"
            )
            print(f"  Inventory for {store.name}: {len(items)} lines")

        print("Grocery data seeded.")


if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed_grocery_data())
