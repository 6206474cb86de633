"""Store management: the rows the geo index is built from."""

import uuid
from typing import Any, Optional

from libs.common.errors import NotFound, ValidationError
from libs.common.logging import get_logger
from services.grocery_service.models import Store
from services.grocery_service.services.geo_index import parse_point, parse_service_area
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def _clean_name(name: Any) -> str:
    if not isinstance(name, str) or len(name.strip()) < 2:
        raise ValidationError("Missing or invalid store name")
    return name.strip()


def _apply_service_area(store: Store, geometry: Any) -> None:
    polygon, rings = parse_service_area(geometry)
    min_lng, min_lat, max_lng, max_lat = polygon.bounds
    store.service_area = rings
    store.area_min_lng = min_lng
    store.area_min_lat = min_lat
    store.area_max_lng = max_lng
    store.area_max_lat = max_lat


async def create_store(
    db: AsyncSession,
    *,
    name: Any,
    location: Any,
    service_area: Any,
    is_active: bool = True,
) -> Store:
    store = Store(name=_clean_name(name), is_active=is_active)
    store.longitude, store.latitude = parse_point(location)
    _apply_service_area(store, service_area)

    db.add(store)
    await db.commit()
    await db.refresh(store)

    logger.info("Created store %s (%s)", store.id, store.name)
    return store


async def get_store(db: AsyncSession, store_id: uuid.UUID) -> Store:
    store = await db.get(Store, store_id)
    if not store:
        raise NotFound("Store not found")
    return store


async def list_stores(db: AsyncSession, *, active_only: bool = False) -> list[Store]:
    query = select(Store).order_by(Store.created_at, Store.id)
    if active_only:
        query = query.where(Store.is_active.is_(True))
    result = await db.execute(query)
    return list(result.scalars().all())


async def update_store(
    db: AsyncSession,
    store_id: uuid.UUID,
    *,
    name: Optional[Any] = None,
    location: Optional[Any] = None,
    service_area: Optional[Any] = None,
    is_active: Optional[bool] = None,
) -> Store:
    """Partial update; every supplied geometry is re-validated."""
    store = await get_store(db, store_id)

    if name is not None:
        store.name = _clean_name(name)
    if location is not None:
        store.longitude, store.latitude = parse_point(location)
    if service_area is not None:
        _apply_service_area(store, service_area)
    if is_active is not None:
        store.is_active = is_active

    await db.commit()
    await db.refresh(store)

    logger.info("Updated store %s (active=%s)", store.id, store.is_active)
    return store
