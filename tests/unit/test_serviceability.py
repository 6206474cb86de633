"""Unit tests for store registry and serviceability resolution against the DB."""

import uuid

import pytest
from libs.common.errors import NotFound, NotServiceable, ValidationError
from services.grocery_service.services import serviceability, store_registry
from tests.factories import StoreFactory, point, square_polygon


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _add_stores(db, *stores):
    db.add_all(stores)
    await db.commit()
    return stores


# ---------------------------------------------------------------------------
# store_registry
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_store_stores_bounds(db_session):
    store = await store_registry.create_store(
        db_session,
        name="  Koramangala  ",
        location=point(77.62, 12.93),
        service_area=square_polygon(77.62, 12.93, 0.03),
    )

    assert store.name == "Koramangala"
    assert store.location == point(77.62, 12.93)
    assert store.area_min_lng == pytest.approx(77.59)
    assert store.area_max_lat == pytest.approx(12.96)
    assert store.service_area_geojson["type"] == "Polygon"
    assert store.is_active is True


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_store_rejects_short_name(db_session):
    with pytest.raises(ValidationError):
        await store_registry.create_store(
            db_session,
            name=" x ",
            location=point(77.62, 12.93),
            service_area=square_polygon(77.62, 12.93, 0.03),
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_store_rejects_invalid_polygon(db_session):
    bowtie = {
        "type": "Polygon",
        "coordinates": [[[0, 0], [1, 1], [1, 0], [0, 1], [0, 0]]],
    }
    with pytest.raises(ValidationError):
        await store_registry.create_store(
            db_session, name="Bowtie", location=point(0.5, 0.5), service_area=bowtie
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_store_not_found(db_session):
    with pytest.raises(NotFound):
        await store_registry.get_store(db_session, uuid.uuid4())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_store_redraws_area_and_toggles(db_session):
    (store,) = await _add_stores(db_session, StoreFactory.create())

    updated = await store_registry.update_store(
        db_session,
        store.id,
        service_area=square_polygon(10.0, 10.0, 0.5),
        is_active=False,
    )

    assert updated.is_active is False
    assert updated.area_min_lng == pytest.approx(9.5)
    assert updated.area_max_lng == pytest.approx(10.5)

    active = await store_registry.list_stores(db_session, active_only=True)
    assert active == []


# ---------------------------------------------------------------------------
# Serviceability
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_find_covering_store(db_session):
    (store,) = await _add_stores(db_session, StoreFactory.create(center=(77.6, 12.9)))

    found = await serviceability.find_covering_store(db_session, [77.61, 12.91])
    assert found.id == store.id

    assert await serviceability.find_covering_store(db_session, [80.0, 12.9]) is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_overlapping_areas_resolve_to_smallest(db_session):
    big, small = await _add_stores(
        db_session,
        StoreFactory.create(center=(77.6, 12.9), half_side=0.2),
        StoreFactory.create(center=(77.6, 12.9), half_side=0.02),
    )
    found = await serviceability.find_covering_store(db_session, [77.6, 12.9])
    assert found.id == small.id


@pytest.mark.asyncio
@pytest.mark.unit
async def test_inactive_store_is_not_serviceable(db_session):
    await _add_stores(db_session, StoreFactory.create(is_active=False))

    result = await serviceability.check_serviceability(db_session, [77.6, 12.9])
    assert result.serviceable is False
    with pytest.raises(NotServiceable):
        await serviceability.ensure_serviceable(db_session, [77.6, 12.9])


@pytest.mark.asyncio
@pytest.mark.unit
async def test_check_serviceability_rejects_bad_coordinates(db_session):
    with pytest.raises(ValidationError):
        await serviceability.check_serviceability(db_session, [200, 0])


@pytest.mark.asyncio
@pytest.mark.unit
async def test_find_nearest_store_respects_radius(db_session):
    near, far = await _add_stores(
        db_session,
        StoreFactory.create(center=(77.60, 12.90)),
        StoreFactory.create(center=(77.65, 12.90)),
    )

    result = await serviceability.find_nearest_store(db_session, [77.61, 12.90])
    assert result.store.id == near.id
    assert 0 < result.distance_m < 5000

    assert (
        await serviceability.find_nearest_store(db_session, [77.61, 12.90], 100)
        is None
    )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_find_nearest_store_ignores_inactive(db_session):
    await _add_stores(
        db_session, StoreFactory.create(center=(77.60, 12.90), is_active=False)
    )
    assert await serviceability.find_nearest_store(db_session, [77.60, 12.90]) is None
