"""Serviceability resolution: which active store delivers to a coordinate."""

from dataclasses import dataclass
from typing import Any, Optional

from libs.common.config import get_settings
from libs.common.errors import NotServiceable
from libs.common.logging import get_logger
from services.grocery_service.models import Store
from services.grocery_service.services.geo_index import (
    GeoIndex,
    NearestStore,
    search_windows,
    validate_coordinates,
)
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class Serviceability:
    longitude: float
    latitude: float
    store: Optional[Store] = None

    @property
    def serviceable(self) -> bool:
        return self.store is not None


# ---------------------------------------------------------------------------
# Index loading (database prefilter, then exact geometry in memory)
# ---------------------------------------------------------------------------


async def load_covering_candidates(
    db: AsyncSession, lng: float, lat: float
) -> GeoIndex:
    """Index of active stores whose service-area bounding box holds the point."""
    query = select(Store).where(
        Store.is_active.is_(True),
        Store.area_min_lng <= lng,
        Store.area_max_lng >= lng,
        Store.area_min_lat <= lat,
        Store.area_max_lat >= lat,
    )
    result = await db.execute(query)
    return GeoIndex(result.scalars().all())


async def load_nearby_candidates(
    db: AsyncSession, lng: float, lat: float, max_distance_m: float
) -> GeoIndex:
    """Index of active stores located inside the search window of the radius."""
    windows = [
        and_(
            Store.longitude >= min_lng,
            Store.longitude <= max_lng,
            Store.latitude >= min_lat,
            Store.latitude <= max_lat,
        )
        for min_lng, min_lat, max_lng, max_lat in search_windows(
            lng, lat, max_distance_m
        )
    ]
    query = select(Store).where(Store.is_active.is_(True), or_(*windows))
    result = await db.execute(query)
    return GeoIndex(result.scalars().all())


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def find_covering_store(db: AsyncSession, coordinates: Any) -> Optional[Store]:
    """Active store whose service area contains ``coordinates`` ([lng, lat]).

    Raises ``ValidationError`` for malformed coordinates. When service areas
    overlap, the smallest area wins.
    """
    lng, lat = validate_coordinates(coordinates)
    index = await load_covering_candidates(db, lng, lat)
    return index.find_covering_store(lng, lat)


async def find_nearest_store(
    db: AsyncSession,
    coordinates: Any,
    max_distance_m: Optional[float] = None,
) -> Optional[NearestStore]:
    """Closest active store within ``max_distance_m`` metres (default from settings)."""
    lng, lat = validate_coordinates(coordinates)
    if max_distance_m is None:
        max_distance_m = settings.NEAREST_STORE_MAX_DISTANCE_M
    index = await load_nearby_candidates(db, lng, lat, max_distance_m)
    return index.find_nearest_store(lng, lat, max_distance_m)


async def check_serviceability(db: AsyncSession, coordinates: Any) -> Serviceability:
    lng, lat = validate_coordinates(coordinates)
    store = await find_covering_store(db, [lng, lat])
    return Serviceability(longitude=lng, latitude=lat, store=store)


async def ensure_serviceable(db: AsyncSession, coordinates: Any) -> Store:
    """Covering store for a write path; raises ``NotServiceable`` when none exists."""
    result = await check_serviceability(db, coordinates)
    if not result.serviceable:
        logger.info(
            "Location [%s, %s] is not serviceable", result.longitude, result.latitude
        )
        raise NotServiceable()
    return result.store
