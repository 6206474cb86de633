"""In-memory geo index over active stores.

Coordinates are always ``[longitude, latitude]``. Service areas are shapely
polygons held in an STR-tree; store locations sit in a second STR-tree used
as a bounding-window prefilter before exact great-circle distances.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from numbers import Real
from typing import Any, Iterable, Optional, Sequence

from libs.common.errors import ValidationError
from services.grocery_service.models import Store
from shapely import STRtree
from shapely.geometry import Point, Polygon, box
from shapely.validation import explain_validity

EARTH_RADIUS_M = 6_371_008.8
# Shortest degree of latitude (at the equator); keeps search windows a superset
METERS_PER_DEGREE_LAT = 110_574.0
METERS_PER_DEGREE_LNG_EQUATOR = 111_320.0


# ============================================================================
# COORDINATE + POLYGON VALIDATION
# ============================================================================


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, Real)
        and not isinstance(value, bool)
        and math.isfinite(float(value))
    )


def validate_coordinates(value: Any) -> tuple[float, float]:
    """Return ``(longitude, latitude)`` or raise ``ValidationError``."""
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValidationError("Coordinates must be an array of [longitude, latitude]")

    lng, lat = value
    if not _is_number(lng) or not _is_number(lat):
        raise ValidationError("Coordinates must be numeric [longitude, latitude]")

    lng, lat = float(lng), float(lat)
    if not -180 <= lng <= 180 or not -90 <= lat <= 90:
        raise ValidationError(
            "Invalid coordinates range: longitude must be within [-180, 180] "
            "and latitude within [-90, 90]"
        )
    return lng, lat


def parse_point(geometry: Any) -> tuple[float, float]:
    """Validate a GeoJSON ``Point`` and return its coordinates."""
    if not isinstance(geometry, dict) or geometry.get("type") != "Point":
        raise ValidationError("Location must be a GeoJSON Point")
    return validate_coordinates(geometry.get("coordinates"))


def parse_service_area(geometry: Any) -> tuple[Polygon, list[list[list[float]]]]:
    """Validate a GeoJSON ``Polygon``.

    Returns the shapely polygon and the normalised rings for storage. Rings
    must be closed, have at least four positions, and the polygon must not
    self-intersect.
    """
    if not isinstance(geometry, dict) or geometry.get("type") != "Polygon":
        raise ValidationError("Service area must be a GeoJSON Polygon")

    rings = geometry.get("coordinates")
    if not isinstance(rings, list) or not rings:
        raise ValidationError("Service area boundary is required")

    normalised: list[list[list[float]]] = []
    for index, ring in enumerate(rings):
        if not isinstance(ring, list) or len(ring) < 4:
            raise ValidationError(
                f"Ring {index} of the service area needs at least 4 positions"
            )
        positions = [list(validate_coordinates(position)) for position in ring]
        if positions[0] != positions[-1]:
            raise ValidationError(f"Ring {index} of the service area is not closed")
        normalised.append(positions)

    polygon = Polygon(normalised[0], normalised[1:])
    if not polygon.is_valid:
        raise ValidationError(
            f"Service area polygon is invalid: {explain_validity(polygon)}"
        )
    if polygon.is_empty or polygon.area == 0:
        raise ValidationError("Service area polygon has no area")
    return polygon, normalised


# ============================================================================
# DISTANCE HELPERS
# ============================================================================


def haversine_m(lng1: float, lat1: float, lng2: float, lat2: float) -> float:
    """Great-circle distance in metres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lng2 - lng1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


def search_windows(
    lng: float, lat: float, max_distance_m: float
) -> list[tuple[float, float, float, float]]:
    """Bounding boxes (min_lng, min_lat, max_lng, max_lat) covering a radius.

    Returns two boxes when the radius crosses the antimeridian.
    """
    d_lat = max_distance_m / METERS_PER_DEGREE_LAT
    min_lat, max_lat = max(-90.0, lat - d_lat), min(90.0, lat + d_lat)

    # Widest longitude span is at the latitude closest to a pole
    widest = max(abs(min_lat), abs(max_lat))
    cos_lat = math.cos(math.radians(widest))
    if cos_lat < 1e-9 or max_lat >= 90.0 or min_lat <= -90.0:
        return [(-180.0, min_lat, 180.0, max_lat)]

    d_lng = max_distance_m / (METERS_PER_DEGREE_LNG_EQUATOR * cos_lat)
    if d_lng >= 180.0:
        return [(-180.0, min_lat, 180.0, max_lat)]

    west, east = lng - d_lng, lng + d_lng
    if west < -180.0:
        return [(-180.0, min_lat, east, max_lat), (west + 360.0, min_lat, 180.0, max_lat)]
    if east > 180.0:
        return [(west, min_lat, 180.0, max_lat), (-180.0, min_lat, east - 360.0, max_lat)]
    return [(west, min_lat, east, max_lat)]


# ============================================================================
# INDEX
# ============================================================================


@dataclass(frozen=True)
class NearestStore:
    store: Store
    distance_m: float


class GeoIndex:
    """Read-only spatial index over a snapshot of active stores.

    Built per request from rows the caller already loaded; inactive stores
    passed in are ignored.
    """

    def __init__(self, stores: Iterable[Store]):
        self._stores: list[Store] = [store for store in stores if store.is_active]
        self._areas: list[Polygon] = [
            Polygon(store.service_area[0], store.service_area[1:])
            for store in self._stores
        ]
        self._locations: list[Point] = [
            Point(store.longitude, store.latitude) for store in self._stores
        ]
        self._area_tree: Optional[STRtree] = STRtree(self._areas) if self._areas else None
        self._location_tree: Optional[STRtree] = (
            STRtree(self._locations) if self._locations else None
        )

    def __len__(self) -> int:
        return len(self._stores)

    @property
    def stores(self) -> Sequence[Store]:
        return tuple(self._stores)

    def covering_stores(self, lng: float, lat: float) -> list[Store]:
        """All indexed stores whose service area contains (or touches) the point.

        Ordered by preference: smallest service area first, then oldest
        store, then id.
        """
        if self._area_tree is None:
            return []
        hits = self._area_tree.query(Point(lng, lat), predicate="intersects")
        ranked = sorted(int(i) for i in hits)
        ranked.sort(key=self._overlap_rank)
        return [self._stores[i] for i in ranked]

    def find_covering_store(self, lng: float, lat: float) -> Optional[Store]:
        covering = self.covering_stores(lng, lat)
        return covering[0] if covering else None

    def find_nearest_store(
        self, lng: float, lat: float, max_distance_m: float
    ) -> Optional[NearestStore]:
        """Closest store location within ``max_distance_m``; ties go to the lower id."""
        if self._location_tree is None or max_distance_m < 0:
            return None

        candidates: set[int] = set()
        for window in search_windows(lng, lat, max_distance_m):
            candidates.update(int(i) for i in self._location_tree.query(box(*window)))

        best: Optional[tuple[float, str, int]] = None
        for i in candidates:
            store = self._stores[i]
            distance = haversine_m(lng, lat, store.longitude, store.latitude)
            if distance > max_distance_m:
                continue
            key = (distance, str(store.id), i)
            if best is None or key < best:
                best = key

        if best is None:
            return None
        return NearestStore(store=self._stores[best[2]], distance_m=best[0])

    def _overlap_rank(self, i: int) -> tuple:
        store = self._stores[i]
        return (self._areas[i].area, _as_utc(store.created_at), str(store.id))


def _as_utc(value: Optional[datetime]) -> datetime:
    # SQLite hands back naive timestamps; rows are always written in UTC
    if value is None:
        return datetime.max.replace(tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
