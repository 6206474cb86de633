"""Unit tests for the in-memory geo index and geometry validation.

No database: stores are built with the factory and indexed directly.
"""

from datetime import timedelta

import pytest
from libs.common.errors import ValidationError
from services.grocery_service.services.geo_index import (
    GeoIndex,
    haversine_m,
    parse_point,
    parse_service_area,
    search_windows,
    validate_coordinates,
)
from tests.factories import StoreFactory, square_polygon


# ---------------------------------------------------------------------------
# Coordinates
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_validate_coordinates_accepts_bounds():
    assert validate_coordinates([180, -90]) == (180.0, -90.0)
    assert validate_coordinates((-180.0, 90.0)) == (-180.0, 90.0)


@pytest.mark.unit
@pytest.mark.parametrize(
    "value",
    [
        None,
        [],
        [77.6],
        [77.6, 12.9, 0],
        ["77.6", 12.9],
        [True, 12.9],
        [float("nan"), 12.9],
        [77.6, float("inf")],
        {"lng": 77.6, "lat": 12.9},
    ],
)
def test_validate_coordinates_rejects_malformed(value):
    with pytest.raises(ValidationError):
        validate_coordinates(value)


@pytest.mark.unit
@pytest.mark.parametrize("value", [[180.0001, 0], [-181, 0], [0, 90.5], [0, -91]])
def test_validate_coordinates_rejects_out_of_range(value):
    with pytest.raises(ValidationError, match="range"):
        validate_coordinates(value)


@pytest.mark.unit
def test_parse_point_requires_point_type():
    assert parse_point({"type": "Point", "coordinates": [77.6, 12.9]}) == (77.6, 12.9)
    with pytest.raises(ValidationError):
        parse_point({"type": "LineString", "coordinates": [[0, 0], [1, 1]]})


# ---------------------------------------------------------------------------
# Service area polygons
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_parse_service_area_returns_polygon_and_rings():
    polygon, rings = parse_service_area(square_polygon(77.6, 12.9, 0.05))
    assert polygon.area == pytest.approx(0.01)
    assert rings[0][0] == rings[0][-1]
    assert len(rings) == 1


@pytest.mark.unit
def test_parse_service_area_rejects_open_ring():
    ring = [[0, 0], [1, 0], [1, 1], [0, 1]]
    with pytest.raises(ValidationError, match="not closed"):
        parse_service_area({"type": "Polygon", "coordinates": [ring]})


@pytest.mark.unit
def test_parse_service_area_rejects_short_ring():
    ring = [[0, 0], [1, 0], [0, 0]]
    with pytest.raises(ValidationError, match="at least 4"):
        parse_service_area({"type": "Polygon", "coordinates": [ring]})


@pytest.mark.unit
def test_parse_service_area_rejects_self_intersection():
    bowtie = [[0, 0], [1, 1], [1, 0], [0, 1], [0, 0]]
    with pytest.raises(ValidationError, match="invalid"):
        parse_service_area({"type": "Polygon", "coordinates": [bowtie]})


@pytest.mark.unit
def test_parse_service_area_rejects_wrong_type_and_bad_positions():
    with pytest.raises(ValidationError):
        parse_service_area({"type": "Point", "coordinates": [0, 0]})
    with pytest.raises(ValidationError):
        parse_service_area(
            {"type": "Polygon", "coordinates": [[[0, 0], [200, 0], [1, 1], [0, 0]]]}
        )


# ---------------------------------------------------------------------------
# Distances
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_haversine_one_degree_of_latitude():
    assert haversine_m(0, 0, 0, 1) == pytest.approx(111_195, rel=1e-3)
    assert haversine_m(77.6, 12.9, 77.6, 12.9) == 0


@pytest.mark.unit
def test_search_windows_split_at_antimeridian():
    windows = search_windows(179.99, 0, 5000)
    assert len(windows) == 2
    assert any(w[2] == 180.0 for w in windows)
    assert any(w[0] == -180.0 for w in windows)


@pytest.mark.unit
def test_search_windows_cover_all_longitudes_near_pole():
    [(west, south, east, north)] = search_windows(10, 89.99, 5000)
    assert (west, east, north) == (-180.0, 180.0, 90.0)
    assert south < 89.99


# ---------------------------------------------------------------------------
# GeoIndex
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_covering_store_ignores_inactive_and_outside():
    inside = StoreFactory.create(center=(77.6, 12.9), half_side=0.05)
    inactive = StoreFactory.create(center=(77.6, 12.9), half_side=0.01, is_active=False)
    index = GeoIndex([inside, inactive])

    assert len(index) == 1
    assert index.find_covering_store(77.61, 12.91) is inside
    assert index.find_covering_store(78.5, 12.9) is None


@pytest.mark.unit
def test_point_on_boundary_is_covered():
    store = StoreFactory.create(center=(77.6, 12.9), half_side=0.05)
    index = GeoIndex([store])
    assert index.find_covering_store(77.6 + 0.05, 12.9) is store


@pytest.mark.unit
def test_overlap_prefers_smallest_area():
    big = StoreFactory.create(center=(77.6, 12.9), half_side=0.1)
    small = StoreFactory.create(center=(77.6, 12.9), half_side=0.02)
    index = GeoIndex([big, small])

    assert index.covering_stores(77.6, 12.9) == [small, big]
    assert index.find_covering_store(77.6, 12.9) is small
    # Only the big area reaches this point
    assert index.find_covering_store(77.65, 12.95) is big


@pytest.mark.unit
def test_overlap_with_equal_area_prefers_oldest():
    newer = StoreFactory.create(center=(77.6, 12.9), half_side=0.05)
    older = StoreFactory.create(
        center=(77.6, 12.9),
        half_side=0.05,
        created_at=newer.created_at - timedelta(days=1),
    )
    index = GeoIndex([newer, older])
    assert index.find_covering_store(77.6, 12.9) is older


@pytest.mark.unit
def test_empty_index_finds_nothing():
    index = GeoIndex([])
    assert index.find_covering_store(0, 0) is None
    assert index.find_nearest_store(0, 0, 5000) is None


@pytest.mark.unit
def test_nearest_store_within_radius():
    near = StoreFactory.create(center=(77.60, 12.90))
    far = StoreFactory.create(center=(77.70, 12.90))
    index = GeoIndex([far, near])

    result = index.find_nearest_store(77.601, 12.90, 5000)
    assert result.store is near
    assert result.distance_m == pytest.approx(haversine_m(77.601, 12.9, 77.6, 12.9))

    assert index.find_nearest_store(77.65, 13.5, 5000) is None


@pytest.mark.unit
def test_nearest_store_excludes_exactly_past_radius():
    store = StoreFactory.create(center=(0.0, 0.0))
    index = GeoIndex([store])
    distance = haversine_m(0.0, 0.01, 0.0, 0.0)

    assert index.find_nearest_store(0.0, 0.01, distance) is not None
    assert index.find_nearest_store(0.0, 0.01, distance - 1) is None


@pytest.mark.unit
def test_nearest_store_across_antimeridian():
    east = StoreFactory.create(center=(179.999, 0.0), half_side=0.001)
    index = GeoIndex([east])
    result = index.find_nearest_store(-179.999, 0.0, 5000)
    assert result is not None
    assert result.distance_m < 500


@pytest.mark.unit
def test_nearest_store_ties_break_on_id():
    a = StoreFactory.create(center=(77.6, 12.9))
    b = StoreFactory.create(center=(77.6, 12.9))
    index = GeoIndex([a, b])
    expected = min((a, b), key=lambda s: str(s.id))
    assert index.find_nearest_store(77.6, 12.9, 1000).store is expected
