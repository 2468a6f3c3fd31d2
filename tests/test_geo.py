"""Geo helper tests."""

import math

import pytest

from nest.services.geo_service import EARTH_RADIUS_M, bounding_box, haversine_m


def _destination(lat, lon, bearing_deg, distance_m):
    angular = distance_m / EARTH_RADIUS_M
    bearing = math.radians(bearing_deg)
    lat1, lon1 = math.radians(lat), math.radians(lon)
    lat2 = math.asin(math.sin(lat1) * math.cos(angular) + math.cos(lat1) * math.sin(angular) * math.cos(bearing))
    lon2 = lon1 + math.atan2(
        math.sin(bearing) * math.sin(angular) * math.cos(lat1),
        math.cos(angular) - math.sin(lat1) * math.sin(lat2),
    )
    return math.degrees(lat2), math.degrees(lon2)


def test_haversine_known_distance():
    # San Francisco to Los Angeles is roughly 559 km.
    d = haversine_m(37.7749, -122.4194, 34.0522, -118.2437)
    assert 555_000 < d < 563_000
    assert haversine_m(10.0, 20.0, 10.0, 20.0) == 0


@pytest.mark.parametrize("lat", [0.0, 37.8, -60.0, 80.0])
def test_bounding_box_contains_the_whole_circle(lat):
    radius = 5000
    min_lat, max_lat, min_lon, max_lon = bounding_box(lat, -122.4, radius)
    for bearing in range(0, 360, 10):
        p_lat, p_lon = _destination(lat, -122.4, bearing, radius * 0.999)
        assert haversine_m(lat, -122.4, p_lat, p_lon) <= radius
        assert min_lat <= p_lat <= max_lat
        assert min_lon <= p_lon <= max_lon


def test_bounding_box_spans_all_longitudes_past_a_pole():
    min_lat, max_lat, min_lon, max_lon = bounding_box(89.99, 10.0, 5000)
    assert max_lat == 90.0
    assert (min_lon, max_lon) == (-180.0, 180.0)
