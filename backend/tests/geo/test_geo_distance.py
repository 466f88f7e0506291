"""
tests/geo/test_geo_distance.py

Great-circle distance and coordinate validation.
"""

import math

import pytest

from fixlink.core.exceptions import ValidationError
from fixlink.geo.distance import EARTH_RADIUS_KM, GeoPoint, haversine_km

LAGOS_ISLAND = GeoPoint(6.4541, 3.3947)
IKEJA = GeoPoint(6.6018, 3.3515)


def test_same_point_is_zero() -> None:
    assert haversine_km(LAGOS_ISLAND, LAGOS_ISLAND) == pytest.approx(0.0, abs=1e-9)


def test_one_degree_of_latitude() -> None:
    expected = EARTH_RADIUS_KM * math.pi / 180
    assert haversine_km(GeoPoint(0.0, 0.0), GeoPoint(1.0, 0.0)) == pytest.approx(expected, rel=1e-9)


def test_distance_is_symmetric() -> None:
    assert haversine_km(LAGOS_ISLAND, IKEJA) == pytest.approx(haversine_km(IKEJA, LAGOS_ISLAND))


def test_city_distances() -> None:
    assert 16.0 < haversine_km(LAGOS_ISLAND, IKEJA) < 18.5
    london, paris = GeoPoint(51.5074, -0.1278), GeoPoint(48.8566, 2.3522)
    assert haversine_km(london, paris) == pytest.approx(343.5, abs=2.0)


def test_antipodes_are_half_circumference() -> None:
    distance = haversine_km(GeoPoint(0.0, 0.0), GeoPoint(0.0, 180.0))
    assert distance == pytest.approx(math.pi * EARTH_RADIUS_KM, rel=1e-9)


@pytest.mark.parametrize("latitude,longitude", [(90.5, 0.0), (-91.0, 0.0), (0.0, 180.1), (0.0, -181.0)])
def test_out_of_range_coordinates_rejected(latitude: float, longitude: float) -> None:
    with pytest.raises(ValidationError):
        GeoPoint(latitude, longitude)


def test_from_optional_requires_both_coordinates() -> None:
    assert GeoPoint.from_optional(None, 3.3) is None
    assert GeoPoint.from_optional(6.5, None) is None
    assert GeoPoint.from_optional(6.5, 3.3) == GeoPoint(6.5, 3.3)
