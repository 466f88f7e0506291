"""
backend/fixlink/geo/distance.py

Great-circle distance between two coordinates (haversine formula).
Pure functions, no state.
"""

import math
from dataclasses import dataclass

from fixlink.core.exceptions import ValidationError

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValidationError(f"Latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValidationError(f"Longitude out of range: {self.longitude}")

    @classmethod
    def from_optional(cls, latitude: float | None, longitude: float | None) -> "GeoPoint | None":
        """Builds a point only when both coordinates are present."""
        if latitude is None or longitude is None:
            return None
        return cls(float(latitude), float(longitude))


def haversine_km(origin: GeoPoint, target: GeoPoint) -> float:
    """Distance in kilometres between `origin` and `target`."""
    phi1 = math.radians(origin.latitude)
    phi2 = math.radians(target.latitude)
    dphi = math.radians(target.latitude - origin.latitude)
    dlambda = math.radians(target.longitude - origin.longitude)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c
