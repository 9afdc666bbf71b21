"""Geographic helpers.

Haversine distance between two coordinates, plus the small `Location` value
object the GPS collaborator hands to the core.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from math import atan2, cos, radians, sin, sqrt
from typing import Any, Optional

from ..core.constants import EARTH_RADIUS_METERS
from ..core.exceptions import ValidationError
from .datetime_utils import from_iso, to_iso


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in meters.

    Uses the Haversine formula with a spherical Earth of radius 6,371 km,
    which stays within GPS noise for points a few tens of kilometers apart.
    """
    phi1 = radians(lat1)
    phi2 = radians(lat2)
    dphi = radians(lat2 - lat1)
    dlambda = radians(lon2 - lon1)

    a = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlambda / 2) ** 2
    # Rounding can push `a` a hair outside [0, 1] for antipodal points.
    a = min(1.0, max(0.0, a))
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if not -90.0 <= float(self.latitude) <= 90.0:
            raise ValidationError("Latitude must be between -90 and 90")
        if not -180.0 <= float(self.longitude) <= 180.0:
            raise ValidationError("Longitude must be between -180 and 180")

    def distance_to(self, other: "Location") -> float:
        return distance_meters(self.latitude, self.longitude, other.latitude, other.longitude)

    def to_document(self) -> dict:
        return {
            "latitude": float(self.latitude),
            "longitude": float(self.longitude),
            "accuracy": None if self.accuracy is None else float(self.accuracy),
            "timestamp": to_iso(self.timestamp),
        }

    @classmethod
    def from_document(cls, data: Any) -> Optional["Location"]:
        if not data:
            return None
        if data.get("latitude") is None or data.get("longitude") is None:
            return None
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            accuracy=None if data.get("accuracy") is None else float(data["accuracy"]),
            timestamp=from_iso(data.get("timestamp")),
        )
