"""
Distance calculation using the Haversine formula.

Assumption
----------
We use great-circle (Haversine) distance instead of a real routing engine
so fare estimates need only the two coordinates.  Road distance is
typically 20-40 % longer; the pricing table absorbs that difference.

Complexity: O(1) per call.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .entities import GeoPoint

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    if lat1 == lat2 and lng1 == lng2:
        return 0.0

    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def distance_km(a: "GeoPoint", b: "GeoPoint") -> float:
    """Great-circle distance between two :class:`GeoPoint` values."""
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)
