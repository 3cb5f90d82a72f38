"""
Distance calculation using the Haversine formula.

Straight-line distance is only a heuristic here (fleet overview, log
context).  Dispatch itself ranks ambulances by routed travel *duration*
from the routing provider, never by great-circle distance.

Complexity: O(1) per call.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .entities import Coordinates

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def distance_km(point_a: Coordinates, point_b: Coordinates) -> float:
    """Great-circle distance between two ``Coordinates``."""
    return haversine_km(
        point_a.latitude, point_a.longitude,
        point_b.latitude, point_b.longitude,
    )
