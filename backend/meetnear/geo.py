"""
Great-circle helpers for the nearby-session search.

Coordinates follow GeoJSON order where a pair is passed: [longitude, latitude].
"""

from __future__ import annotations
import math
from typing import NamedTuple, Sequence, Tuple

from .constants import EARTH_RADIUS_M


class BoundingBox(NamedTuple):
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @property
    def wraps(self) -> bool:
        """True when the longitude range crosses the antimeridian."""
        return self.min_lng > self.max_lng


def haversine_m(lng1: float, lat1: float, lng2: float, lat2: float) -> float:
    """Distance in metres between two points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bounding_box(lng: float, lat: float, radius_m: float) -> BoundingBox:
    """
    Smallest lat/lng box containing every point within radius_m of (lng, lat).
    Near the poles the box widens to every longitude.
    """
    rad_dist = radius_m / EARTH_RADIUS_M
    lat_r, lng_r = math.radians(lat), math.radians(lng)

    min_lat, max_lat = lat_r - rad_dist, lat_r + rad_dist
    if min_lat > -math.pi / 2 and max_lat < math.pi / 2:
        delta = math.asin(min(1.0, math.sin(rad_dist) / math.cos(lat_r)))
        min_lng, max_lng = lng_r - delta, lng_r + delta
        if min_lng < -math.pi:
            min_lng += 2 * math.pi
        if max_lng > math.pi:
            max_lng -= 2 * math.pi
    else:
        min_lat = max(min_lat, -math.pi / 2)
        max_lat = min(max_lat, math.pi / 2)
        min_lng, max_lng = -math.pi, math.pi

    return BoundingBox(
        math.degrees(min_lat),
        math.degrees(max_lat),
        math.degrees(min_lng),
        math.degrees(max_lng),
    )


def midpoint(points: Sequence[Sequence[float]]) -> Tuple[float, float]:
    """
    Geographic centre of [longitude, latitude] pairs, averaged on the
    sphere so pairs across the antimeridian meet on the right side.
    """
    if not points:
        raise ValueError("midpoint needs at least one point")
    x = y = z = 0.0
    for lng, lat in points:
        phi, lam = math.radians(lat), math.radians(lng)
        x += math.cos(phi) * math.cos(lam)
        y += math.cos(phi) * math.sin(lam)
        z += math.sin(phi)
    n = len(points)
    x, y, z = x / n, y / n, z / n
    lng = math.degrees(math.atan2(y, x))
    lat = math.degrees(math.atan2(z, math.hypot(x, y)))
    return lng, lat
