"""Spherical and locally-flat geometry helpers used by route matching.

All functions take ``GeoPoint`` values and return meters or degrees. Nothing
here performs I/O.
"""
import math
from typing import List, Optional, Sequence

from tollroute.models import GeoPoint

EARTH_RADIUS_METERS = 6_371_000.0
METERS_PER_DEGREE = 111_000.0

# Compass heading of each direction-of-travel tag. E-O / O-E are the Spanish
# spellings found in older facility exports.
DIRECTION_HEADINGS = {
    "N-S": 180.0,
    "S-N": 0.0,
    "E-W": 270.0,
    "W-E": 90.0,
    "E-O": 270.0,
    "O-E": 90.0,
}


def haversine_distance(p1: GeoPoint, p2: GeoPoint) -> float:
    phi1 = math.radians(p1.latitude)
    phi2 = math.radians(p2.latitude)
    delta_phi = math.radians(p2.latitude - p1.latitude)
    delta_lambda = math.radians(p2.longitude - p1.longitude)
    a = math.sin(delta_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2.0) ** 2
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bearing(p1: GeoPoint, p2: GeoPoint) -> float:
    """Initial great-circle bearing from ``p1`` to ``p2`` in [0, 360).

    ``p1 == p2`` has no direction; the result is 0.0 and callers must not rely on it.
    """
    phi1 = math.radians(p1.latitude)
    phi2 = math.radians(p2.latitude)
    delta_lambda = math.radians(p2.longitude - p1.longitude)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def perpendicular_distance(point: GeoPoint, segment_start: GeoPoint, segment_end: GeoPoint) -> float:
    """Distance in meters from ``point`` to the segment, in an equirectangular approximation.

    The projection parameter is clamped to [0, 1] so the foot never leaves the
    segment. Degree distances are scaled by a flat 111 km/degree, which is good
    enough for segments a few kilometers long.
    """
    x, y = point.longitude, point.latitude
    x1, y1 = segment_start.longitude, segment_start.latitude
    dx = segment_end.longitude - x1
    dy = segment_end.latitude - y1

    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        foot_x, foot_y = x1, y1
    else:
        t = ((x - x1) * dx + (y - y1) * dy) / length_sq
        t = max(0.0, min(1.0, t))
        foot_x = x1 + t * dx
        foot_y = y1 + t * dy

    return math.hypot(x - foot_x, y - foot_y) * METERS_PER_DEGREE


def cumulative_distances(points: Sequence[GeoPoint]) -> List[float]:
    """Prefix haversine lengths: ``result[i]`` is the path length from ``points[0]`` to ``points[i]``."""
    cum = [0.0]
    total = 0.0
    for a, b in zip(points, points[1:]):
        total += haversine_distance(a, b)
        cum.append(total)
    return cum


def route_length_meters(points: Sequence[GeoPoint]) -> float:
    return cumulative_distances(points)[-1] if points else 0.0


def route_bearing(points: Sequence[GeoPoint], samples: int = 5) -> Optional[float]:
    """Average heading over up to ``samples`` evenly spaced spans of the route."""
    if len(points) < 2:
        return None
    num_points = min(samples, len(points))
    step = max(1, len(points) // num_points)
    headings = []
    for i in range(0, len(points) - step, step):
        if points[i] != points[i + step]:
            headings.append(bearing(points[i], points[i + step]))
    if not headings:
        return None
    return sum(headings) / len(headings)


def angular_difference(a: float, b: float) -> float:
    diff = abs(a - b) % 360.0
    return min(diff, 360.0 - diff)


def matches_direction(heading: float, direction: str, tolerance_degrees: float) -> bool:
    expected = DIRECTION_HEADINGS.get(direction.strip().upper()) if direction else None
    if expected is None:
        return False
    return angular_difference(heading, expected) <= tolerance_degrees
