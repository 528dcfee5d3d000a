"""
Spherical-earth distance helpers and a planar point-in-ring test.

Coordinates are plain floats. Functions taking separate ``lat``/``lng``
arguments say so in their signature; rings are sequences of ``(lng, lat)``
pairs, matching the wire format used for region geometry.
"""
import math
from typing import Sequence, Tuple

EARTH_RADIUS_METERS = 6_371_000.0

# Cross-product tolerance (in squared degrees) for "point lies on an edge".
_ON_EDGE_EPSILON = 1e-12


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in metres between two points."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_to_segment(
    p_lat: float,
    p_lng: float,
    a_lat: float,
    a_lng: float,
    b_lat: float,
    b_lng: float,
) -> float:
    """
    Approximate distance in metres from P to the segment AB.

    The projection parameter comes from the law of cosines over haversine
    side lengths, then the projected point is interpolated linearly in
    degrees. Good enough at the metre-to-kilometre scale of region buffers.
    """
    pa = haversine_distance(p_lat, p_lng, a_lat, a_lng)
    pb = haversine_distance(p_lat, p_lng, b_lat, b_lng)
    ab = haversine_distance(a_lat, a_lng, b_lat, b_lng)

    if ab == 0:
        return pa

    t = (pa ** 2 - pb ** 2 + ab ** 2) / (2 * ab ** 2)
    t = max(0.0, min(1.0, t))
    proj_lat = a_lat + t * (b_lat - a_lat)
    proj_lng = a_lng + t * (b_lng - a_lng)

    return haversine_distance(p_lat, p_lng, proj_lat, proj_lng)


def _on_edge(x: float, y: float, x1: float, y1: float, x2: float, y2: float) -> bool:
    cross = (x2 - x1) * (y - y1) - (y2 - y1) * (x - x1)
    if abs(cross) > _ON_EDGE_EPSILON:
        return False
    return min(x1, x2) <= x <= max(x1, x2) and min(y1, y2) <= y <= max(y1, y2)


def point_in_ring(lng: float, lat: float, ring: Sequence[Tuple[float, float]]) -> bool:
    """
    Ray-casting test treating the ring as planar (lng = x, lat = y).

    Points exactly on an edge count as inside. The ring may be open or
    closed; a repeated closing vertex only adds a zero-length edge.
    """
    inside = False
    n = len(ring)
    if n < 3:
        return False

    j = n - 1
    for i in range(n):
        x1, y1 = ring[i]
        x2, y2 = ring[j]
        if _on_edge(lng, lat, x1, y1, x2, y2):
            return True
        if (y1 > lat) != (y2 > lat):
            x_cross = x1 + (lat - y1) * (x2 - x1) / (y2 - y1)
            if lng < x_cross:
                inside = not inside
        j = i

    return inside
