"""
Geofence Engine
===============

Decides whether a voter's coordinate falls inside an organiser-drawn region.

Design:
- Geometry is a tagged variant of immutable shapes (Circle, Polygon, Rectangle)
- Coordinates travel longitude-first, as ``(lng, lat)`` tuples
- Circle membership uses haversine distance; polygon membership is planar
  ray casting plus a haversine edge-distance check for the buffer
- Stateless; safe to call from any number of request threads
"""
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from ..errors import EligibilityViolation
from ..utils.geo import distance_to_segment, haversine_distance, point_in_ring

LngLat = Tuple[float, float]

# Absorbs float error so a point computed at exactly the boundary stays inside.
_BOUNDARY_TOLERANCE_METERS = 1e-6


@dataclass(frozen=True)
class Circle:
    center: LngLat
    radius_meters: float

    type = "circle"


@dataclass(frozen=True)
class Polygon:
    ring: Tuple[LngLat, ...]

    type = "polygon"


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned box stored as a closed ring of 4 corners + the first again."""

    ring: Tuple[LngLat, ...]

    type = "rectangle"


Geometry = Union[Circle, Polygon, Rectangle]


def _coordinate(value: Any) -> LngLat:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError("coordinates must be [lng, lat] pairs")
    lng, lat = value
    if isinstance(lng, bool) or isinstance(lat, bool) or not all(isinstance(v, (int, float)) for v in (lng, lat)):
        raise ValueError("coordinates must be numeric")
    lng, lat = float(lng), float(lat)
    if not -180.0 <= lng <= 180.0:
        raise ValueError(f"longitude {lng} out of range")
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"latitude {lat} out of range")
    return lng, lat


def _ring(data: Mapping[str, Any]) -> Tuple[LngLat, ...]:
    raw = data.get("ring")
    if raw is None and data.get("coordinates") is not None:
        # GeoJSON polygon layout: a list of rings, the outer one first.
        coordinates = data["coordinates"]
        if not isinstance(coordinates, list) or not coordinates:
            raise ValueError("coordinates must contain at least one ring")
        raw = coordinates[0]
    if not isinstance(raw, list):
        raise ValueError("ring must be a list of [lng, lat] pairs")

    ring = tuple(_coordinate(point) for point in raw)
    if len(ring) >= 2 and ring[0] != ring[-1]:
        raise ValueError("ring must be closed (first point repeated as last)")
    return ring


def parse_geometry(data: Mapping[str, Any]) -> Geometry:
    """Build a geometry variant from its wire form; raises ``ValueError``."""
    if not isinstance(data, Mapping):
        raise ValueError("geometry must be an object")

    kind = data.get("type")
    if kind == "circle":
        center = _coordinate(data.get("center"))
        radius = data.get("radiusMeters", data.get("radius"))
        if isinstance(radius, bool) or not isinstance(radius, (int, float)):
            raise ValueError("radiusMeters must be a number")
        if radius < 0:
            raise ValueError("radiusMeters must not be negative")
        return Circle(center=center, radius_meters=float(radius))

    if kind == "polygon":
        return Polygon(ring=_ring(data))

    if kind == "rectangle":
        ring = _ring(data)
        if len(ring) != 5:
            raise ValueError("rectangle ring must have exactly 5 points")
        return Rectangle(ring=ring)

    raise ValueError(f"unknown geometry type: {kind!r}")


def geometry_to_dict(geometry: Geometry) -> dict:
    if isinstance(geometry, Circle):
        return {
            "type": "circle",
            "center": list(geometry.center),
            "radiusMeters": geometry.radius_meters,
        }
    return {"type": geometry.type, "ring": [list(point) for point in geometry.ring]}


def _vertices(ring: Tuple[LngLat, ...]) -> Tuple[LngLat, ...]:
    if len(ring) >= 2 and ring[0] == ring[-1]:
        return ring[:-1]
    return ring


def _in_ring_with_buffer(lat: float, lng: float, ring: Tuple[LngLat, ...], buffer_meters: float) -> bool:
    vertices = _vertices(ring)
    if len(set(vertices)) < 3:
        return False

    if point_in_ring(lng, lat, vertices):
        return True

    if buffer_meters > 0:
        closed = vertices + (vertices[0],)
        for (a_lng, a_lat), (b_lng, b_lat) in zip(closed, closed[1:]):
            if distance_to_segment(lat, lng, a_lat, a_lng, b_lat, b_lng) <= buffer_meters + _BOUNDARY_TOLERANCE_METERS:
                return True

    return False


def is_in_region(lat: float, lng: float, geometry: Geometry, buffer_meters: float = 0.0) -> bool:
    """True when (lat, lng) lies inside ``geometry`` grown outward by ``buffer_meters``."""
    if buffer_meters < 0:
        raise ValueError("buffer_meters must not be negative")

    if isinstance(geometry, Circle):
        center_lng, center_lat = geometry.center
        distance = haversine_distance(lat, lng, center_lat, center_lng)
        return distance <= geometry.radius_meters + buffer_meters + _BOUNDARY_TOLERANCE_METERS

    if isinstance(geometry, (Polygon, Rectangle)):
        return _in_ring_with_buffer(lat, lng, geometry.ring, buffer_meters)

    raise TypeError(f"unsupported geometry: {type(geometry).__name__}")


def match_region(lat: float, lng: float, regions: Iterable):
    """First region (persisted order) containing the point, or ``None``."""
    for region in regions:
        if is_in_region(lat, lng, region.shape, region.buffer_meters or 0.0):
            return region
    return None


def check_location_eligibility(election, latitude: Optional[float], longitude: Optional[float]):
    """
    Region the voter should be assigned to, or ``None`` when location is not
    required. Raises ``EligibilityViolation`` when a required location is
    missing or outside every region.
    """
    if not election.require_location:
        return None

    if latitude is None or longitude is None:
        raise EligibilityViolation("Location is required for this election", status_code=400)

    region = match_region(latitude, longitude, election.regions)
    if region is None:
        raise EligibilityViolation(
            "Your location is not within any eligible region for this election",
            details={"latitude": latitude, "longitude": longitude},
        )
    return region
