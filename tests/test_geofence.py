import math
from types import SimpleNamespace

import pytest

from geovote.errors import EligibilityViolation
from geovote.services.geofence import (
    Circle,
    Polygon,
    Rectangle,
    check_location_eligibility,
    geometry_to_dict,
    is_in_region,
    match_region,
    parse_geometry,
)
from geovote.utils.geo import EARTH_RADIUS_METERS

from .helpers import ISLAMABAD, north_of

BOX = ((73.0, 33.0), (73.01, 33.0), (73.01, 33.01), (73.0, 33.01), (73.0, 33.0))


def _region(name, geometry, buffer_meters=0.0):
    return SimpleNamespace(name=name, shape=parse_geometry(geometry), buffer_meters=buffer_meters)


@pytest.mark.parametrize("center", [(0.0, 0.0), ISLAMABAD])
@pytest.mark.parametrize("meters, expected", [(999, True), (1000, True), (1001, False)])
def test_circle_boundary(center, meters, expected):
    circle = Circle(center=center, radius_meters=1000)
    lat, lng = north_of(center, meters)
    assert is_in_region(lat, lng, circle) is expected


def test_circle_buffer_extends_radius():
    circle = Circle(center=ISLAMABAD, radius_meters=500)
    lat, lng = north_of(ISLAMABAD, 515)
    assert not is_in_region(lat, lng, circle)
    assert is_in_region(lat, lng, circle, buffer_meters=20)


def test_rectangle_edge_buffer():
    rect = Rectangle(ring=BOX)
    lat = 33.01 + math.degrees(5 / EARTH_RADIUS_METERS)
    lng = 73.005
    assert not is_in_region(lat, lng, rect, buffer_meters=0)
    assert is_in_region(lat, lng, rect, buffer_meters=10)


def test_polygon_interior_and_exterior():
    poly = Polygon(ring=BOX)
    assert is_in_region(33.005, 73.005, poly)
    assert not is_in_region(33.02, 73.005, poly)


def test_degenerate_rings_never_match():
    assert not is_in_region(0.0, 0.0, Polygon(ring=()))
    assert not is_in_region(0.0, 0.0, Polygon(ring=((0.0, 0.0), (1.0, 1.0), (0.0, 0.0))), buffer_meters=1000)


def test_negative_buffer_rejected():
    with pytest.raises(ValueError):
        is_in_region(0.0, 0.0, Circle(center=(0.0, 0.0), radius_meters=10), buffer_meters=-1)


def test_parse_circle_accepts_radius_alias():
    shape = parse_geometry({"type": "circle", "center": [73.0479, 33.6844], "radius": 250})
    assert shape == Circle(center=(73.0479, 33.6844), radius_meters=250.0)


def test_parse_geojson_polygon_layout():
    shape = parse_geometry({"type": "polygon", "coordinates": [[list(p) for p in BOX]]})
    assert isinstance(shape, Polygon)
    assert shape.ring == BOX


@pytest.mark.parametrize(
    "data",
    [
        {"type": "hexagon"},
        {"type": "circle", "center": [73.0, 33.0], "radiusMeters": -5},
        {"type": "circle", "center": [200.0, 33.0], "radiusMeters": 5},
        {"type": "circle", "center": [73.0], "radiusMeters": 5},
        {"type": "polygon", "ring": [[0, 0], [1, 0], [1, 1]]},  # not closed
        {"type": "rectangle", "ring": [[0, 0], [1, 0], [1, 1], [0, 0]]},
        "not a dict",
    ],
)
def test_parse_geometry_rejects_bad_input(data):
    with pytest.raises(ValueError):
        parse_geometry(data)


def test_geometry_to_dict_uses_wire_names():
    assert geometry_to_dict(Circle(center=(1.0, 2.0), radius_meters=3.0)) == {
        "type": "circle",
        "center": [1.0, 2.0],
        "radiusMeters": 3.0,
    }
    assert geometry_to_dict(Rectangle(ring=BOX))["type"] == "rectangle"


def test_match_region_returns_first_in_order():
    big = _region("big", {"type": "circle", "center": list(ISLAMABAD), "radiusMeters": 2000})
    small = _region("small", {"type": "circle", "center": list(ISLAMABAD), "radiusMeters": 100})
    assert match_region(ISLAMABAD[1], ISLAMABAD[0], [big, small]).name == "big"
    assert match_region(ISLAMABAD[1], ISLAMABAD[0], [small, big]).name == "small"


def test_match_region_none_outside_all():
    region = _region("campus", {"type": "circle", "center": list(ISLAMABAD), "radiusMeters": 100})
    lat, lng = north_of(ISLAMABAD, 5000)
    assert match_region(lat, lng, [region]) is None


def test_location_not_required_skips_check():
    election = SimpleNamespace(require_location=False, regions=[])
    assert check_location_eligibility(election, None, None) is None


def test_location_required_but_missing():
    election = SimpleNamespace(require_location=True, regions=[])
    with pytest.raises(EligibilityViolation) as exc:
        check_location_eligibility(election, None, 73.0)
    assert exc.value.status_code == 400


def test_location_required_with_no_regions_rejects():
    election = SimpleNamespace(require_location=True, regions=[])
    with pytest.raises(EligibilityViolation) as exc:
        check_location_eligibility(election, 33.0, 73.0)
    assert exc.value.status_code == 403
