import math

from geovote.utils.geo import EARTH_RADIUS_METERS

# Islamabad, (lng, lat)
ISLAMABAD = (73.0479, 33.6844)


def north_of(center, meters):
    """(lat, lng) exactly ``meters`` due north of a (lng, lat) center."""
    lng, lat = center
    return lat + math.degrees(meters / EARTH_RADIUS_METERS), lng
