"""Shared fixtures: geometry built from kilometre offsets around Adelaide."""
import math
import pytest
from shapely.geometry import LineString, MultiLineString, Point, Polygon

from core.models import Feature, FeatureCollection

ORIGIN_LON = 138.60
ORIGIN_LAT = -34.93

KM_PER_DEG_LAT = 110.94
KM_PER_DEG_LON = 111.32 * math.cos(math.radians(ORIGIN_LAT))


def at(dx_km, dy_km):
    """(lon, lat) of a point dx_km east and dy_km north of the origin."""
    return (ORIGIN_LON + dx_km / KM_PER_DEG_LON, ORIGIN_LAT + dy_km / KM_PER_DEG_LAT)


def point(dx_km, dy_km):
    return Point(*at(dx_km, dy_km))


def line(*offsets):
    return LineString([at(dx, dy) for dx, dy in offsets])


def rectangle(x0, y0, x1, y1):
    return Polygon([at(x0, y0), at(x1, y0), at(x1, y1), at(x0, y1), at(x0, y0)])


def feature(geometry, **props):
    return Feature(geometry, props)


@pytest.fixture
def km():
    """Helpers building geometry from km offsets."""
    class Builder:
        pass
    b = Builder()
    b.at = at
    b.point = point
    b.line = line
    b.rectangle = rectangle
    b.multiline = lambda *parts: MultiLineString([[at(dx, dy) for dx, dy in p] for p in parts])
    return b


@pytest.fixture
def water_network():
    """Three north-south mains 0.2, 1.0 and 5.0 km east of the origin."""
    return FeatureCollection([
        feature(line((0.2, -0.5), (0.2, 0.5)), id="w1", nominaldiameter=150),
        feature(line((1.0, -0.5), (1.0, 0.5)), id="w2", nominaldiameter=100),
        feature(line((5.0, -0.5), (5.0, 0.5)), id="w3", nominaldiameter=150),
    ])
