"""
Geometry utilities.

Thin wrappers over shapely and pyproj. Inputs and outputs are lon/lat
(EPSG:4326); metric work (distances, buffers) is done in the local UTM zone
of the reference geometry and lengths are geodesic on the WGS84 ellipsoid.
All distances are in kilometers.
"""

import math
import logging
from functools import lru_cache
from typing import Iterable, List, Optional, Tuple

import numpy as np
import shapely
from pyproj import Geod, Transformer
from shapely.geometry import LineString, MultiLineString, box
from shapely.geometry.base import BaseGeometry

from core.models import BoundingBox, Feature
from core.settings import WORKING_CRS

log = logging.getLogger(__name__)

UNBOUNDED = math.inf

_GEOD = Geod(ellps="WGS84")
_LINE_TYPES = ("LineString", "MultiLineString")


# ═══════════════════════════════════════════════════════════════════════════
# PROJECTION HELPERS
# ═══════════════════════════════════════════════════════════════════════════
@lru_cache(maxsize=32)
def _utm_transformers(epsg: int) -> Tuple[Transformer, Transformer]:
    forward = Transformer.from_crs(WORKING_CRS, f"EPSG:{epsg}", always_xy=True)
    inverse = Transformer.from_crs(f"EPSG:{epsg}", WORKING_CRS, always_xy=True)
    return forward, inverse


def utm_epsg(lon: float, lat: float) -> int:
    """EPSG code of the WGS84 UTM zone containing (lon, lat)."""
    zone = int((lon + 180.0) / 6.0) + 1
    zone = max(1, min(60, zone))
    return (32600 if lat >= 0 else 32700) + zone


def _projection_for(geometry: BaseGeometry) -> Tuple[Transformer, Transformer]:
    anchor = geometry.centroid if not geometry.is_empty else None
    if anchor is None or anchor.is_empty:
        raise ValueError("Cannot choose a projection for an empty geometry")
    return _utm_transformers(utm_epsg(anchor.x, anchor.y))


def _project(geometry: BaseGeometry, transformer: Transformer) -> BaseGeometry:
    return shapely.transform(geometry, transformer.transform, interleaved=False)


def validate_lonlat(geometry: BaseGeometry) -> None:
    """Reject coordinates that cannot be WGS84 longitude/latitude."""
    coords = shapely.get_coordinates(geometry)
    if coords.size == 0:
        return
    if not np.all(np.isfinite(coords)):
        raise ValueError("Geometry contains non-finite coordinates")
    lon, lat = coords[:, 0], coords[:, 1]
    if np.any(np.abs(lon) > 180.0) or np.any(np.abs(lat) > 90.0):
        raise ValueError(f"Geometry is not in {WORKING_CRS} (coordinates out of lon/lat range)")


# ═══════════════════════════════════════════════════════════════════════════
# LINE HELPERS
# ═══════════════════════════════════════════════════════════════════════════
def is_line(geometry: Optional[BaseGeometry]) -> bool:
    return geometry is not None and geometry.geom_type in _LINE_TYPES


def line_parts(geometry: Optional[BaseGeometry]) -> List[LineString]:
    """Component line strings of a line-like geometry; empty for anything else."""
    if geometry is None or geometry.is_empty:
        return []
    if geometry.geom_type == "LineString":
        return [geometry]
    if geometry.geom_type in ("MultiLineString", "GeometryCollection"):
        parts = []
        for g in geometry.geoms:
            parts.extend(line_parts(g))
        return parts
    return []


def line_features(features: Optional[Iterable[Feature]]) -> List[Feature]:
    if not features:
        return []
    return [f for f in features if is_line(f.geometry)]


def centroid(geometry: BaseGeometry) -> BaseGeometry:
    return geometry.centroid


# ═══════════════════════════════════════════════════════════════════════════
# MEASUREMENTS
# ═══════════════════════════════════════════════════════════════════════════
def distance_point_to_line(point: BaseGeometry, line: BaseGeometry) -> float:
    """Shortest distance (km) from point to any point on line."""
    forward, _ = _projection_for(point)
    return _project(point, forward).distance(_project(line, forward)) / 1000.0


def nearest_distance(point: BaseGeometry, features: Optional[Iterable[Feature]]) -> float:
    """
    Minimum distance (km) from point to any line feature.

    Returns UNBOUNDED (inf) when there is no line to measure against.
    """
    lines = line_features(features)
    if not lines:
        return UNBOUNDED
    forward, _ = _projection_for(point)
    projected_point = _project(point, forward)
    best = UNBOUNDED
    for f in lines:
        d = projected_point.distance(_project(f.geometry, forward)) / 1000.0
        if d < best:
            best = d
    return best


def line_length(line: Optional[BaseGeometry]) -> float:
    """Total geodesic length (km) of all segments."""
    if line is None or line.is_empty:
        return 0.0
    return sum(_GEOD.geometry_length(part) for part in line_parts(line)) / 1000.0


# ═══════════════════════════════════════════════════════════════════════════
# BUFFERS, INTERSECTION, CLIPPING
# ═══════════════════════════════════════════════════════════════════════════
def buffer(geometry: BaseGeometry, radius_km: float) -> BaseGeometry:
    """Isotropic expansion of geometry by radius_km."""
    if radius_km < 0:
        raise ValueError(f"radius_km must be >= 0, got {radius_km}")
    forward, inverse = _projection_for(geometry)
    expanded = _project(geometry, forward).buffer(radius_km * 1000.0)
    return _project(expanded, inverse)


def buffer_bounding_box(geometry: BaseGeometry, radius_km: float) -> BaseGeometry:
    """Bounding rectangle of geometry expanded by radius_km (coarse search area)."""
    rect = box(*geometry.bounds)
    if radius_km <= 0:
        return rect
    return buffer(rect, radius_km)


def intersects(a: Optional[BaseGeometry], b: Optional[BaseGeometry]) -> bool:
    if a is None or b is None or a.is_empty or b.is_empty:
        return False
    return a.intersects(b)


def _as_line(parts: List[LineString]) -> Optional[BaseGeometry]:
    parts = [p for p in parts if not p.is_empty]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return MultiLineString(parts)


def clip(line: BaseGeometry, bbox: BoundingBox) -> Optional[BaseGeometry]:
    """Portion of line inside bbox, or None when they do not overlap."""
    if line is None or line.is_empty:
        return None
    clipped = shapely.clip_by_rect(line, *bbox.as_tuple())
    return _as_line(line_parts(clipped))


def clip_to_area(line: BaseGeometry, area: BaseGeometry) -> Optional[BaseGeometry]:
    """Portion of line inside an arbitrary polygon, or None."""
    if not intersects(line, area):
        return None
    return _as_line(line_parts(line.intersection(area)))
