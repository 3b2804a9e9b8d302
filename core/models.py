"""
Core data models for the Service Readiness Engine.

Features and results are value objects: nothing in the engine mutates a
feature it was given, derived fields are attached to copies.
"""

import math
import time
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from shapely.geometry import LineString, MultiLineString, box, mapping, shape
from shapely.geometry.base import BaseGeometry


def _coerce_geometry(geojson: Optional[Dict]) -> Optional[BaseGeometry]:
    """Build a shapely geometry, keeping single-vertex lines as zero-length lines."""
    if not geojson:
        return None
    gtype = geojson.get("type")
    coords = geojson.get("coordinates")
    if gtype == "LineString" and coords is not None and len(coords) == 1:
        return LineString([coords[0], coords[0]])
    if gtype == "MultiLineString" and coords is not None:
        parts = [c if len(c) > 1 else [c[0], c[0]] for c in coords if len(c) > 0]
        return MultiLineString(parts)
    return shape(geojson)


# ═══════════════════════════════════════════════════════════════════════════
# FEATURES
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class Feature:
    """
    A geometry plus an ordered attribute mapping.

    geometry is None for features fetched without geometry (count-only queries).
    """
    geometry: Optional[BaseGeometry]
    properties: Dict[str, Any] = field(default_factory=dict)

    def with_properties(self, **extra) -> "Feature":
        """Return a copy carrying additional derived attributes."""
        props = dict(self.properties)
        props.update(extra)
        return Feature(self.geometry, props)

    def get(self, key: str, default: Any = None) -> Any:
        return self.properties.get(key, default)

    @property
    def geom_type(self) -> Optional[str]:
        return self.geometry.geom_type if self.geometry is not None else None

    def to_geojson(self) -> Dict:
        return {
            "type": "Feature",
            "geometry": mapping(self.geometry) if self.geometry is not None else None,
            "properties": dict(self.properties),
        }

    @classmethod
    def from_geojson(cls, data: Dict) -> "Feature":
        # ArcGIS JSON responses carry attributes instead of properties
        props = data.get("properties")
        if props is None:
            props = data.get("attributes") or {}
        return cls(_coerce_geometry(data.get("geometry")), dict(props))


@dataclass
class FeatureCollection:
    """Ordered sequence of features. Order is kept stable for display."""
    features: List[Feature] = field(default_factory=list)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def __len__(self) -> int:
        return len(self.features)

    def __bool__(self) -> bool:
        return bool(self.features)

    def extend(self, features: Iterable[Feature]) -> None:
        self.features.extend(features)

    def to_geojson(self) -> Dict:
        return {
            "type": "FeatureCollection",
            "features": [f.to_geojson() for f in self.features],
        }

    @classmethod
    def from_geojson(cls, data: Optional[Dict]) -> "FeatureCollection":
        """Accepts a GeoJSON FeatureCollection dict; None or no features gives an empty collection."""
        if not data:
            return cls()
        return cls([Feature.from_geojson(f) for f in (data.get("features") or [])])


# ═══════════════════════════════════════════════════════════════════════════
# BOUNDING BOX
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class BoundingBox:
    """
    Geographic bounding box (viewport).

    All coordinates are in decimal degrees (WGS84).
    """
    west: float   # Western edge (e.g., 138.50)
    south: float  # Southern edge (e.g., -35.00)
    east: float   # Eastern edge (e.g., 138.70)
    north: float  # Northern edge (e.g., -34.85)

    def __post_init__(self):
        values = (self.west, self.south, self.east, self.north)
        if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in values):
            raise ValueError(f"Bounding box values must be finite numbers: {values}")
        if abs(self.west) > 180.0 or abs(self.east) > 180.0:
            raise ValueError(f"Longitudes must lie in [-180, 180]: west={self.west}, east={self.east}")
        if abs(self.south) > 90.0 or abs(self.north) > 90.0:
            raise ValueError(f"Latitudes must lie in [-90, 90]: south={self.south}, north={self.north}")
        if self.west > self.east:
            raise ValueError(f"west ({self.west}) must not exceed east ({self.east})")
        if self.south > self.north:
            raise ValueError(f"south ({self.south}) must not exceed north ({self.north})")

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.west, self.south, self.east, self.north)

    def to_polygon(self) -> BaseGeometry:
        return box(self.west, self.south, self.east, self.north)

    def to_envelope(self) -> str:
        """ArcGIS REST envelope string (xmin,ymin,xmax,ymax)."""
        return ",".join(repr(float(v)) for v in self.as_tuple())

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "BoundingBox":
        return cls(**data)

    @classmethod
    def from_bounds(cls, bounds: Iterable[float]) -> "BoundingBox":
        """From a (west, south, east, north) sequence, e.g. shapely's .bounds."""
        west, south, east, north = (float(v) for v in bounds)
        return cls(west, south, east, north)


# ═══════════════════════════════════════════════════════════════════════════
# RESULTS
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class ReadinessResult:
    """Readiness of one area for one analysis pass."""
    name: str
    water_distance_km: float
    sewer_distance_km: float
    pipe_length_km: float
    readiness: float

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class AggregateResult:
    """
    Viewport totals for one aggregation pass.

    Layers listed in failed_layers are absent from the length and count
    tables; they are never zero-filled.
    """
    pass_id: int
    bbox: BoundingBox
    length_by_network: Dict[str, float] = field(default_factory=dict)
    count_by_network: Dict[str, int] = field(default_factory=dict)
    length_by_attribute_bin: Dict[float, float] = field(default_factory=dict)
    failed_layers: Dict[str, str] = field(default_factory=dict)
    completed_at: float = field(default_factory=time.time)

    @property
    def is_complete(self) -> bool:
        return not self.failed_layers

    def top_bins(self, limit: int = 12) -> List[Tuple[float, float]]:
        from core.aggregator import top_bins
        return top_bins(self.length_by_attribute_bin, limit)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["bbox"] = self.bbox.to_dict()
        return data
