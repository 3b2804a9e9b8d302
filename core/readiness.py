"""
Service Readiness Scoring

Scores growth areas by how ready they are to be serviced:
- proximity to the water network (centroid to nearest main)
- proximity to the wastewater network
- total pipe length close to the area (density)

Weights adapt when a network is absent nearby, so an area is not penalized
just because one network type is missing from the input data.
"""

import math
import time
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from shapely.geometry.base import BaseGeometry

from core.candidates import filter_near
from core.geometry import buffer, centroid, clip_to_area, line_length, nearest_distance
from core.models import Feature, FeatureCollection, ReadinessResult
from core.settings import AnalysisSettings

log = logging.getLogger(__name__)

# Attribute names tried, in order, when labelling an area
NAME_KEYS = [
    "name", "NAME", "Label", "LABEL", "AREA_NAME",
    "REGION", "SA2_NAME", "SUBURB", "LGA_NAME", "TITLE",
]

# (water, sewer, density) weights
WEIGHTS_DENSITY_ONLY = (0.0, 0.0, 1.0)
WEIGHTS_SEWER_ONLY = (0.0, 0.6, 0.4)
WEIGHTS_WATER_ONLY = (0.6, 0.0, 0.4)
WEIGHTS_BALANCED = (0.4, 0.4, 0.2)

_AREA_TYPES = ("Polygon", "MultiPolygon")


# ═══════════════════════════════════════════════════════════════════════════
# SCORING
# ═══════════════════════════════════════════════════════════════════════════
def proximity_index(distance_km: float, cap_km: float = 0.6) -> float:
    """1.0 at distance 0, falling linearly to 0.0 at cap_km and beyond."""
    if distance_km is None or math.isnan(distance_km) or math.isinf(distance_km):
        return 0.0
    return 1.0 - min(max(distance_km, 0.0) / cap_km, 1.0)


def density_index(length_km: float, target_km: float = 1.5) -> float:
    """Full credit once target_km of pipe lies near the area."""
    if length_km < 0:
        raise ValueError(f"Pipe length cannot be negative: {length_km}")
    return min(length_km / target_km, 1.0)


def select_weights(water_idx: float, sewer_idx: float) -> Tuple[float, float, float]:
    """Pick the weight triple from which proximity indices are zero."""
    if water_idx == 0 and sewer_idx == 0:
        return WEIGHTS_DENSITY_ONLY
    if water_idx == 0:
        return WEIGHTS_SEWER_ONLY
    if sewer_idx == 0:
        return WEIGHTS_WATER_ONLY
    return WEIGHTS_BALANCED


def score(
    water_dist_km: float,
    sewer_dist_km: float,
    local_pipe_length_km: float,
    proximity_cap_km: float = 0.6,
    density_target_km: float = 1.5,
) -> float:
    """
    Composite readiness in [0, 1].

    Args:
        water_dist_km: Distance to the nearest water main (inf when none)
        sewer_dist_km: Distance to the nearest wastewater main (inf when none)
        local_pipe_length_km: Pipe length within the density buffer
        proximity_cap_km: Distance where proximity credit reaches zero
        density_target_km: Length that earns full density credit

    Returns:
        Readiness between 0.0 and 1.0
    """
    w_idx = proximity_index(water_dist_km, proximity_cap_km)
    s_idx = proximity_index(sewer_dist_km, proximity_cap_km)
    d_idx = density_index(local_pipe_length_km, density_target_km)

    w_weight, s_weight, d_weight = select_weights(w_idx, s_idx)
    total = w_weight * w_idx + s_weight * s_idx + d_weight * d_idx
    return min(max(total, 0.0), 1.0)


# ═══════════════════════════════════════════════════════════════════════════
# PER-AREA ANALYSIS
# ═══════════════════════════════════════════════════════════════════════════
def display_name(properties: Optional[Dict], index: int = 0) -> str:
    for key in NAME_KEYS:
        if properties and properties.get(key):
            return str(properties[key])
    return f"Area {index + 1}"


def format_distance(km: float) -> str:
    return "—" if km is None or not math.isfinite(km) else f"{km:.2f}"


def local_pipe_length_km(
    area: BaseGeometry,
    *networks: Optional[FeatureCollection],
    buffer_km: float = 0.25,
) -> float:
    """Length (km) of network lines lying within buffer_km of the area."""
    zone = buffer(area, buffer_km)
    total = 0.0
    for network in networks:
        if not network:
            continue
        for f in network:
            inside = clip_to_area(f.geometry, zone)
            if inside is not None:
                total += line_length(inside)
    return total


def analyze_area(
    area: Feature,
    water: Optional[FeatureCollection],
    sewer: Optional[FeatureCollection],
    settings: Optional[AnalysisSettings] = None,
    index: int = 0,
) -> Tuple[ReadinessResult, Feature]:
    """
    Score one area.

    Returns the result record and a copy of the area carrying the derived
    fields (_displayName, _waterDist, _sewerDist, _pipeLen, readiness).
    """
    settings = settings or AnalysisSettings()
    name = display_name(area.properties, index)

    # Limit the exact work to lines near the area
    water_near = filter_near(area.geometry, water, settings.candidate_radius_km)
    sewer_near = filter_near(area.geometry, sewer, settings.candidate_radius_km)

    center = centroid(area.geometry)
    water_dist = nearest_distance(center, water_near)
    sewer_dist = nearest_distance(center, sewer_near)
    pipe_len = local_pipe_length_km(
        area.geometry, water_near, sewer_near, buffer_km=settings.density_buffer_km
    )

    readiness = score(
        water_dist,
        sewer_dist,
        pipe_len,
        proximity_cap_km=settings.proximity_cap_km,
        density_target_km=settings.density_target_km,
    )

    result = ReadinessResult(
        name=name,
        water_distance_km=water_dist,
        sewer_distance_km=sewer_dist,
        pipe_length_km=pipe_len,
        readiness=readiness,
    )
    annotated = area.with_properties(
        _displayName=name,
        _waterDist=water_dist,
        _sewerDist=sewer_dist,
        _pipeLen=pipe_len,
        readiness=readiness,
    )
    return result, annotated


@dataclass
class ReadinessReport:
    """Output of one readiness pass over a set of areas."""
    results: List[ReadinessResult] = field(default_factory=list)
    areas: FeatureCollection = field(default_factory=FeatureCollection)
    skipped: int = 0
    elapsed_seconds: float = 0.0


def analyze_areas(
    areas: Optional[FeatureCollection],
    water: Optional[FeatureCollection],
    sewer: Optional[FeatureCollection],
    settings: Optional[AnalysisSettings] = None,
) -> ReadinessReport:
    """Score every polygon area against the water and wastewater networks."""
    settings = settings or AnalysisSettings()
    report = ReadinessReport()
    start = time.perf_counter()

    for i, area in enumerate(areas or []):
        if area.geometry is None or area.geometry.is_empty or area.geom_type not in _AREA_TYPES:
            log.warning(f"Skipping area {i + 1}: no polygon geometry ({area.geom_type})")
            report.skipped += 1
            continue
        result, annotated = analyze_area(area, water, sewer, settings, index=i)
        report.results.append(result)
        report.areas.features.append(annotated)

    report.elapsed_seconds = time.perf_counter() - start
    log.info(
        f"Readiness analysis: {len(report.results)} areas scored, "
        f"{report.skipped} skipped in {report.elapsed_seconds:.3f}s"
    )
    return report
