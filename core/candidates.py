"""
Spatial candidate filter.

Narrows a line network to the features near a region so exact distance
and length work only touches a neighborhood instead of the whole network.
The search area is the region's bounding box buffered by the radius, so the
result may include lines slightly outside the true radius but never misses
one inside it.
"""

import logging
from typing import Optional

import numpy as np
from shapely.geometry.base import BaseGeometry
from shapely.strtree import STRtree

from core.geometry import buffer_bounding_box, line_features
from core.models import FeatureCollection

log = logging.getLogger(__name__)


def filter_near(
    region: BaseGeometry,
    collection: Optional[FeatureCollection],
    radius_km: float,
) -> FeatureCollection:
    """
    Line features of collection intersecting the buffered bounding box of region.

    Args:
        region: Area of interest (any geometry)
        collection: Network to search; None or empty yields an empty result
        radius_km: Search radius around the region's bounding box

    Returns:
        FeatureCollection of candidates, in input order
    """
    lines = line_features(collection)
    if not lines or region is None or region.is_empty:
        return FeatureCollection()

    search_area = buffer_bounding_box(region, radius_km)
    tree = STRtree([f.geometry for f in lines])
    hits = np.sort(tree.query(search_area, predicate="intersects"))

    log.debug(f"Candidate filter kept {len(hits)}/{len(lines)} lines within {radius_km} km")
    return FeatureCollection([lines[i] for i in hits])
