"""
Viewport aggregation.

Sums network length and feature counts inside a bounding box, optionally
binning length by a numeric attribute (pipe diameter).
"""

import math
import logging
from typing import Any, Dict, List, Optional, Tuple

from core.geometry import clip, line_length, line_parts
from core.models import BoundingBox, FeatureCollection

log = logging.getLogger(__name__)

TOP_BINS = 12


def _bin_value(raw: Any) -> Optional[float]:
    """Finite numeric attribute value, or None."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def aggregate_length(
    collection: Optional[FeatureCollection],
    bbox: BoundingBox,
    bin_by: Optional[str] = None,
) -> Tuple[float, Dict[float, float]]:
    """
    Total line length (km) inside bbox.

    Args:
        collection: Features to measure; non-line features are skipped
        bbox: Region to clip to
        bin_by: Attribute whose finite numeric values bin the clipped length

    Returns:
        (total_km, bins) where bins maps attribute value -> km
    """
    total_km = 0.0
    bins: Dict[float, float] = {}
    if not collection:
        return total_km, bins

    skipped = 0
    for f in collection:
        parts = line_parts(f.geometry) if f.geom_type in ("LineString", "MultiLineString") else []
        if not parts:
            skipped += 1
            continue

        value = _bin_value(f.get(bin_by)) if bin_by else None
        for part in parts:
            clipped = clip(part, bbox)
            if clipped is None:
                continue
            km = line_length(clipped)
            total_km += km
            if value is not None:
                bins[value] = bins.get(value, 0.0) + km

    if skipped:
        log.debug(f"aggregate_length skipped {skipped} features without line geometry")
    return total_km, bins


def aggregate_count(collection: Optional[FeatureCollection]) -> int:
    return len(collection) if collection else 0


def top_bins(bins: Dict[float, float], limit: int = TOP_BINS) -> List[Tuple[float, float]]:
    """Rows for display: longest bins first, at most `limit` of them."""
    rows = sorted(bins.items(), key=lambda item: item[1], reverse=True)
    return rows[:limit]
