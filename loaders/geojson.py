"""
Local GeoJSON loading for the readiness analysis (growth areas, networks).
"""

import json
import logging
import math
from pathlib import Path
from typing import Union

from core.geometry import validate_lonlat
from core.models import FeatureCollection

log = logging.getLogger(__name__)


def load_collection(path: Union[str, Path], required: bool = True) -> FeatureCollection:
    """
    Load a GeoJSON FeatureCollection file.

    Args:
        path: File to read
        required: When False a missing file gives an empty collection

    Raises:
        FileNotFoundError: required file is missing
        ValueError: file is not valid GeoJSON in lon/lat
    """
    path = Path(path)
    if not path.exists():
        if required:
            raise FileNotFoundError(f"Failed to load {path}")
        log.warning(f"No {path.name} found, continuing without it.")
        return FeatureCollection()

    with path.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path} is not valid JSON: {e}")

    if not isinstance(data, dict) or data.get("type") != "FeatureCollection":
        raise ValueError(f"{path} is not a GeoJSON FeatureCollection")

    collection = FeatureCollection.from_geojson(data)
    for feature in collection:
        if feature.geometry is not None:
            validate_lonlat(feature.geometry)

    log.info(f"Loaded {len(collection)} features from {path.name}")
    return collection


def write_collection(collection: FeatureCollection, path: Union[str, Path]) -> None:
    """Write as GeoJSON; unbounded distances are written as null."""
    data = collection.to_geojson()
    for feature in data["features"]:
        feature["properties"] = {
            k: (None if isinstance(v, float) and not math.isfinite(v) else v)
            for k, v in feature["properties"].items()
        }
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False)
