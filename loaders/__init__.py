"""
Data loaders for the Service Readiness Engine.

Includes:
- Local GeoJSON networks and growth areas
- ArcGIS MapServer paged queries (LocationSA network layers)
- Predicate (where clause) building
"""

from loaders.geojson import load_collection, write_collection
from loaders.layers import LAYERS, NetworkLayer, get_layer, layer_url, default_active_layers
from loaders.predicates import FilterError, build_where, diameter_where
from loaders.arcgis import ArcGISFeatureSource, ArcGISServiceError
from loaders.paging import fetch_all, RetrievalError

__all__ = [
    "load_collection",
    "write_collection",
    "LAYERS",
    "NetworkLayer",
    "get_layer",
    "layer_url",
    "default_active_layers",
    "FilterError",
    "build_where",
    "diameter_where",
    "ArcGISFeatureSource",
    "ArcGISServiceError",
    "fetch_all",
    "RetrievalError",
]
