"""
ArcGIS MapServer feature source.

Queries one layer of an ArcGIS REST MapServer by bounding box and `where`
predicate, one page at a time. Transport errors are retried with
exponential backoff; service errors are raised to the caller.
"""

import logging
from typing import Dict, List, Optional

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.models import BoundingBox, Feature, FeatureCollection
from loaders.layers import layer_url
from loaders.predicates import normalize_where

log = logging.getLogger(__name__)

# Field types the filter UI cannot compare on
HIDDEN_FIELD_TYPES = ("esriFieldTypeGeometry", "esriFieldTypeOID")


class ArcGISServiceError(RuntimeError):
    """The service answered with an error payload."""


class ArcGISFeatureSource:
    """
    Paged query access to one MapServer layer.

    Usage:
        source = ArcGISFeatureSource.for_layer("waterMains")
        page = source.query(bbox, "nominaldiameter >= 150", offset=0, limit=2000)
        fields = source.describe_fields()
    """

    USER_AGENT = "ServiceReadinessEngine/1.0"

    def __init__(self, url: str, timeout: int = 30, session: Optional[requests.Session] = None):
        """
        Args:
            url: Layer URL, e.g. .../MapServer/84
            timeout: Seconds per HTTP request
            session: Optional shared requests session
        """
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._fields: Optional[List[Dict[str, str]]] = None

    @classmethod
    def for_layer(cls, key: str, service_url: Optional[str] = None, **kwargs) -> "ArcGISFeatureSource":
        url = layer_url(key, service_url) if service_url else layer_url(key)
        return cls(url, **kwargs)

    @retry(
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    def _get_json(self, url: str, params: Dict) -> Dict:
        response = self.session.get(
            url,
            params=params,
            timeout=self.timeout,
            headers={"User-Agent": self.USER_AGENT},
        )
        response.raise_for_status()
        data = response.json()
        if isinstance(data, dict) and data.get("error"):
            err = data["error"]
            raise ArcGISServiceError(f"{url}: {err.get('code', '?')} {err.get('message', 'unknown error')}")
        return data

    def query(
        self,
        bbox: BoundingBox,
        where: Optional[str],
        offset: int,
        limit: int,
        return_geometry: bool = True,
    ) -> List[Feature]:
        """
        Fetch one page of features intersecting bbox and matching where.

        Returns:
            At most `limit` features starting at `offset`
        """
        params = {
            "where": normalize_where(where),
            "geometry": bbox.to_envelope(),
            "geometryType": "esriGeometryEnvelope",
            "inSR": 4326,
            "spatialRel": "esriSpatialRelIntersects",
            "outFields": "*",
            "returnGeometry": "true" if return_geometry else "false",
            "outSR": 4326,
            "resultOffset": offset,
            "resultRecordCount": limit,
            "f": "geojson",
        }
        data = self._get_json(f"{self.url}/query", params)
        features = FeatureCollection.from_geojson(data).features
        log.debug(f"{self.url}: offset {offset} returned {len(features)} features")
        return features

    def describe_fields(self) -> List[Dict[str, str]]:
        """Filterable fields of the layer as [{name, type}], cached."""
        if self._fields is None:
            meta = self._get_json(self.url, {"f": "json"})
            self._fields = [
                {"name": f.get("name"), "type": f.get("type")}
                for f in meta.get("fields") or []
                if f.get("type") not in HIDDEN_FIELD_TYPES
            ]
        return self._fields

    def field_type(self, name: str) -> str:
        for f in self.describe_fields():
            if f["name"] == name:
                return f["type"] or ""
        return ""
