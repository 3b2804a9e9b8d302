"""
Analysis Settings

All tunable constants of the readiness and viewport analyses live here.
Values can be overridden from the environment (READINESS_* variables).
"""

import os
import logging
from dataclasses import dataclass, asdict, fields
from typing import Dict

log = logging.getLogger(__name__)

DEFAULT_SERVICE_URL = (
    "https://lsa4.geohub.sa.gov.au/server/rest/services/LSA/LocationSAViewerV32/MapServer"
)

# Every geometry handled by the engine is lon/lat on WGS84.
WORKING_CRS = "EPSG:4326"


@dataclass
class AnalysisSettings:
    """
    Settings for one analysis session.

    IMPORTANT: Every value has an explicit meaning. No magic numbers.
    """

    # Readiness scoring
    candidate_radius_km: float = 2.0
    """Networks further than this from an area's bounding box are ignored."""

    density_buffer_km: float = 0.25
    """Pipe length is measured inside this buffer around each area."""

    proximity_cap_km: float = 0.6
    """Distance at which a network's proximity credit reaches zero."""

    density_target_km: float = 1.5
    """Local pipe length that earns full density credit."""

    # Viewport aggregation
    page_size: int = 2000
    """Features requested per page from the remote service."""

    quiet_interval_seconds: float = 0.35
    """Debounce delay between the last trigger and the recompute."""

    top_bins: int = 12
    """How many length-by-diameter rows are surfaced for display."""

    max_workers: int = 4
    """Concurrent layer retrievals per aggregation pass."""

    # Remote service
    service_url: str = DEFAULT_SERVICE_URL
    """ArcGIS MapServer hosting the network layers."""

    request_timeout_seconds: int = 30
    """Timeout for one page request."""

    def __post_init__(self):
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        if self.quiet_interval_seconds < 0:
            raise ValueError("quiet_interval_seconds must be >= 0")
        for name in ("candidate_radius_km", "density_buffer_km"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        for name in ("proximity_cap_km", "density_target_km"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "AnalysisSettings":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_env(cls) -> "AnalysisSettings":
        """Build settings from READINESS_<FIELD> environment variables."""
        overrides = {}
        for f in fields(cls):
            raw = os.getenv(f"READINESS_{f.name.upper()}")
            if raw is None or raw == "":
                continue
            try:
                if f.type in (int, "int"):
                    overrides[f.name] = int(raw)
                elif f.type in (float, "float"):
                    overrides[f.name] = float(raw)
                else:
                    overrides[f.name] = raw
            except ValueError:
                raise ValueError(f"Invalid value for READINESS_{f.name.upper()}: {raw!r}")
            log.debug(f"Setting {f.name} overridden from environment")
        return cls(**overrides)
