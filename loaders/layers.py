"""
Network layer registry for the LocationSA viewer MapServer.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from core.settings import DEFAULT_SERVICE_URL

LINE = "line"
POINT = "point"


@dataclass(frozen=True)
class NetworkLayer:
    """One queryable layer of the map service."""
    key: str
    layer_id: int
    label: str
    kind: str                       # LINE layers report length, POINT layers counts only
    bin_by: Optional[str] = None    # attribute binning the length table
    active_by_default: bool = False

    @property
    def is_line(self) -> bool:
        return self.kind == LINE


LAYERS: Dict[str, NetworkLayer] = {
    layer.key: layer
    for layer in [
        NetworkLayer("waterMains", 84, "Water Main", LINE, bin_by="nominaldiameter", active_by_default=True),
        NetworkLayer("reclaimed", 83, "Reclaimed Water Main", LINE),
        NetworkLayer("hydrants", 334, "Hydrant", POINT, active_by_default=True),
        NetworkLayer("pillarHydrants", 335, "Pillar Hydrant", POINT),
        NetworkLayer("wwGravity", 85, "WW Gravity Main", LINE),
        NetworkLayer("wwLowPressure", 86, "WW Low Pressure", LINE),
        NetworkLayer("wwPumping", 87, "WW Pumping", LINE),
        NetworkLayer("wwVacuum", 88, "WW Vacuum", LINE),
    ]
}


def get_layer(key: str) -> NetworkLayer:
    try:
        return LAYERS[key]
    except KeyError:
        raise KeyError(f"Unknown layer {key!r}; expected one of {sorted(LAYERS)}")


def layer_url(key: str, service_url: str = DEFAULT_SERVICE_URL) -> str:
    return f"{service_url.rstrip('/')}/{get_layer(key).layer_id}"


def default_active_layers() -> List[str]:
    return [key for key, layer in LAYERS.items() if layer.active_by_default]
