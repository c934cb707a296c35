"""Static STAC catalog emission for converted COGs."""

from core.stac.emitter import ItemSource, StacConfig, StacEmitter, StacResult
from core.stac.geometry import bbox_union, reproject_extent
from core.stac.hosting import HostProbe, HttpHostProbe

__all__ = [
    "HostProbe",
    "HttpHostProbe",
    "ItemSource",
    "StacConfig",
    "StacEmitter",
    "StacResult",
    "bbox_union",
    "reproject_extent",
]
