"""
STAC Item builder for converted WRI layers.

Builds one STAC Item per COG with:
- the reprojected footprint as geometry and bbox
- projection extension field (proj:code)
- WRI classification properties (data_type, wri_domain, wri_dimension)
- COG encoding hints (cog:blocksize, cog:compression, cog:overview_resampling)
- a single COG data asset

Links and local hrefs are relative to the STAC root directory.
"""

import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

STAC_VERSION = "1.0.0"

PROJECTION_EXTENSION = "https://stac-extensions.github.io/projection/v1.1.0/schema.json"

# STAC Item content type for COG assets
COG_MEDIA_TYPE = "image/tiff; application=geotiff; profile=cloud-optimized"

JSON_MEDIA_TYPE = "application/json"
GEOJSON_MEDIA_TYPE = "application/geo+json"

CATALOG_FILENAME = "catalog.json"


def build_stac_item(
    item_id: str,
    collection_id: str,
    bbox: List[float],
    geometry: Dict[str, Any],
    item_datetime: str,
    asset_href: str,
    self_href: str,
    collection_href: str,
    crs_code: int,
    data_type: Optional[str] = None,
    domain: Optional[str] = None,
    dimension: Optional[str] = None,
    is_hosted: Optional[bool] = None,
    cog_properties: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build a STAC Item for one COG.

    Args:
        item_id: Item identifier (canonical filename without extension)
        collection_id: Parent collection identifier
        bbox: Geographic [west, south, east, north]
        geometry: GeoJSON polygon of the footprint
        item_datetime: Publication timestamp shared by the run
        asset_href: Remote URL or path relative to the STAC root
        self_href: Item document path relative to the STAC root
        collection_href: Collection document path relative to the STAC root
        crs_code: EPSG code of the source raster
        data_type: indicator, aggregate or final_score
        domain: WRI domain
        dimension: Resilience dimension, if any
        is_hosted: Hosting probe outcome; omitted when no probe was made
        cog_properties: Extra ``cog:*`` properties

    Returns:
        A STAC Item dict ready to be written as JSON.
    """
    properties: Dict[str, Any] = {
        "datetime": item_datetime,
        # Projection extension
        "proj:code": f"EPSG:{int(crs_code)}",
        # WRI classification
        "data_type": data_type,
        "wri_domain": domain,
        "wri_dimension": dimension,
    }
    if cog_properties:
        properties.update({k: v for k, v in cog_properties.items() if v is not None})
    if is_hosted is not None:
        properties["is_hosted"] = bool(is_hosted)

    return {
        "type": "Feature",
        "stac_version": STAC_VERSION,
        "stac_extensions": [PROJECTION_EXTENSION],
        "id": item_id,
        "collection": collection_id,
        "geometry": geometry,
        "bbox": bbox,
        "properties": properties,
        "assets": {
            "data": {
                "href": asset_href,
                "type": COG_MEDIA_TYPE,
                "roles": ["data"],
                "title": "COG",
            }
        },
        "links": [
            {"rel": "self", "href": self_href, "type": GEOJSON_MEDIA_TYPE},
            {"rel": "root", "href": CATALOG_FILENAME, "type": JSON_MEDIA_TYPE},
            {"rel": "parent", "href": collection_href, "type": JSON_MEDIA_TYPE},
            {"rel": "collection", "href": collection_href, "type": JSON_MEDIA_TYPE},
        ],
    }
