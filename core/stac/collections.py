"""
STAC Catalog and Collection documents for the WRI layers.

One catalog with a single child collection. Both are regenerated on every
run from the item documents on disk, so their extents, summaries and item
links always describe what is actually published.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from core.stac.publisher import (
    CATALOG_FILENAME,
    GEOJSON_MEDIA_TYPE,
    JSON_MEDIA_TYPE,
    PROJECTION_EXTENSION,
    STAC_VERSION,
)

logger = logging.getLogger(__name__)


# Global spatial extent (WGS84), used when no item exists yet
DEFAULT_SPATIAL_EXTENT = [-180.0, -90.0, 180.0, 90.0]

CATALOG_TITLE = "WRI Wildfire Resilience Index"
CATALOG_DESCRIPTION = "WRI raster layers as Cloud Optimized GeoTIFFs (COGs)"

COLLECTION_TITLE = "WRI ignitR Dataset"
COLLECTION_DESCRIPTION = "WRI raster layers (COGs)"

# Item property -> collection summary key
SUMMARY_PROPERTIES = ("data_type", "wri_domain", "wri_dimension", "proj:code")


def build_catalog(catalog_id: str, collection_href: str) -> Dict[str, Any]:
    """Build the root catalog with one child collection."""
    return {
        "type": "Catalog",
        "id": catalog_id,
        "stac_version": STAC_VERSION,
        "title": CATALOG_TITLE,
        "description": CATALOG_DESCRIPTION,
        "links": [
            {"rel": "self", "href": CATALOG_FILENAME, "type": JSON_MEDIA_TYPE},
            {"rel": "root", "href": CATALOG_FILENAME, "type": JSON_MEDIA_TYPE},
            {"rel": "child", "href": collection_href, "type": JSON_MEDIA_TYPE},
        ],
    }


def summarize_items(items: Iterable[Dict[str, Any]]) -> Dict[str, List[Any]]:
    """Sorted distinct values of the summary properties across items."""
    seen: Dict[str, set] = {key: set() for key in SUMMARY_PROPERTIES}
    for item in items:
        properties = item.get("properties", {})
        for key in SUMMARY_PROPERTIES:
            value = properties.get(key)
            if value is not None:
                seen[key].add(value)
    return {key: sorted(values) for key, values in seen.items()}


def build_collection(
    collection_id: str,
    collection_href: str,
    item_datetime: str,
    bbox: Optional[List[float]],
    summaries: Dict[str, List[Any]],
    item_hrefs: Iterable[str] = (),
) -> Dict[str, Any]:
    """
    Build the collection document.

    Args:
        collection_id: Collection identifier
        collection_href: Collection document path relative to the STAC root
        item_datetime: Publication timestamp (single-instant interval)
        bbox: Union of the item bboxes; the global extent when None
        summaries: Distinct property values, see ``summarize_items``
        item_hrefs: Item document paths relative to the STAC root

    Returns:
        A STAC Collection dict.
    """
    links = [
        {"rel": "self", "href": collection_href, "type": JSON_MEDIA_TYPE},
        {"rel": "root", "href": CATALOG_FILENAME, "type": JSON_MEDIA_TYPE},
        {"rel": "parent", "href": CATALOG_FILENAME, "type": JSON_MEDIA_TYPE},
    ]
    links.extend(
        {"rel": "item", "href": href, "type": GEOJSON_MEDIA_TYPE} for href in item_hrefs
    )

    return {
        "type": "Collection",
        "id": collection_id,
        "stac_version": STAC_VERSION,
        "stac_extensions": [PROJECTION_EXTENSION],
        "title": COLLECTION_TITLE,
        "description": COLLECTION_DESCRIPTION,
        "license": "proprietary",
        "extent": {
            "spatial": {"bbox": [bbox or DEFAULT_SPATIAL_EXTENT]},
            "temporal": {"interval": [[item_datetime, item_datetime]]},
        },
        "summaries": summaries,
        "links": links,
    }
