"""
Footprint geometry of STAC items.

Builds the rectangle of a raster extent in its native CRS, reprojects it
to geographic coordinates and returns both its bounding box and its
boundary ring. Also provides the bbox union used for collection extents.
"""

import math
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError
from shapely.geometry import Polygon, box, mapping

from core.errors import StacItemError

GEOGRAPHIC_CRS = "EPSG:4326"

BBox = List[float]
Ring = List[List[float]]


def extent_polygon(xmin: float, xmax: float, ymin: float, ymax: float) -> Polygon:
    """Axis-aligned rectangle of a native-CRS extent."""
    values = (xmin, xmax, ymin, ymax)
    if any(v is None or not math.isfinite(float(v)) for v in values):
        raise StacItemError(f"Non-finite extent values: {values}")
    return box(float(xmin), float(ymin), float(xmax), float(ymax))


def reproject_extent(
    xmin: float,
    xmax: float,
    ymin: float,
    ymax: float,
    src_crs: Union[int, str, None],
    dst_crs: str = GEOGRAPHIC_CRS,
) -> Tuple[BBox, Ring]:
    """
    Reproject a native extent rectangle.

    Args:
        xmin, xmax, ymin, ymax: Extent in the source CRS
        src_crs: EPSG code or any CRS definition pyproj accepts
        dst_crs: Target CRS, geographic by default

    Returns:
        ([west, south, east, north], closed ring of [lon, lat] pairs)

    Raises:
        StacItemError: If the CRS is missing or invalid, or the extent or
            its reprojection is not finite
    """
    if src_crs is None or (isinstance(src_crs, float) and math.isnan(src_crs)):
        raise StacItemError("Source CRS is missing")

    polygon = extent_polygon(xmin, xmax, ymin, ymax)
    try:
        source = CRS.from_user_input(int(src_crs) if _is_integral(src_crs) else src_crs)
        target = CRS.from_user_input(dst_crs)
    except CRSError as e:
        raise StacItemError(f"Invalid CRS {src_crs!r}: {e}") from e

    transformer = Transformer.from_crs(source, target, always_xy=True)
    xs, ys = polygon.exterior.coords.xy
    lons, lats = transformer.transform(list(xs), list(ys))
    projected = Polygon(list(zip(lons, lats)))

    west, south, east, north = projected.bounds
    bbox = [west, south, east, north]
    if not all(math.isfinite(v) for v in bbox):
        raise StacItemError(f"Reprojected extent is not finite: {bbox}")

    ring = [[x, y] for x, y in mapping(projected)["coordinates"][0]]
    return bbox, ring


def ring_geometry(ring: Ring) -> dict:
    """GeoJSON polygon from a single closed ring."""
    return {"type": "Polygon", "coordinates": [ring]}


def bbox_union(bboxes: Iterable[Sequence[float]]) -> Optional[BBox]:
    """
    Geographic union of bounding boxes (min of mins, max of maxes).

    Returns:
        The union, or None when no bbox was given
    """
    boxes = [list(map(float, b)) for b in bboxes if b is not None]
    if not boxes:
        return None
    return [
        min(b[0] for b in boxes),
        min(b[1] for b in boxes),
        max(b[2] for b in boxes),
        max(b[3] for b in boxes),
    ]


def _is_integral(value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return value.is_integer()
    return isinstance(value, str) and value.strip().isdigit()
