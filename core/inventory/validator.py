"""
Spatial Assumption Validator.

Checks an inventory record against an expected spatial reference: CRS
code, cell size and extent. Checks run in a fixed order and stop at the
first violation, so ``assumption_error`` always names a single problem.

Expectations are an immutable value object passed at call time. They come
either from configuration (fixed constants) or from the data itself
(``SpatialExpectations.from_mode``, the most common values observed).
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from core.inventory.records import RasterFileRecord

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1e-6


@dataclass(frozen=True)
class SpatialExpectations:
    """Expected spatial reference of a consistent raster."""

    crs_code: Optional[int]
    res_x: float
    res_y: float
    xmin: float
    xmax: float
    ymin: float
    ymax: float
    tolerance: float = DEFAULT_TOLERANCE

    @property
    def extent(self) -> Tuple[float, float, float, float]:
        return (self.xmin, self.xmax, self.ymin, self.ymax)

    @classmethod
    def from_mode(
        cls,
        records: Iterable[RasterFileRecord],
        tolerance: float = DEFAULT_TOLERANCE,
    ) -> "SpatialExpectations":
        """
        Derive expectations from the most common observed values.

        Only successfully read records are counted. The extent is treated
        as one composite key, so the expected extent is always one that a
        real file actually has. Ties go to the value seen first.

        Raises:
            ValueError: If no record was read successfully
        """
        ok = [r for r in records if r.read_succeeded]
        if not ok:
            raise ValueError("No successfully read records to derive expectations from")

        def mode(values):
            return Counter(values).most_common(1)[0][0]

        xmin, xmax, ymin, ymax = mode(r.extent for r in ok)
        expectations = cls(
            crs_code=mode(r.crs_code for r in ok),
            res_x=mode(r.resolution_x for r in ok),
            res_y=mode(r.resolution_y for r in ok),
            xmin=xmin,
            xmax=xmax,
            ymin=ymin,
            ymax=ymax,
            tolerance=tolerance,
        )
        logger.info(f"Derived expectations from {len(ok)} records: {expectations}")
        return expectations


def values_close(a: Optional[float], b: Optional[float], tolerance: float) -> bool:
    """Relative-or-absolute closeness; None and NaN are never close."""
    if a is None or b is None:
        return False
    a = float(a)
    b = float(b)
    if math.isnan(a) or math.isnan(b):
        return False
    return math.isclose(a, b, rel_tol=tolerance, abs_tol=tolerance)


def validate(
    record: RasterFileRecord,
    expected: SpatialExpectations,
) -> Tuple[bool, Optional[str]]:
    """
    Check one successfully read record against the expectations.

    Args:
        record: Inventory record with ``read_succeeded`` True
        expected: Spatial reference the record must match

    Returns:
        (passes, error) where error is None when passes is True
    """
    tol = expected.tolerance

    # 1. CRS
    if record.crs_code is None:
        return False, "CRS is missing or has no EPSG code"
    if expected.crs_code is not None and int(record.crs_code) != int(expected.crs_code):
        return False, (
            f"CRS mismatch. Found EPSG:{record.crs_code}, "
            f"expected EPSG:{expected.crs_code}"
        )

    # 2. Resolution
    if not (
        values_close(record.resolution_x, expected.res_x, tol)
        and values_close(record.resolution_y, expected.res_y, tol)
    ):
        return False, (
            f"Resolution mismatch. Found ({record.resolution_x}, {record.resolution_y}), "
            f"expected ({expected.res_x}, {expected.res_y})"
        )

    # 3. Extent
    xmin, xmax, ymin, ymax = record.extent
    if None in (xmin, xmax, ymin, ymax) or not (xmin < xmax and ymin < ymax):
        return False, f"Degenerate extent ({xmin}, {xmax}, {ymin}, {ymax})"

    corners = (
        ("xmin", xmin, expected.xmin),
        ("xmax", xmax, expected.xmax),
        ("ymin", ymin, expected.ymin),
        ("ymax", ymax, expected.ymax),
    )
    for name, found, wanted in corners:
        if not values_close(found, wanted, tol):
            return False, f"Extent {name} mismatch. Found {found}, expected {wanted}"

    return True, None


def apply_validation(
    record: RasterFileRecord,
    expected: SpatialExpectations,
) -> RasterFileRecord:
    """
    Set the verdict fields of a record in place and return it.

    Records that failed to read keep a null verdict.
    """
    if not record.read_succeeded:
        record.passes_assumptions = None
        record.assumption_error = None
        return record
    record.passes_assumptions, record.assumption_error = validate(record, expected)
    return record
