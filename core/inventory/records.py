"""
Inventory record model.

``RasterFileRecord`` is one row of the inventory table. The column names
and their order in ``INVENTORY_COLUMNS`` are the on-disk contract between
the inventory step and every downstream step, so fields are only ever
added at the end.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd


@dataclass
class RasterFileRecord:
    """
    Header, statistics and validation outcome for one source raster.

    Attributes:
        filepath: Source path, unique key of the inventory
        filename: Basename of ``filepath``
        data_type: indicator, aggregate or final_score
        domain: WRI domain, ``"unknown"`` or ``"all_domains"``
        dimension: resistance, recovery, status, domain_score, resilience or None
        canonical_output_filename: Collision-safe COG basename
        read_succeeded: Whether the raster header could be read
        read_error: Reader error message when ``read_succeeded`` is False
        passes_assumptions: Validator verdict, None only when the read failed
            (or while a data-driven verdict is still pending)
        assumption_error: First violated assumption, if any
    """

    filepath: str
    filename: str
    data_type: Optional[str] = None
    domain: Optional[str] = None
    dimension: Optional[str] = None
    canonical_output_filename: Optional[str] = None

    # Structure
    rows: Optional[int] = None
    cols: Optional[int] = None
    cell_count: Optional[int] = None
    band_count: Optional[int] = None
    resolution_x: Optional[float] = None
    resolution_y: Optional[float] = None
    crs_code: Optional[int] = None
    crs_wkt: Optional[str] = None
    extent_xmin: Optional[float] = None
    extent_xmax: Optional[float] = None
    extent_ymin: Optional[float] = None
    extent_ymax: Optional[float] = None
    pixel_datatype: Optional[str] = None
    file_size_mb: Optional[float] = None

    # Statistics
    value_min: Optional[float] = None
    value_max: Optional[float] = None
    value_mean: Optional[float] = None
    na_percent: Optional[float] = None

    # Outcome
    read_succeeded: bool = False
    read_error: Optional[str] = None
    passes_assumptions: Optional[bool] = None
    assumption_error: Optional[str] = None

    @property
    def extent(self) -> tuple:
        """Extent as (xmin, xmax, ymin, ymax)."""
        return (self.extent_xmin, self.extent_xmax, self.extent_ymin, self.extent_ymax)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a flat dictionary keyed by inventory column."""
        return asdict(self)

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> "RasterFileRecord":
        """
        Build a record from a table row.

        Missing columns take their defaults and NaN cells become None, so
        rows read back from CSV round-trip into the same record.
        """
        kwargs = {}
        for f in fields(cls):
            if f.name not in row:
                continue
            kwargs[f.name] = clean_value(row[f.name])
        for int_field in NULLABLE_INT_COLUMNS:
            if kwargs.get(int_field) is not None:
                kwargs[int_field] = int(kwargs[int_field])
        for bool_field in NULLABLE_BOOL_COLUMNS:
            if bool_field in kwargs:
                kwargs[bool_field] = parse_optional_bool(kwargs[bool_field])
        if kwargs.get("read_succeeded") is None:
            kwargs["read_succeeded"] = False
        return cls(**kwargs)


INVENTORY_COLUMNS: List[str] = [f.name for f in fields(RasterFileRecord)]

# Columns that hold integers but may be empty.
NULLABLE_INT_COLUMNS = ["rows", "cols", "cell_count", "band_count", "crs_code"]

# Columns that hold booleans but may be empty.
NULLABLE_BOOL_COLUMNS = ["read_succeeded", "passes_assumptions"]


def clean_value(value: Any) -> Any:
    """Map pandas/numpy missing markers and scalars to plain Python values."""
    if isinstance(value, np.generic):
        value = value.item()
    if value is None or (not isinstance(value, (str, bytes)) and pd.isna(value)):
        return None
    return value


def parse_optional_bool(value: Any) -> Optional[bool]:
    """Parse True/False/None from the spellings a CSV round-trip produces."""
    value = clean_value(value)
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in ("true", "t", "1", "yes"):
        return True
    if text in ("false", "f", "0", "no"):
        return False
    if text in ("", "nan", "na", "none", "<na>"):
        return None
    raise ValueError(f"Not a boolean: {value!r}")
