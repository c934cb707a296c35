"""
Overview resampling selection.

The choice is composed from two independent rules:

1. the declared dimension of the layer (structured signal): ``status``
   layers are categorical, so overviews use nearest neighbour;
2. a pixel type heuristic (fallback): integer rasters are assumed to be
   discrete, floating point rasters continuous.
"""

from enum import Enum
from typing import Optional


class OverviewResampling(Enum):
    """Resampling methods used for COG overviews."""

    NEAREST = "nearest"
    AVERAGE = "average"

    @property
    def gdal_name(self) -> str:
        """Name expected by the GDAL COG driver's RESAMPLING option."""
        return self.value.upper()


CATEGORICAL_DIMENSIONS = ("status",)


def resampling_from_dimension(dimension: Optional[str]) -> Optional[OverviewResampling]:
    """Rule 1: nearest neighbour for categorical dimensions, otherwise no opinion."""
    if dimension is not None and str(dimension).lower() in CATEGORICAL_DIMENSIONS:
        return OverviewResampling.NEAREST
    return None


def is_integer_datatype(datatype: Optional[str]) -> bool:
    """True for integer pixel type codes (INT1U, INT2S, ...)."""
    return datatype is not None and "INT" in str(datatype).upper()


def resampling_from_datatype(datatype: Optional[str]) -> OverviewResampling:
    """Rule 2: nearest neighbour for integer pixel types, averaging otherwise."""
    if is_integer_datatype(datatype):
        return OverviewResampling.NEAREST
    return OverviewResampling.AVERAGE


def choose_resampling(dimension: Optional[str], datatype: Optional[str]) -> OverviewResampling:
    """
    Pick the overview resampling of one layer.

    Examples:
        >>> choose_resampling("status", "FLT4S")
        <OverviewResampling.NEAREST: 'nearest'>
        >>> choose_resampling(None, "INT2S")
        <OverviewResampling.NEAREST: 'nearest'>
        >>> choose_resampling("domain_score", "FLT4S")
        <OverviewResampling.AVERAGE: 'average'>
    """
    return resampling_from_dimension(dimension) or resampling_from_datatype(datatype)
