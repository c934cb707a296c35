"""COG conversion of the consistent inventory."""

from core.cog.converter import (
    COGConfig,
    COGConverter,
    COGOutputRecord,
    ConversionResult,
    ConversionStatus,
    RasterioCOGEncoder,
    output_path_for,
)
from core.cog.resampling import OverviewResampling, choose_resampling

__all__ = [
    "COGConfig",
    "COGConverter",
    "COGOutputRecord",
    "ConversionResult",
    "ConversionStatus",
    "OverviewResampling",
    "RasterioCOGEncoder",
    "choose_resampling",
    "output_path_for",
]
