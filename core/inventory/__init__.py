"""
Raster inventory: classification, header extraction, validation and the
batched, resumable inventory build.
"""

from core.inventory.builder import (
    InventoryBuilder,
    InventoryConfig,
    InventoryResult,
    classify_path,
)
from core.inventory.classifier import (
    DataType,
    canonical_output_filename,
    classify_data_type,
    classify_dimension,
    extract_domain,
)
from core.inventory.header import HeaderExtractor, pixel_datatype_code
from core.inventory.records import INVENTORY_COLUMNS, RasterFileRecord
from core.inventory.store import InventoryStore, finalize_inventory
from core.inventory.validator import SpatialExpectations, validate

__all__ = [
    "DataType",
    "HeaderExtractor",
    "INVENTORY_COLUMNS",
    "InventoryBuilder",
    "InventoryConfig",
    "InventoryResult",
    "InventoryStore",
    "RasterFileRecord",
    "SpatialExpectations",
    "canonical_output_filename",
    "classify_data_type",
    "classify_dimension",
    "classify_path",
    "extract_domain",
    "finalize_inventory",
    "pixel_datatype_code",
    "validate",
]
