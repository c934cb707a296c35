"""
Pipeline Configuration using Pydantic Settings.

Provides centralized configuration for the inventory, COG conversion and
STAC stages with environment variable loading (prefix ``RCAT_``), ``.env``
support, validation, and the default spatial expectations of the WRI
raster collection.

Library code never reads these settings directly: each stage receives a
plain config dataclass built by the ``*_config()`` helpers below.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from core.cog.converter import COGConfig
    from core.inventory.builder import InventoryConfig
    from core.inventory.validator import SpatialExpectations
    from core.stac.emitter import StacConfig


class StatsMode(str, Enum):
    """How much pixel statistics the inventory scan computes."""

    NONE = "none"  # Header fields only
    SAMPLE = "sample"  # Seeded random sample of pixel values
    GLOBAL = "global"  # Exact statistics over every pixel (slow)


class ValidationMode(str, Enum):
    """Where the expected spatial reference comes from."""

    FIXED = "fixed"  # Configured constants
    MODE = "mode"  # Most common values observed in the inventory


class CogLayout(str, Enum):
    """Directory layout of converted COGs."""

    FLAT = "flat"  # <cog_dir>/<filename>
    NESTED = "nested"  # <cog_dir>/<data_type>/<domain>/<filename>


class StacSource(str, Enum):
    """Upstream table the STAC emitter reads."""

    INVENTORY = "inventory"  # Consistent inventory table
    LOG = "log"  # COG conversion log (converted and skipped rows)


class HostingMode(str, Enum):
    """How STAC asset hrefs are resolved."""

    LOCAL = "local"  # Always a path relative to the STAC root
    HYBRID = "hybrid"  # Remote URL when the host has the file, else local


class ExpectedSpatialSettings(BaseSettings):
    """Fixed spatial assumptions every valid raster must satisfy."""

    model_config = SettingsConfigDict(
        env_prefix="RCAT_EXPECTED_",
        env_file=".env",
        extra="ignore",
    )

    crs_code: int = Field(default=5070, description="EPSG code")
    res_x: float = Field(default=90.0, description="Cell width in CRS units")
    res_y: float = Field(default=90.0, description="Cell height in CRS units")
    xmin: float = Field(default=-5216639.67, description="Extent west edge")
    xmax: float = Field(default=-504689.6695, description="Extent east edge")
    ymin: float = Field(default=991231.6885, description="Extent south edge")
    ymax: float = Field(default=6199081.688, description="Extent north edge")
    tolerance: float = Field(default=1e-6, description="Comparison tolerance")

    def to_expectations(self) -> "SpatialExpectations":
        """Freeze into the value object consumed by the validator."""
        from core.inventory.validator import SpatialExpectations

        return SpatialExpectations(
            crs_code=self.crs_code,
            res_x=self.res_x,
            res_y=self.res_y,
            xmin=self.xmin,
            xmax=self.xmax,
            ymin=self.ymin,
            ymax=self.ymax,
            tolerance=self.tolerance,
        )


class PipelineSettings(BaseSettings):
    """Main pipeline settings."""

    model_config = SettingsConfigDict(
        env_prefix="RCAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Locations
    data_dir: Path = Field(default=Path("data"), description="Raw raster root")
    config_dir: Path = Field(
        default=Path("config"), description="Inventory tables directory"
    )
    reports_dir: Path = Field(
        default=Path("outputs/validation_reports"),
        description="Breakdown tables and conversion log directory",
    )
    cog_dir: Path = Field(default=Path("cogs"), description="COG output root")
    stac_dir: Path = Field(default=Path("stac"), description="STAC output root")
    raster_glob: str = Field(default="*.tif", description="Raster file pattern")

    # Inventory
    stats_mode: StatsMode = Field(
        default=StatsMode.SAMPLE, description="Pixel statistics mode"
    )
    sample_size: int = Field(default=200_000, description="Pixels per sample")
    sample_seed: int = Field(default=1, description="Sampling seed")
    batch_size: Optional[int] = Field(
        default=None, description="Files per inventory flush (mode default if unset)"
    )
    validation_mode: ValidationMode = Field(
        default=ValidationMode.FIXED, description="Expectation source"
    )
    exclude_retro_dirs: bool = Field(
        default=False, description="Treat retro* directories as excluded"
    )
    expected: ExpectedSpatialSettings = Field(
        default_factory=ExpectedSpatialSettings
    )

    # COG conversion
    cog_layout: CogLayout = Field(default=CogLayout.FLAT, description="COG layout")
    cog_threads: int = Field(default=50, description="Encoder thread cap")
    cog_log_flush_every: int = Field(
        default=25, description="Rows between conversion log flushes"
    )

    # STAC
    catalog_id: str = Field(default="wri-catalog", description="Catalog id")
    collection_id: str = Field(default="wri_ignitR", description="Collection id")
    item_datetime: str = Field(
        default="2026-06-05T00:00:00Z", description="Publication datetime"
    )
    hosting_mode: HostingMode = Field(
        default=HostingMode.LOCAL, description="Asset href policy"
    )
    hosting_base_url: str = Field(
        default="https://knb.ecoinformatics.org/data/",
        description="Remote host prefix for hosted COGs",
    )
    stac_source: StacSource = Field(
        default=StacSource.INVENTORY, description="Emitter input table"
    )
    probe_timeout: float = Field(default=5.0, description="Probe timeout (s)")

    @field_validator("sample_size", "cog_threads", "cog_log_flush_every")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        """Reject zero and negative counts."""
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v

    @field_validator("batch_size")
    @classmethod
    def batch_size_positive(cls, v: Optional[int]) -> Optional[int]:
        """Allow unset, reject zero and negative batch sizes."""
        if v is not None and v < 1:
            raise ValueError(f"batch_size must be >= 1, got {v}")
        return v

    @property
    def inventory_path(self) -> Path:
        """Append-only scan inventory (every file ever processed)."""
        return self.config_dir / "all_layers_raw.csv"

    @property
    def consistent_path(self) -> Path:
        """Consistent partition, the input of every downstream step."""
        return self.config_dir / "all_layers_consistent.csv"

    @property
    def conversion_log_path(self) -> Path:
        return self.reports_dir / "cog_conversion_log.csv"

    def inventory_config(self) -> "InventoryConfig":
        """Build the inventory stage configuration."""
        from core.inventory.builder import InventoryConfig

        return InventoryConfig(
            data_dir=self.data_dir,
            config_dir=self.config_dir,
            reports_dir=self.reports_dir,
            pattern=self.raster_glob,
            stats_mode=self.stats_mode,
            sample_size=self.sample_size,
            sample_seed=self.sample_seed,
            batch_size=self.batch_size,
            validation_mode=self.validation_mode,
            expectations=self.expected.to_expectations(),
            exclude_retro=self.exclude_retro_dirs,
        )

    def cog_config(self) -> "COGConfig":
        """Build the COG conversion stage configuration."""
        from core.cog.converter import COGConfig

        return COGConfig(
            metadata_path=self.consistent_path,
            cog_dir=self.cog_dir,
            log_path=self.conversion_log_path,
            layout=self.cog_layout,
            num_threads=self.cog_threads,
            flush_every=self.cog_log_flush_every,
        )

    def stac_config(self) -> "StacConfig":
        """Build the STAC stage configuration."""
        from core.stac.emitter import StacConfig

        return StacConfig(
            stac_dir=self.stac_dir,
            cog_dir=self.cog_dir,
            cog_layout=self.cog_layout,
            catalog_id=self.catalog_id,
            collection_id=self.collection_id,
            item_datetime=self.item_datetime,
            hosting_mode=self.hosting_mode,
            hosting_base_url=self.hosting_base_url,
            source=self.stac_source,
            metadata_path=self.consistent_path,
            log_path=self.conversion_log_path,
        )


@lru_cache()
def get_settings() -> PipelineSettings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.

    Returns:
        PipelineSettings instance with loaded configuration.
    """
    return PipelineSettings()


def get_settings_uncached() -> PipelineSettings:
    """
    Get fresh settings instance (useful for testing).

    Returns:
        New PipelineSettings instance with loaded configuration.
    """
    return PipelineSettings()
