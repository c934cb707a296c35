"""
Shared fixtures: tiny GeoTIFFs on the EPSG:5070 90 m grid, matching
expectations, and fakes for the injected encoder and host probe.
"""

import shutil
from pathlib import Path
from typing import List, Optional, Set, Tuple

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin

from core.config import ExpectedSpatialSettings, PipelineSettings
from core.inventory.validator import SpatialExpectations

# Fixture grid: 10 x 10 cells of 90 m
WEST = -2_000_000.0
NORTH = 2_000_000.0
RES = 90.0
SIZE = 10
EAST = WEST + SIZE * RES
SOUTH = NORTH - SIZE * RES


def write_raster(
    path: Path,
    data: Optional[np.ndarray] = None,
    dtype: str = "float32",
    crs: Optional[str] = "EPSG:5070",
    west: float = WEST,
    north: float = NORTH,
    res: float = RES,
    nodata: Optional[float] = None,
) -> Path:
    """Write a single-band GeoTIFF and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if data is None:
        data = np.arange(SIZE * SIZE).reshape(SIZE, SIZE).astype(dtype)
    profile = {
        "driver": "GTiff",
        "width": data.shape[1],
        "height": data.shape[0],
        "count": 1,
        "dtype": data.dtype.name,
        "transform": from_origin(west, north, res, res),
        "nodata": nodata,
    }
    if crs is not None:
        profile["crs"] = crs
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(data, 1)
    return path


class FakeEncoder:
    """Copies the source instead of encoding; records every call."""

    def __init__(self, fail_on: Optional[Set[str]] = None):
        self.calls: List[Tuple[Path, Path, str]] = []
        self.fail_on = fail_on or set()

    def encode(self, src, dst, resampling):
        self.calls.append((Path(src), Path(dst), resampling.value))
        if Path(src).name in self.fail_on:
            raise RuntimeError(f"encoder exploded on {Path(src).name}")
        Path(dst).parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dst)


class FakeProbe:
    """Reports a fixed answer and records probed URLs."""

    def __init__(self, hosted: bool = True):
        self.hosted = hosted
        self.urls: List[str] = []

    def exists(self, url: str) -> bool:
        self.urls.append(url)
        return self.hosted


@pytest.fixture
def make_raster():
    """Factory writing GeoTIFFs on the fixture grid."""
    return write_raster


@pytest.fixture
def expectations() -> SpatialExpectations:
    """Expectations matching rasters written by ``make_raster``."""
    return SpatialExpectations(
        crs_code=5070,
        res_x=RES,
        res_y=RES,
        xmin=WEST,
        xmax=EAST,
        ymin=SOUTH,
        ymax=NORTH,
    )


@pytest.fixture
def pipeline_settings(tmp_path) -> PipelineSettings:
    """Settings rooted in tmp_path with expectations matching the fixture grid."""
    return PipelineSettings(
        data_dir=tmp_path / "data",
        config_dir=tmp_path / "config",
        reports_dir=tmp_path / "reports",
        cog_dir=tmp_path / "cogs",
        stac_dir=tmp_path / "stac",
        stats_mode="none",
        expected=ExpectedSpatialSettings(
            crs_code=5070,
            res_x=RES,
            res_y=RES,
            xmin=WEST,
            xmax=EAST,
            ymin=SOUTH,
            ymax=NORTH,
        ),
    )


@pytest.fixture
def fake_encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture
def make_encoder():
    """Factory for fake encoders, optionally failing on given source names."""
    return FakeEncoder


@pytest.fixture
def make_probe():
    """Factory for fake host probes."""
    return FakeProbe
