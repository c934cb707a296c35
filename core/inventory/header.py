"""
Raster Header and Statistics Extraction.

Reads the structural metadata of a single raster (dimensions, resolution,
CRS, extent, pixel type, file size) and, optionally, summary statistics of
its first band:

- sample: min/max/mean/NA% from a fixed-size, seeded uniform random sample
- global: exact min/max/mean/NA% over every pixel (slow on large rasters)

All reads are isolated per file: ``HeaderExtractor.extract`` never raises.
Any failure is returned as a record with ``read_succeeded=False`` and a
readable ``read_error`` so the file can be logged and retried later.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Tuple, Union

import numpy as np
import rasterio
from rasterio.windows import Window

from core.inventory.records import RasterFileRecord

logger = logging.getLogger(__name__)

# numpy dtype name -> compact pixel type code (signedness + bytes)
DATATYPE_CODES = {
    "uint8": "INT1U",
    "int8": "INT1S",
    "uint16": "INT2U",
    "int16": "INT2S",
    "uint32": "INT4U",
    "int32": "INT4S",
    "uint64": "INT8U",
    "int64": "INT8S",
    "float32": "FLT4S",
    "float64": "FLT8S",
}

BYTES_PER_MB = 2 ** 20


def pixel_datatype_code(dtype: Union[str, np.dtype]) -> str:
    """
    Map a numpy/rasterio dtype to its compact pixel type code.

    Unknown dtypes are returned upper-cased so the integer-family test
    used for resampling (``"INT" in code``) still works on them.
    """
    name = np.dtype(dtype).name if not isinstance(dtype, str) else dtype
    return DATATYPE_CODES.get(name.lower(), name.upper())


@dataclass
class ValueSummary:
    """Summary statistics of the valid pixels of one band."""

    value_min: Optional[float]
    value_max: Optional[float]
    value_mean: Optional[float]
    na_percent: float


class HeaderExtractor:
    """
    Extracts inventory records from raster files.

    Example:
        extractor = HeaderExtractor(seed=1)
        record = extractor.extract("data/water/water_domain_score.tif", sample_size=200_000)
        if not record.read_succeeded:
            print(record.read_error)
    """

    def __init__(
        self,
        seed: int = 1,
        chunk_rows: int = 256,
        opener: Optional[Callable[..., Any]] = None,
    ):
        """
        Initialize extractor.

        Args:
            seed: Seed of the pixel sampler, fixed for reproducible summaries
            chunk_rows: Rows read per window when scanning pixel values
            opener: Dataset opener, ``rasterio.open`` by default
        """
        self.seed = seed
        self.chunk_rows = max(1, chunk_rows)
        self._open = opener or rasterio.open

    def extract(
        self,
        filepath: Union[str, Path],
        sample_size: Optional[int] = None,
        global_stats: bool = False,
    ) -> RasterFileRecord:
        """
        Read one raster into an inventory record.

        Args:
            filepath: Path to the raster
            sample_size: Number of pixels to sample for value summaries;
                None skips sampling (header-only read)
            global_stats: Compute exact statistics over all pixels instead
                of sampling

        Returns:
            RasterFileRecord; on any failure ``read_succeeded`` is False
        """
        filepath = str(filepath)
        record = RasterFileRecord(filepath=filepath, filename=os.path.basename(filepath))

        try:
            with self._open(filepath) as src:
                self._read_header(src, record)
                record.file_size_mb = round(os.path.getsize(filepath) / BYTES_PER_MB, 2)

                summary = None
                if global_stats:
                    summary = self.global_summary(src)
                elif sample_size:
                    summary = self.sample_summary(src, sample_size)
                if summary is not None:
                    record.value_min = summary.value_min
                    record.value_max = summary.value_max
                    record.value_mean = summary.value_mean
                    record.na_percent = summary.na_percent

            record.read_succeeded = True
        except Exception as e:
            logger.warning(f"Failed to read {filepath}: {e}")
            return RasterFileRecord(
                filepath=filepath,
                filename=record.filename,
                read_succeeded=False,
                read_error=f"{type(e).__name__}: {e}",
            )

        return record

    def _read_header(self, src: Any, record: RasterFileRecord) -> None:
        record.rows = int(src.height)
        record.cols = int(src.width)
        record.cell_count = int(src.height) * int(src.width)
        record.band_count = int(src.count)

        res_x, res_y = src.res
        record.resolution_x = float(res_x)
        record.resolution_y = float(res_y)

        record.crs_code, record.crs_wkt = crs_fields(src.crs)

        bounds = src.bounds
        record.extent_xmin = float(bounds.left)
        record.extent_xmax = float(bounds.right)
        record.extent_ymin = float(bounds.bottom)
        record.extent_ymax = float(bounds.top)

        record.pixel_datatype = pixel_datatype_code(src.dtypes[0])

    def sample_summary(self, src: Any, sample_size: int) -> ValueSummary:
        """
        Summarize a seeded uniform random sample of band 1.

        Pixels are drawn without replacement; when the raster has fewer
        cells than ``sample_size`` every cell is used.
        """
        n_cells = int(src.width) * int(src.height)
        n = min(int(sample_size), n_cells)
        if n == 0:
            return ValueSummary(None, None, None, 0.0)

        rng = np.random.default_rng(self.seed)
        flat = np.sort(rng.choice(n_cells, size=n, replace=False))
        rows = flat // src.width
        cols = flat % src.width

        values = np.empty(n, dtype="float64")
        missing = np.zeros(n, dtype=bool)

        for row_off, data, nodata_mask in self._iter_chunks(src):
            lo = np.searchsorted(rows, row_off, side="left")
            hi = np.searchsorted(rows, row_off + data.shape[0], side="left")
            if lo == hi:
                continue
            r = rows[lo:hi] - row_off
            c = cols[lo:hi]
            values[lo:hi] = data[r, c]
            missing[lo:hi] = nodata_mask[r, c]

        missing |= np.isnan(values)
        valid = values[~missing]
        return _summarize(valid, na_fraction=float(missing.mean()), digits=3)

    def global_summary(self, src: Any) -> ValueSummary:
        """Exact statistics of band 1, scanning the raster window by window."""
        v_min = np.inf
        v_max = -np.inf
        v_sum = 0.0
        n_valid = 0
        n_missing = 0

        for _, data, nodata_mask in self._iter_chunks(src):
            values = data.astype("float64", copy=False)
            missing = nodata_mask | np.isnan(values)
            valid = values[~missing]
            n_missing += int(missing.sum())
            if valid.size:
                v_min = min(v_min, float(valid.min()))
                v_max = max(v_max, float(valid.max()))
                v_sum += float(valid.sum())
                n_valid += int(valid.size)

        total = n_valid + n_missing
        na_percent = round(n_missing / total * 100, 2) if total else 0.0
        if n_valid == 0:
            return ValueSummary(None, None, None, na_percent)
        return ValueSummary(v_min, v_max, v_sum / n_valid, na_percent)

    def _iter_chunks(self, src: Any) -> Iterator[Tuple[int, np.ndarray, np.ndarray]]:
        """Yield (row_offset, values, nodata_mask) for horizontal strips of band 1."""
        for row_off in range(0, int(src.height), self.chunk_rows):
            height = min(self.chunk_rows, int(src.height) - row_off)
            window = Window(0, row_off, int(src.width), height)
            data = src.read(1, window=window, masked=True)
            yield row_off, np.ma.getdata(data), np.ma.getmaskarray(data)


def crs_fields(crs: Any) -> Tuple[Optional[int], Optional[str]]:
    """
    Split a CRS into (EPSG code, WKT definition).

    A missing or empty CRS yields (None, None); a CRS without an EPSG
    equivalent yields (None, wkt).
    """
    if crs is None or not str(crs).strip():
        return None, None
    try:
        code = crs.to_epsg()
    except Exception as e:
        logger.debug(f"Could not derive EPSG code: {e}")
        code = None
    try:
        wkt = crs.to_wkt()
    except Exception as e:
        logger.debug(f"Could not export CRS to WKT: {e}")
        wkt = str(crs)
    return (int(code) if code is not None else None), wkt


def _summarize(valid: np.ndarray, na_fraction: float, digits: int) -> ValueSummary:
    na_percent = round(na_fraction * 100, digits)
    if valid.size == 0:
        return ValueSummary(None, None, None, na_percent)
    return ValueSummary(
        value_min=float(valid.min()),
        value_max=float(valid.max()),
        value_mean=float(valid.mean()),
        na_percent=na_percent,
    )


def extract_header(
    filepath: Union[str, Path],
    sample_size: Optional[int] = None,
    seed: int = 1,
) -> RasterFileRecord:
    """Convenience function: extract one record with default settings."""
    return HeaderExtractor(seed=seed).extract(filepath, sample_size=sample_size)
