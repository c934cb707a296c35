"""
Cloud-Optimized GeoTIFF conversion.

Converts every row of the consistent inventory into a COG:

- output path: ``<cog_dir>/<filename>`` (flat) or
  ``<cog_dir>/<data_type>/<domain>/<filename>`` (nested)
- existing outputs are skipped, never overwritten
- overview resampling is chosen per layer (see ``core.cog.resampling``)
- fixed creation options: 512 px tiles, DEFLATE with predictor, overviews
  rebuilt, bounded encoder threads
- encoder failures are recorded per row and the batch continues

The encoder writes to a hidden ``.<name>.partial`` file next to the target
and renames it into place, so an interrupted encode never leaves a file a
later run would mistake for a finished COG.
"""

import logging
import os
from collections import Counter
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple, Union

import pandas as pd
import rasterio
import rasterio.shutil

from core.config import CogLayout
from core.errors import MissingArtifactError, MissingColumnsError, OutputCollisionError
from core.cog.resampling import OverviewResampling, choose_resampling
from core.inventory.classifier import canonical_output_filename
from core.inventory.records import clean_value

logger = logging.getLogger(__name__)

INVENTORY_PRODUCER = "rcat inventory"

REQUIRED_COLUMNS = ["filepath", "data_type", "domain", "pixel_datatype"]

COG_BLOCKSIZE = 512
COG_COMPRESSION = "DEFLATE"


class ConversionStatus(str, Enum):
    """Outcome of one conversion attempt."""

    CONVERTED = "converted"
    SKIPPED_EXISTS = "skipped_exists"
    FAILED = "failed"


@dataclass
class COGConfig:
    """Configuration of one conversion run."""

    metadata_path: Path
    cog_dir: Path
    log_path: Path
    layout: CogLayout = CogLayout.FLAT
    num_threads: int = 50
    flush_every: int = 25
    block_size: int = COG_BLOCKSIZE
    compression: str = COG_COMPRESSION

    def __post_init__(self):
        self.metadata_path = Path(self.metadata_path)
        self.cog_dir = Path(self.cog_dir)
        self.log_path = Path(self.log_path)
        self.layout = CogLayout(self.layout)


@dataclass
class COGOutputRecord:
    """One row of the conversion log."""

    source_filepath: str
    output_path: str
    data_type: Optional[str] = None
    domain: Optional[str] = None
    dimension: Optional[str] = None
    pixel_datatype: Optional[str] = None
    resampling_method: Optional[str] = None
    status: str = ConversionStatus.FAILED.value
    message: Optional[str] = None


LOG_COLUMNS = [f.name for f in fields(COGOutputRecord)]


class COGEncoder(Protocol):
    """Writes one raster as a COG; raises on failure."""

    def encode(self, src: Path, dst: Path, resampling: OverviewResampling) -> None:
        ...


class RasterioCOGEncoder:
    """
    COG encoder backed by the GDAL COG driver through rasterio.

    Example:
        encoder = RasterioCOGEncoder(num_threads=8)
        encoder.encode(Path("in.tif"), Path("cogs/in.tif"), OverviewResampling.AVERAGE)
    """

    def __init__(
        self,
        block_size: int = COG_BLOCKSIZE,
        compression: str = COG_COMPRESSION,
        num_threads: int = 50,
    ):
        self.block_size = block_size
        self.compression = compression
        self.num_threads = num_threads

    def creation_options(self, resampling: OverviewResampling) -> Dict[str, str]:
        return {
            "COMPRESS": self.compression,
            "PREDICTOR": "YES",
            "BLOCKSIZE": str(self.block_size),
            "RESAMPLING": resampling.gdal_name,
            "OVERVIEWS": "IGNORE_EXISTING",
            "NUM_THREADS": str(self.num_threads),
        }

    def encode(self, src: Path, dst: Path, resampling: OverviewResampling) -> None:
        dst = Path(dst)
        dst.parent.mkdir(parents=True, exist_ok=True)
        partial = partial_path(dst)
        try:
            with rasterio.Env(GDAL_NUM_THREADS=str(self.num_threads)):
                rasterio.shutil.copy(
                    str(src), str(partial), driver="COG", **self.creation_options(resampling)
                )
            os.replace(partial, dst)
        except Exception:
            if partial.exists():
                partial.unlink()
            raise


@dataclass
class ConversionResult:
    """Log rows and status counts of a conversion run."""

    records: List[COGOutputRecord] = field(default_factory=list)
    log_path: Optional[Path] = None

    @property
    def status_counts(self) -> Dict[str, int]:
        return dict(Counter(r.status for r in self.records))

    @property
    def resampling_status_counts(self) -> Dict[Tuple[str, str], int]:
        return dict(Counter((r.resampling_method, r.status) for r in self.records))

    @property
    def failed(self) -> List[COGOutputRecord]:
        return [r for r in self.records if r.status == ConversionStatus.FAILED.value]


def partial_path(dst: Path) -> Path:
    """Hidden temporary sibling of a COG output."""
    return dst.with_name(f".{dst.name}.partial")


def output_path_for(
    row: Mapping[str, Any],
    cog_dir: Union[str, Path],
    layout: Union[CogLayout, str] = CogLayout.FLAT,
) -> Path:
    """
    COG output path of one inventory row.

    Falls back to deriving the canonical filename from ``filepath`` for
    tables written before that column existed.
    """
    filename = clean_value(row.get("canonical_output_filename"))
    if not filename:
        filename = canonical_output_filename(str(row["filepath"]))
    cog_dir = Path(cog_dir)
    if CogLayout(layout) == CogLayout.NESTED:
        data_type = clean_value(row.get("data_type")) or "unknown"
        domain = clean_value(row.get("domain")) or "unknown"
        return cog_dir / str(data_type) / str(domain) / str(filename)
    return cog_dir / str(filename)


def load_table(path: Path, producer: str, required: List[str]) -> pd.DataFrame:
    """
    Load an upstream CSV table and check its columns.

    Raises:
        MissingArtifactError: If the file is absent
        MissingColumnsError: If required columns are absent
    """
    if not path.exists():
        raise MissingArtifactError(path, producer)
    try:
        frame = pd.read_csv(path)
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=required)
    missing = set(required) - set(frame.columns)
    if missing:
        raise MissingColumnsError(path, missing)
    return frame


def check_collisions(pairs: List[Tuple[str, Path]], what: str = "COG output path") -> None:
    """Raise if two different sources resolve to the same output."""
    sources: Dict[Path, List[str]] = {}
    for source, output in pairs:
        sources.setdefault(output, []).append(source)
    for output, srcs in sources.items():
        if len(set(srcs)) > 1:
            raise OutputCollisionError(what, str(output), srcs)


class COGConverter:
    """
    Converts the consistent inventory into COGs.

    Example:
        converter = COGConverter(settings.cog_config())
        result = converter.run()
        print(result.status_counts)
    """

    def __init__(self, config: COGConfig, encoder: Optional[COGEncoder] = None):
        self.config = config
        self.encoder = encoder or RasterioCOGEncoder(
            block_size=config.block_size,
            compression=config.compression,
            num_threads=config.num_threads,
        )

    def write_log(self, records: List[COGOutputRecord]) -> Path:
        path = self.config.log_path
        path.parent.mkdir(parents=True, exist_ok=True)
        frame = pd.DataFrame([asdict(r) for r in records], columns=LOG_COLUMNS)
        frame.to_csv(path, index=False)
        return path

    def convert_row(self, row: Mapping[str, Any], output: Path) -> COGOutputRecord:
        """Convert one row; never raises for per-file problems."""
        dimension = clean_value(row.get("dimension"))
        pixel_datatype = clean_value(row.get("pixel_datatype"))
        resampling = choose_resampling(dimension, pixel_datatype)

        record = COGOutputRecord(
            source_filepath=str(row["filepath"]),
            output_path=str(output),
            data_type=clean_value(row.get("data_type")),
            domain=clean_value(row.get("domain")),
            dimension=dimension,
            pixel_datatype=pixel_datatype,
            resampling_method=resampling.value,
        )

        if output.exists():
            record.status = ConversionStatus.SKIPPED_EXISTS.value
            return record

        source = Path(record.source_filepath)
        if not source.exists():
            record.status = ConversionStatus.FAILED.value
            record.message = "input file missing"
            return record

        try:
            self.encoder.encode(source, output, resampling)
            record.status = ConversionStatus.CONVERTED.value
        except Exception as e:
            logger.error(f"COG conversion failed for {source}: {e}")
            record.status = ConversionStatus.FAILED.value
            record.message = str(e)
        return record

    def run(
        self,
        progress: Optional[Callable[[int, int, COGOutputRecord], None]] = None,
    ) -> ConversionResult:
        """
        Convert every row of the consistent inventory, in table order.

        Returns:
            ConversionResult; empty (and no log written) when the table has
            no rows

        Raises:
            MissingArtifactError: If the consistent inventory is absent
            OutputCollisionError: If two rows resolve to the same output
        """
        frame = load_table(self.config.metadata_path, INVENTORY_PRODUCER, REQUIRED_COLUMNS)
        result = ConversionResult()
        if frame.empty:
            logger.info(f"No rows in {self.config.metadata_path}; nothing to convert")
            return result

        rows = frame.to_dict("records")
        outputs = [output_path_for(r, self.config.cog_dir, self.config.layout) for r in rows]
        check_collisions([(str(r["filepath"]), o) for r, o in zip(rows, outputs)])

        total = len(rows)
        for i, (row, output) in enumerate(zip(rows, outputs), start=1):
            record = self.convert_row(row, output)
            result.records.append(record)
            if progress is not None:
                progress(i, total, record)
            if i % self.config.flush_every == 0:
                self.write_log(result.records)

        result.log_path = self.write_log(result.records)
        logger.info(f"Conversion finished: {result.status_counts}")
        return result
