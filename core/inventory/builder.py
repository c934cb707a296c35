"""
Inventory Builder.

Walks the raster tree, classifies every file, extracts and validates the
ones that are new since the last run and flushes them to the scan table in
small batches. A final pass partitions the whole table into consistent,
inconsistent and failed files.

Run states:
    discover -> resume filter -> process loop (batched flush) -> finalize

Re-launching is the recovery path: files already in the scan table are
skipped, so an interrupted run picks up after its last flushed batch.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from core.config import StatsMode, ValidationMode
from core.errors import EmptyResultError, PipelineError
from core.inventory.classifier import (
    ALL_DOMAINS,
    DataType,
    canonical_output_filename,
    classify_data_type,
    classify_dimension,
    extract_domain,
)
from core.inventory.header import HeaderExtractor
from core.inventory.records import RasterFileRecord
from core.inventory.store import (
    CONSISTENT_FILENAME,
    FinalizeResult,
    InventoryStore,
    finalize_inventory,
)
from core.inventory.validator import SpatialExpectations, apply_validation

logger = logging.getLogger(__name__)

INVENTORY_FILENAME = "all_layers_raw.csv"

# Files per flush: exact statistics are slow, so flush more often
GLOBAL_STATS_BATCH_SIZE = 10
DEFAULT_BATCH_SIZE = 50

ProgressCallback = Callable[[int, int, RasterFileRecord], None]


@dataclass
class InventoryConfig:
    """Configuration of one inventory run."""

    data_dir: Path
    config_dir: Path
    reports_dir: Path
    pattern: str = "*.tif"
    stats_mode: StatsMode = StatsMode.SAMPLE
    sample_size: int = 200_000
    sample_seed: int = 1
    batch_size: Optional[int] = None
    validation_mode: ValidationMode = ValidationMode.FIXED
    expectations: Optional[SpatialExpectations] = None
    exclude_retro: bool = False

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.config_dir = Path(self.config_dir)
        self.reports_dir = Path(self.reports_dir)
        self.stats_mode = StatsMode(self.stats_mode)
        self.validation_mode = ValidationMode(self.validation_mode)
        if self.validation_mode == ValidationMode.FIXED and self.expectations is None:
            raise ValueError("Fixed validation mode requires expectations")

    @property
    def effective_batch_size(self) -> int:
        if self.batch_size:
            return self.batch_size
        if self.stats_mode == StatsMode.GLOBAL:
            return GLOBAL_STATS_BATCH_SIZE
        return DEFAULT_BATCH_SIZE

    @property
    def inventory_path(self) -> Path:
        return self.config_dir / INVENTORY_FILENAME


@dataclass
class InventoryResult:
    """Outcome of an inventory run."""

    discovered: int = 0
    excluded: int = 0
    already_processed: int = 0
    processed: int = 0
    read_failures: int = 0
    finalize: Optional[FinalizeResult] = None
    type_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def up_to_date(self) -> bool:
        """True when the run found nothing new to process."""
        return self.processed == 0


def classify_path(path: Path, data_dir: Path, exclude_retro: bool = False) -> Dict[str, Optional[str]]:
    """
    Classification fields of one raster.

    Paths are classified relative to the data root (keeping the root's own
    name as first segment) so that directories above it never influence
    the result.
    """
    try:
        label = Path(data_dir.name) / path.relative_to(data_dir)
    except ValueError:
        label = path
    label_str = label.as_posix()

    data_type = classify_data_type(label_str, exclude_retro=exclude_retro)
    if data_type == DataType.FINAL_SCORE.value:
        domain = ALL_DOMAINS
    else:
        domain = extract_domain(label_str)
    return {
        "data_type": data_type,
        "domain": domain,
        "dimension": classify_dimension(data_type, path.name),
        "canonical_output_filename": canonical_output_filename(label_str),
    }


class InventoryBuilder:
    """
    Builds and finalizes the raster inventory.

    Example:
        builder = InventoryBuilder(settings.inventory_config())
        result = builder.run(progress=lambda i, n, rec: print(i, n, rec.filename))
        print(result.finalize.consistent)
    """

    def __init__(
        self,
        config: InventoryConfig,
        extractor: Optional[HeaderExtractor] = None,
        store: Optional[InventoryStore] = None,
    ):
        self.config = config
        self.extractor = extractor or HeaderExtractor(seed=config.sample_seed)
        self.store = store or InventoryStore(config.inventory_path)

    def discover(self) -> Tuple[List[Tuple[Path, Dict[str, Optional[str]]]], int]:
        """
        Enumerate and classify rasters under the data root.

        Returns:
            ([(path, classification), ...] in sorted order, number excluded)

        Raises:
            PipelineError: If the data root does not exist
        """
        data_dir = self.config.data_dir
        if not data_dir.is_dir():
            raise PipelineError(f"Data directory not found: {data_dir}")

        kept = []
        excluded = 0
        for path in sorted(p for p in data_dir.rglob(self.config.pattern) if p.is_file()):
            labels = classify_path(path, data_dir, self.config.exclude_retro)
            if labels["data_type"] == DataType.EXCLUDE.value:
                excluded += 1
                logger.debug(f"Excluded {path}")
                continue
            kept.append((path.resolve(), labels))

        logger.info(f"Discovered {len(kept)} rasters ({excluded} excluded) under {data_dir}")
        return kept, excluded

    def process_file(self, path: Path, labels: Dict[str, Optional[str]]) -> RasterFileRecord:
        """Extract, classify and (in fixed mode) validate one file."""
        mode = self.config.stats_mode
        record = self.extractor.extract(
            path,
            sample_size=self.config.sample_size if mode == StatsMode.SAMPLE else None,
            global_stats=mode == StatsMode.GLOBAL,
        )
        for name, value in labels.items():
            setattr(record, name, value)

        if self.config.validation_mode == ValidationMode.FIXED:
            apply_validation(record, self.config.expectations)
        return record

    def run(self, progress: Optional[ProgressCallback] = None) -> InventoryResult:
        """
        Execute discover, resume filter, process loop and finalize.

        Args:
            progress: Called as ``progress(i, n, record)`` after each file

        Returns:
            InventoryResult

        Raises:
            PipelineError: If the data root is missing
            EmptyResultError: If a fresh run finds no rasters at all
        """
        result = InventoryResult()
        candidates, result.excluded = self.discover()
        result.discovered = len(candidates)

        processed = self.store.processed_paths()
        if not candidates and not processed:
            raise EmptyResultError(
                f"No rasters matching '{self.config.pattern}' under {self.config.data_dir}"
            )

        remaining = [(p, labels) for p, labels in candidates if str(p) not in processed]
        result.already_processed = len(candidates) - len(remaining)

        consistent_path = self.config.config_dir / CONSISTENT_FILENAME
        if not remaining and consistent_path.exists():
            logger.info("Inventory is up to date; nothing to process")
            return result

        batch_size = self.config.effective_batch_size
        buffer: List[RasterFileRecord] = []
        total = len(remaining)

        for i, (path, labels) in enumerate(remaining, start=1):
            record = self.process_file(path, labels)
            buffer.append(record)
            result.processed += 1
            result.type_counts[record.data_type] = result.type_counts.get(record.data_type, 0) + 1
            if not record.read_succeeded:
                result.read_failures += 1

            if progress is not None:
                progress(i, total, record)

            if len(buffer) >= batch_size:
                self.store.append(buffer)
                logger.info(f"Flushed batch ({i}/{total} processed)")
                buffer = []

        if buffer:
            self.store.append(buffer)

        result.finalize = self.finalize()
        return result

    def finalize(self) -> FinalizeResult:
        """Partition the complete scan table and write the derived tables."""
        return finalize_inventory(
            self.store,
            config_dir=self.config.config_dir,
            reports_dir=self.config.reports_dir,
            expectations=self.config.expectations,
            from_mode=self.config.validation_mode == ValidationMode.MODE,
            write_breakdowns=self.config.stats_mode == StatsMode.GLOBAL,
        )
