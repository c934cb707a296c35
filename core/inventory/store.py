"""
Inventory persistence.

Two phases with a clear ownership boundary:

- Scan phase: ``InventoryStore.append`` adds flushed batches to the
  append-only scan table (``all_layers_raw.csv``). Rows are never rewritten,
  so an interrupted run loses at most the unflushed batch.
- Finalize phase: ``finalize_inventory`` loads the complete scan table once,
  settles every verdict, partitions it into consistent / inconsistent /
  failed and writes the derived tables. Only finalize writes those files.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

import pandas as pd

from core.errors import MissingArtifactError, MissingColumnsError
from core.inventory.classifier import DataType
from core.inventory.records import INVENTORY_COLUMNS, RasterFileRecord
from core.inventory.validator import SpatialExpectations, apply_validation

logger = logging.getLogger(__name__)

INVENTORY_PRODUCER = "rcat inventory"

CONSISTENT_FILENAME = "all_layers_consistent.csv"
INCONSISTENT_FILENAME = "inconsistent_files_metadata.csv"
FAILED_FILENAME = "failed_files.csv"
DOMAIN_SUMMARY_FILENAME = "domain_summary.csv"

# Per data_type subsets of the consistent table
TYPE_TABLES = {
    DataType.INDICATOR.value: "indicator_layers.csv",
    DataType.AGGREGATE.value: "aggregate_layers.csv",
    DataType.FINAL_SCORE.value: "final_score.csv",
}

# Breakdown table name -> grouping columns
BREAKDOWNS = {
    "resolution_breakdown.csv": ["resolution_x", "resolution_y"],
    "crs_breakdown.csv": ["crs_code"],
    "extent_breakdown.csv": ["extent_xmin", "extent_xmax", "extent_ymin", "extent_ymax"],
}

FAILURE_PREVIEW_LIMIT = 30


def records_frame(records: Iterable[RasterFileRecord]) -> pd.DataFrame:
    """Build a table with the inventory columns in their stable order."""
    return pd.DataFrame([r.to_dict() for r in records], columns=INVENTORY_COLUMNS)


def write_table(frame: pd.DataFrame, path: Path) -> Path:
    """Write a table as CSV, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False)
    return path


def normalize_path(path: Union[str, Path]) -> str:
    """Absolute, symlink-free spelling of a raster path; the resume key."""
    return str(Path(path).resolve())


class InventoryStore:
    """
    Append-only scan table.

    Example:
        store = InventoryStore(Path("config/all_layers_raw.csv"))
        done = store.processed_paths()
        store.append(new_records)
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def append(self, records: List[RasterFileRecord]) -> int:
        """
        Append a batch, creating the file (with header) when absent.

        Returns:
            Number of rows written
        """
        if not records:
            return 0
        self.path.parent.mkdir(parents=True, exist_ok=True)
        header = not self.path.exists() or self.path.stat().st_size == 0
        records_frame(records).to_csv(self.path, mode="a", header=header, index=False)
        logger.debug(f"Appended {len(records)} rows to {self.path}")
        return len(records)

    def load(self) -> pd.DataFrame:
        """
        Load the whole scan table.

        Raises:
            MissingArtifactError: If the table does not exist
            MissingColumnsError: If the table has no ``filepath`` column
        """
        if not self.path.exists():
            raise MissingArtifactError(self.path, INVENTORY_PRODUCER)
        try:
            frame = pd.read_csv(self.path)
        except pd.errors.EmptyDataError:
            return pd.DataFrame(columns=INVENTORY_COLUMNS)
        if "filepath" not in frame.columns:
            raise MissingColumnsError(self.path, ["filepath"])
        return frame

    def load_records(self) -> List[RasterFileRecord]:
        """Load the scan table as records, last row winning per filepath."""
        frame = self.load()
        by_path: Dict[str, RasterFileRecord] = {}
        for row in frame.to_dict("records"):
            record = RasterFileRecord.from_dict(row)
            by_path[normalize_path(record.filepath)] = record
        return list(by_path.values())

    def processed_paths(self) -> Set[str]:
        """Paths already present in the scan table (empty when it does not exist)."""
        if not self.path.exists():
            return set()
        frame = self.load()
        return {normalize_path(p) for p in frame["filepath"].dropna().astype(str)}


@dataclass
class InventoryPartitions:
    """The three disjoint subsets of a settled inventory."""

    consistent: List[RasterFileRecord] = field(default_factory=list)
    inconsistent: List[RasterFileRecord] = field(default_factory=list)
    failed: List[RasterFileRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.consistent) + len(self.inconsistent) + len(self.failed)


@dataclass
class FinalizeResult:
    """Counts and written paths of a finalize pass."""

    total: int
    consistent: int
    inconsistent: int
    failed: int
    failure_preview: List[Tuple[str, Optional[str]]]
    written: Dict[str, Path]
    expectations: Optional[SpatialExpectations] = None


def settle_verdicts(
    records: List[RasterFileRecord],
    expectations: Optional[SpatialExpectations],
    from_mode: bool = False,
    tolerance: float = 1e-6,
) -> Optional[SpatialExpectations]:
    """
    Make sure every successfully read record carries a verdict.

    With ``from_mode`` the expectations are derived from the records and
    every record is re-evaluated against them. Otherwise only records still
    lacking a verdict are evaluated against ``expectations``.

    Returns:
        The expectations that were applied (None when nothing was read)
    """
    if from_mode:
        if not any(r.read_succeeded for r in records):
            return None
        expectations = SpatialExpectations.from_mode(records, tolerance=tolerance)
        for record in records:
            apply_validation(record, expectations)
        return expectations

    for record in records:
        if not record.read_succeeded:
            apply_validation(record, expectations)
        elif record.passes_assumptions is None and expectations is not None:
            apply_validation(record, expectations)
    return expectations


def partition_records(records: Iterable[RasterFileRecord]) -> InventoryPartitions:
    """Split records into failed, consistent and inconsistent subsets."""
    parts = InventoryPartitions()
    for record in records:
        if not record.read_succeeded:
            parts.failed.append(record)
        elif record.passes_assumptions:
            parts.consistent.append(record)
        else:
            parts.inconsistent.append(record)
    return parts


def domain_summary(consistent: pd.DataFrame) -> pd.DataFrame:
    """Layer count and total size (GB) per (domain, data_type)."""
    columns = ["domain", "data_type", "n_layers", "total_size_gb"]
    if consistent.empty:
        return pd.DataFrame(columns=columns)
    summary = (
        consistent.groupby(["domain", "data_type"], dropna=False)
        .agg(n_layers=("filepath", "count"), total_size_gb=("file_size_mb", "sum"))
        .reset_index()
    )
    summary["total_size_gb"] = (summary["total_size_gb"] / 1024).round(2)
    return summary.sort_values(["domain", "data_type"]).reset_index(drop=True)[columns]


def breakdown(frame: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
    """Count of rows per distinct value tuple, most frequent first."""
    if frame.empty:
        return pd.DataFrame(columns=columns + ["n"])
    counts = frame.groupby(columns, dropna=False).size().reset_index(name="n")
    return counts.sort_values("n", ascending=False, kind="stable").reset_index(drop=True)


def finalize_inventory(
    store: InventoryStore,
    config_dir: Union[str, Path],
    reports_dir: Union[str, Path],
    expectations: Optional[SpatialExpectations] = None,
    from_mode: bool = False,
    write_breakdowns: bool = False,
) -> FinalizeResult:
    """
    Load the full scan table once, partition it and write derived tables.

    Outputs under ``config_dir``:
        - all_layers_consistent.csv (always, the downstream input)
        - inconsistent_files_metadata.csv, failed_files.csv (only if non-empty)
        - indicator_layers.csv, aggregate_layers.csv, final_score.csv
          (only if non-empty)
        - domain_summary.csv

    Outputs under ``reports_dir`` (``write_breakdowns`` only):
        - resolution_breakdown.csv, crs_breakdown.csv, extent_breakdown.csv

    Args:
        store: Scan table to finalize
        config_dir: Directory of the partition tables
        reports_dir: Directory of the breakdown tables
        expectations: Fixed expectations for records without a verdict
        from_mode: Derive expectations from the data instead
        write_breakdowns: Also write the frequency breakdowns

    Returns:
        FinalizeResult with counts and written paths
    """
    config_dir = Path(config_dir)
    reports_dir = Path(reports_dir)

    records = store.load_records()
    tolerance = expectations.tolerance if expectations is not None else 1e-6
    applied = settle_verdicts(records, expectations, from_mode=from_mode, tolerance=tolerance)
    parts = partition_records(records)

    written: Dict[str, Path] = {}
    consistent = records_frame(parts.consistent)
    written[CONSISTENT_FILENAME] = write_table(consistent, config_dir / CONSISTENT_FILENAME)

    for filename, subset in (
        (INCONSISTENT_FILENAME, parts.inconsistent),
        (FAILED_FILENAME, parts.failed),
    ):
        target = config_dir / filename
        if subset:
            written[filename] = write_table(records_frame(subset), target)
        elif target.exists():
            # A clean run leaves no stale diagnostics behind
            target.unlink()

    for data_type, filename in TYPE_TABLES.items():
        subset = consistent[consistent["data_type"] == data_type]
        if not subset.empty:
            written[filename] = write_table(subset, config_dir / filename)

    written[DOMAIN_SUMMARY_FILENAME] = write_table(
        domain_summary(consistent), config_dir / DOMAIN_SUMMARY_FILENAME
    )

    if write_breakdowns:
        readable = records_frame(parts.consistent + parts.inconsistent)
        for filename, columns in BREAKDOWNS.items():
            written[filename] = write_table(breakdown(readable, columns), reports_dir / filename)

    logger.info(
        f"Finalized {parts.total} records: {len(parts.consistent)} consistent, "
        f"{len(parts.inconsistent)} inconsistent, {len(parts.failed)} failed"
    )

    return FinalizeResult(
        total=parts.total,
        consistent=len(parts.consistent),
        inconsistent=len(parts.inconsistent),
        failed=len(parts.failed),
        failure_preview=[
            (r.filepath, r.read_error) for r in parts.failed[:FAILURE_PREVIEW_LIMIT]
        ],
        written=written,
        expectations=applied,
    )
