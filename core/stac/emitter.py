"""
STAC Emitter.

Writes a static STAC catalog describing the converted COGs:

    <stac_dir>/catalog.json
    <stac_dir>/collections/<collection_id>/collection.json
    <stac_dir>/collections/<collection_id>/items/<item_id>.json

Items are skip-on-exists, so re-running only fills in what is missing.
Catalog and collection are regenerated on every run from the item
documents on disk.

Asset hrefs follow the hosting policy:
    - local: always the COG path relative to the STAC root
    - hybrid: the remote URL when the host probe finds the file, otherwise
      the local path; the outcome is recorded as ``is_hosted``
"""

import json
import logging
import os
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import rasterio
from rasterio.errors import RasterioError

from core.cog.converter import (
    COG_BLOCKSIZE,
    COG_COMPRESSION,
    ConversionStatus,
    check_collisions,
    load_table,
    output_path_for,
)
from core.cog.resampling import choose_resampling
from core.config import CogLayout, HostingMode, StacSource
from core.errors import EmptyResultError, StacItemError
from core.inventory.header import crs_fields
from core.inventory.records import clean_value
from core.stac.collections import build_catalog, build_collection, summarize_items
from core.stac.geometry import bbox_union, reproject_extent, ring_geometry
from core.stac.hosting import HostProbe, HttpHostProbe, hosted_url
from core.stac.publisher import CATALOG_FILENAME, build_stac_item

logger = logging.getLogger(__name__)

INVENTORY_PRODUCER = "rcat inventory"
LOG_PRODUCER = "rcat convert"

INVENTORY_COLUMNS = [
    "filepath", "data_type", "domain", "crs_code",
    "extent_xmin", "extent_xmax", "extent_ymin", "extent_ymax",
]
LOG_COLUMNS = ["source_filepath", "output_path", "status"]

USABLE_LOG_STATUSES = (ConversionStatus.CONVERTED.value, ConversionStatus.SKIPPED_EXISTS.value)

COUNTERS = ("written", "skipped", "missing_cog", "failed")


@dataclass
class StacConfig:
    """Configuration of one STAC emission run."""

    stac_dir: Path
    cog_dir: Path
    cog_layout: CogLayout = CogLayout.FLAT
    catalog_id: str = "wri-catalog"
    collection_id: str = "wri_ignitR"
    item_datetime: str = "2026-06-05T00:00:00Z"
    hosting_mode: HostingMode = HostingMode.LOCAL
    hosting_base_url: str = "https://knb.ecoinformatics.org/data/"
    source: StacSource = StacSource.INVENTORY
    metadata_path: Optional[Path] = None
    log_path: Optional[Path] = None

    def __post_init__(self):
        self.stac_dir = Path(self.stac_dir)
        self.cog_dir = Path(self.cog_dir)
        self.cog_layout = CogLayout(self.cog_layout)
        self.hosting_mode = HostingMode(self.hosting_mode)
        self.source = StacSource(self.source)
        if self.metadata_path is not None:
            self.metadata_path = Path(self.metadata_path)
        if self.log_path is not None:
            self.log_path = Path(self.log_path)

    @property
    def catalog_path(self) -> Path:
        return self.stac_dir / CATALOG_FILENAME

    @property
    def collection_dir(self) -> Path:
        return self.stac_dir / "collections" / self.collection_id

    @property
    def collection_path(self) -> Path:
        return self.collection_dir / "collection.json"

    @property
    def items_dir(self) -> Path:
        return self.collection_dir / "items"


@dataclass
class ItemSource:
    """Everything needed to build one item."""

    item_id: str
    source_filepath: str
    cog_path: Path
    data_type: Optional[str] = None
    domain: Optional[str] = None
    dimension: Optional[str] = None
    crs_code: Optional[int] = None
    extent: Optional[Tuple[float, float, float, float]] = None
    resampling_method: Optional[str] = None


@dataclass
class StacResult:
    """Counters and locations of an emission run."""

    counts: Dict[str, int] = field(default_factory=lambda: {k: 0 for k in COUNTERS})
    hosted: int = 0
    local: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)
    catalog_path: Optional[Path] = None
    collection_path: Optional[Path] = None
    collection_bbox: Optional[List[float]] = None
    total: int = 0


def relative_href(path: Path, start: Path) -> str:
    """POSIX path of ``path`` relative to ``start``."""
    return Path(os.path.relpath(Path(path).resolve(), Path(start).resolve())).as_posix()


def write_json(document: Dict[str, Any], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(document, f, indent=2)
        f.write("\n")
    return path


def read_cog_footprint(path: Path) -> Tuple[Optional[int], Tuple[float, float, float, float]]:
    """
    CRS code and native extent of a COG, read from its header.

    Raises:
        StacItemError: If the file cannot be read
    """
    try:
        with rasterio.open(path) as src:
            crs_code, _ = crs_fields(src.crs)
            b = src.bounds
            return crs_code, (b.left, b.right, b.bottom, b.top)
    except RasterioError as e:
        raise StacItemError(f"Cannot read COG header of {path}: {e}") from e


class StacEmitter:
    """
    Emits catalog, collection and item documents.

    Example:
        emitter = StacEmitter(settings.stac_config(), prober=HttpHostProbe(timeout=5))
        result = emitter.run()
        print(result.counts)
    """

    def __init__(self, config: StacConfig, prober: Optional[HostProbe] = None):
        self.config = config
        if prober is None and config.hosting_mode == HostingMode.HYBRID:
            prober = HttpHostProbe()
        self.prober = prober

    # ------------------------------------------------------------------
    # Sources

    def load_sources(self) -> List[ItemSource]:
        """
        Read item sources from the configured upstream table.

        Raises:
            MissingArtifactError: If the upstream table is absent
            EmptyResultError: If it has no usable rows
            OutputCollisionError: If two rows map to the same item id
        """
        if self.config.source == StacSource.LOG:
            sources = list(self._sources_from_log())
            origin = self.config.log_path
        else:
            sources = list(self._sources_from_inventory())
            origin = self.config.metadata_path

        if not sources:
            raise EmptyResultError(f"No usable rows in {origin}")

        check_collisions(
            [(s.source_filepath, Path(s.item_id)) for s in sources], what="STAC item id"
        )
        return sources

    def _sources_from_inventory(self) -> Iterator[ItemSource]:
        frame = load_table(self.config.metadata_path, INVENTORY_PRODUCER, INVENTORY_COLUMNS)
        for row in frame.to_dict("records"):
            cog_path = output_path_for(row, self.config.cog_dir, self.config.cog_layout)
            dimension = clean_value(row.get("dimension"))
            crs_code = clean_value(row.get("crs_code"))
            yield ItemSource(
                item_id=cog_path.stem,
                source_filepath=str(row["filepath"]),
                cog_path=cog_path,
                data_type=clean_value(row.get("data_type")),
                domain=clean_value(row.get("domain")),
                dimension=dimension,
                crs_code=int(crs_code) if crs_code is not None else None,
                extent=tuple(
                    clean_value(row.get(c))
                    for c in ("extent_xmin", "extent_xmax", "extent_ymin", "extent_ymax")
                ),
                resampling_method=choose_resampling(
                    dimension, clean_value(row.get("pixel_datatype"))
                ).value,
            )

    def _sources_from_log(self) -> Iterator[ItemSource]:
        frame = load_table(self.config.log_path, LOG_PRODUCER, LOG_COLUMNS)
        frame = frame[frame["status"].isin(USABLE_LOG_STATUSES)]
        for row in frame.to_dict("records"):
            cog_path = Path(str(row["output_path"]))
            yield ItemSource(
                item_id=cog_path.stem,
                source_filepath=str(row["source_filepath"]),
                cog_path=cog_path,
                data_type=clean_value(row.get("data_type")),
                domain=clean_value(row.get("domain")),
                dimension=clean_value(row.get("dimension")),
                resampling_method=clean_value(row.get("resampling_method")),
            )

    # ------------------------------------------------------------------
    # Items

    def item_path(self, item_id: str) -> Path:
        return self.config.items_dir / f"{item_id}.json"

    def resolve_href(self, source: ItemSource) -> Tuple[str, Optional[bool]]:
        """Asset href and hosting outcome (None when no probe was made)."""
        local = relative_href(source.cog_path, self.config.stac_dir)
        if self.config.hosting_mode != HostingMode.HYBRID:
            return local, None
        url = hosted_url(self.config.hosting_base_url, source.cog_path.name)
        if self.prober.exists(url):
            return url, True
        return local, False

    def build_item(self, source: ItemSource) -> Dict[str, Any]:
        """
        Build the item document of one source.

        Raises:
            StacItemError: On missing CRS or non-finite extent
        """
        crs_code = source.crs_code
        extent = source.extent
        if extent is None:
            crs_code, extent = read_cog_footprint(source.cog_path)
        if crs_code is None:
            raise StacItemError(f"Missing CRS for {source.item_id}")

        xmin, xmax, ymin, ymax = extent
        bbox, ring = reproject_extent(xmin, xmax, ymin, ymax, crs_code)
        href, is_hosted = self.resolve_href(source)

        return build_stac_item(
            item_id=source.item_id,
            collection_id=self.config.collection_id,
            bbox=bbox,
            geometry=ring_geometry(ring),
            item_datetime=self.config.item_datetime,
            asset_href=href,
            self_href=relative_href(self.item_path(source.item_id), self.config.stac_dir),
            collection_href=relative_href(self.config.collection_path, self.config.stac_dir),
            crs_code=crs_code,
            data_type=source.data_type,
            domain=source.domain,
            dimension=source.dimension,
            is_hosted=is_hosted,
            cog_properties={
                "cog:blocksize": COG_BLOCKSIZE,
                "cog:compression": COG_COMPRESSION.lower(),
                "cog:overview_resampling": source.resampling_method,
            },
        )

    def emit_item(self, source: ItemSource) -> Optional[Dict[str, Any]]:
        """
        Write one item unless it already exists.

        Returns:
            The written item, or None when it was skipped

        Raises:
            StacItemError: If the item cannot be built
        """
        path = self.item_path(source.item_id)
        if path.exists():
            return None
        item = self.build_item(source)
        write_json(item, path)
        return item

    def existing_items(self) -> List[Dict[str, Any]]:
        """All item documents currently on disk, sorted by file name."""
        items = []
        for path in sorted(self.config.items_dir.glob("*.json")):
            with open(path) as f:
                items.append(json.load(f))
        return items

    # ------------------------------------------------------------------
    # Run

    def run(
        self,
        progress: Optional[Callable[[int, int, str, str], None]] = None,
    ) -> StacResult:
        """
        Emit items for every usable source, then catalog and collection.

        Args:
            progress: Called as ``progress(i, n, item_id, outcome)`` where
                outcome is one of written, skipped, missing_cog, failed

        Returns:
            StacResult with counters and the collection bbox
        """
        sources = self.load_sources()
        result = StacResult(total=len(sources))
        hosting = Counter()

        for i, source in enumerate(sources, start=1):
            outcome = self._emit_one(source, result, hosting)
            result.counts[outcome] += 1
            if progress is not None:
                progress(i, result.total, source.item_id, outcome)

        result.hosted = hosting[True]
        result.local = hosting[False]

        on_disk = self.existing_items()
        # Extent covers every linked item, including ones not emitted this run
        bbox = bbox_union(item.get("bbox") for item in on_disk)
        result.collection_bbox = bbox

        collection_href = relative_href(self.config.collection_path, self.config.stac_dir)
        result.catalog_path = write_json(
            build_catalog(self.config.catalog_id, collection_href), self.config.catalog_path
        )
        result.collection_path = write_json(
            build_collection(
                collection_id=self.config.collection_id,
                collection_href=collection_href,
                item_datetime=self.config.item_datetime,
                bbox=bbox,
                summaries=summarize_items(on_disk),
                item_hrefs=[
                    relative_href(self.item_path(item["id"]), self.config.stac_dir)
                    for item in on_disk
                ],
            ),
            self.config.collection_path,
        )

        logger.info(f"STAC emission finished: {result.counts}")
        return result

    def _emit_one(
        self,
        source: ItemSource,
        result: StacResult,
        hosting: Counter,
    ) -> str:
        if not source.cog_path.exists():
            return "missing_cog"

        path = self.item_path(source.item_id)
        if path.exists():
            return "skipped"

        try:
            item = self.emit_item(source)
        except StacItemError as e:
            logger.error(f"STAC item {source.item_id} failed: {e}")
            result.failures.append((source.item_id, str(e)))
            return "failed"

        hosted = item["properties"].get("is_hosted")
        if hosted is not None:
            hosting[bool(hosted)] += 1
        else:
            hosting[False] += 1
        return "written"
