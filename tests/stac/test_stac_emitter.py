"""
Tests for the STAC emitter.

Covers:
- Catalog / collection / item layout and relative hrefs
- Idempotence: existing items are skipped and left untouched
- Missing COGs and per-item failures
- Hybrid hosting with an injected probe
- Collection bbox as the union of item bboxes
- Upstream table errors, empty input and item id collisions
- Items sourced from the conversion log
"""

import json
import os

import pandas as pd
import pytest

from core.config import CogLayout, HostingMode, StacSource
from core.errors import EmptyResultError, MissingArtifactError, OutputCollisionError
from core.stac.collections import DEFAULT_SPATIAL_EXTENT
from core.stac.emitter import StacConfig, StacEmitter, relative_href

DATETIME = "2026-06-05T00:00:00Z"
BASE_URL = "https://host.example/data/"


def inventory_row(path, extent, crs_code=5070, data_type="aggregate", domain="water",
                  dimension="status", pixel_datatype="FLT4S"):
    xmin, xmax, ymin, ymax = extent
    return {
        "filepath": str(path),
        "filename": path.name,
        "data_type": data_type,
        "domain": domain,
        "dimension": dimension,
        "pixel_datatype": pixel_datatype,
        "crs_code": crs_code,
        "extent_xmin": xmin,
        "extent_xmax": xmax,
        "extent_ymin": ymin,
        "extent_ymax": ymax,
        "canonical_output_filename": path.name,
    }


def load_json(path):
    with open(path) as f:
        return json.load(f)


@pytest.fixture
def workspace(tmp_path, make_raster, expectations):
    """Two source rasters, their COGs and the consistent inventory."""
    data = tmp_path / "data"
    cogs = tmp_path / "cogs"
    sources = [data / "water" / "water_status.tif", data / "carbon" / "carbon_resilience.tif"]
    rows = []
    for i, path in enumerate(sources):
        west = -2_000_000.0 + i * 100_000.0
        make_raster(path, west=west)
        make_raster(cogs / path.name, west=west)
        extent = (west, west + 900.0, expectations.ymin, expectations.ymax)
        rows.append(
            inventory_row(
                path, extent,
                domain=path.parent.name,
                dimension="status" if i == 0 else "resilience",
            )
        )
    metadata = tmp_path / "config" / "all_layers_consistent.csv"
    metadata.parent.mkdir(parents=True)
    pd.DataFrame(rows).to_csv(metadata, index=False)
    return tmp_path


@pytest.fixture
def stac_config(workspace):
    return StacConfig(
        stac_dir=workspace / "stac",
        cog_dir=workspace / "cogs",
        item_datetime=DATETIME,
        hosting_base_url=BASE_URL,
        metadata_path=workspace / "config" / "all_layers_consistent.csv",
        log_path=workspace / "reports" / "cog_conversion_log.csv",
    )


class TestLayout:
    """Tests for the written documents."""

    def test_documents_written(self, stac_config):
        result = StacEmitter(stac_config).run()

        assert result.counts == {"written": 2, "skipped": 0, "missing_cog": 0, "failed": 0}
        assert stac_config.catalog_path.exists()
        assert stac_config.collection_path == (
            stac_config.stac_dir / "collections" / "wri_ignitR" / "collection.json"
        )
        assert (stac_config.items_dir / "water_status.json").exists()
        assert (stac_config.items_dir / "carbon_resilience.json").exists()

    def test_item_contents(self, stac_config):
        StacEmitter(stac_config).run()
        item = load_json(stac_config.items_dir / "water_status.json")

        assert item["id"] == "water_status"
        assert item["collection"] == "wri_ignitR"
        assert item["properties"]["datetime"] == DATETIME
        assert item["properties"]["proj:code"] == "EPSG:5070"
        assert item["properties"]["wri_domain"] == "water"
        assert item["properties"]["wri_dimension"] == "status"
        assert item["properties"]["cog:blocksize"] == 512
        assert item["properties"]["cog:compression"] == "deflate"
        assert item["properties"]["cog:overview_resampling"] == "nearest"
        assert "is_hosted" not in item["properties"]

        west, south, east, north = item["bbox"]
        assert west < east and south < north

    def test_local_href_resolves_to_cog(self, stac_config):
        StacEmitter(stac_config).run()
        item = load_json(stac_config.items_dir / "water_status.json")

        href = item["assets"]["data"]["href"]
        assert not os.path.isabs(href)
        assert (stac_config.stac_dir / href).resolve() == (
            stac_config.cog_dir / "water_status.tif"
        ).resolve()

    def test_catalog_links_collection(self, stac_config):
        StacEmitter(stac_config).run()
        catalog = load_json(stac_config.catalog_path)
        child = [link["href"] for link in catalog["links"] if link["rel"] == "child"]
        assert child == ["collections/wri_ignitR/collection.json"]

    def test_collection_links_and_summaries(self, stac_config):
        StacEmitter(stac_config).run()
        collection = load_json(stac_config.collection_path)

        items = sorted(link["href"] for link in collection["links"] if link["rel"] == "item")
        assert items == [
            "collections/wri_ignitR/items/carbon_resilience.json",
            "collections/wri_ignitR/items/water_status.json",
        ]
        assert collection["summaries"]["wri_domain"] == ["carbon", "water"]
        assert collection["summaries"]["wri_dimension"] == ["resilience", "status"]
        assert collection["extent"]["temporal"]["interval"] == [[DATETIME, DATETIME]]

    def test_collection_bbox_is_union(self, stac_config):
        result = StacEmitter(stac_config).run()
        first = load_json(stac_config.items_dir / "water_status.json")["bbox"]
        second = load_json(stac_config.items_dir / "carbon_resilience.json")["bbox"]

        expected = [
            min(first[0], second[0]),
            min(first[1], second[1]),
            max(first[2], second[2]),
            max(first[3], second[3]),
        ]
        collection = load_json(stac_config.collection_path)
        assert result.collection_bbox == pytest.approx(expected)
        assert collection["extent"]["spatial"]["bbox"][0] == pytest.approx(expected)

    def test_nested_layout(self, workspace, stac_config):
        nested = workspace / "cogs" / "aggregate" / "water"
        nested.mkdir(parents=True)
        (workspace / "cogs" / "water_status.tif").rename(nested / "water_status.tif")
        stac_config.cog_layout = CogLayout.NESTED

        result = StacEmitter(stac_config).run()

        assert result.counts["written"] == 1
        assert result.counts["missing_cog"] == 1
        item = load_json(stac_config.items_dir / "water_status.json")
        assert item["assets"]["data"]["href"].endswith("cogs/aggregate/water/water_status.tif")


class TestIdempotence:
    """Tests for re-running the emitter."""

    def test_second_run_skips_items(self, stac_config):
        StacEmitter(stac_config).run()
        item_path = stac_config.items_dir / "water_status.json"
        mtime = item_path.stat().st_mtime_ns

        result = StacEmitter(stac_config).run()

        assert result.counts == {"written": 0, "skipped": 2, "missing_cog": 0, "failed": 0}
        assert item_path.stat().st_mtime_ns == mtime
        assert result.collection_bbox is not None

    def test_bbox_falls_back_to_items_on_disk(self, workspace, stac_config):
        first = StacEmitter(stac_config).run()
        for cog in (workspace / "cogs").glob("*.tif"):
            cog.unlink()

        result = StacEmitter(stac_config).run()

        assert result.counts["missing_cog"] == 2
        assert result.collection_bbox == pytest.approx(first.collection_bbox)

    def test_bbox_keeps_items_whose_cog_disappeared(self, workspace, stac_config):
        StacEmitter(stac_config).run()
        (workspace / "cogs" / "carbon_resilience.tif").unlink()

        result = StacEmitter(stac_config).run()

        assert result.counts["missing_cog"] == 1
        collection = load_json(stac_config.collection_path)
        west, south, east, north = collection["extent"]["spatial"]["bbox"][0]
        linked = [link["href"] for link in collection["links"] if link["rel"] == "item"]
        assert len(linked) == 2
        for href in linked:
            item = load_json(stac_config.stac_dir / href)
            item_west, item_south, item_east, item_north = item["bbox"]
            assert west <= item_west
            assert south <= item_south
            assert east >= item_east
            assert north >= item_north

    def test_default_bbox_without_items(self, workspace, stac_config):
        for cog in (workspace / "cogs").glob("*.tif"):
            cog.unlink()

        result = StacEmitter(stac_config).run()

        assert result.collection_bbox is None
        collection = load_json(stac_config.collection_path)
        assert collection["extent"]["spatial"]["bbox"] == [DEFAULT_SPATIAL_EXTENT]


class TestFailures:
    """Tests for rows that cannot produce an item."""

    def test_missing_cog(self, workspace, stac_config):
        (workspace / "cogs" / "water_status.tif").unlink()

        result = StacEmitter(stac_config).run()

        assert result.counts["missing_cog"] == 1
        assert result.counts["written"] == 1
        assert not (stac_config.items_dir / "water_status.json").exists()

    def test_missing_crs_fails_one_item(self, stac_config):
        frame = pd.read_csv(stac_config.metadata_path)
        frame.loc[0, "crs_code"] = None
        frame.to_csv(stac_config.metadata_path, index=False)

        result = StacEmitter(stac_config).run()

        assert result.counts["failed"] == 1
        assert result.counts["written"] == 1
        (item_id, message), = result.failures
        assert item_id == "water_status"
        assert "CRS" in message

    def test_collision(self, workspace, stac_config, make_raster, expectations):
        other = workspace / "data" / "other" / "water_status.tif"
        make_raster(other)
        frame = pd.read_csv(stac_config.metadata_path)
        row = inventory_row(other, expectations.extent)
        frame = pd.concat([frame, pd.DataFrame([row])], ignore_index=True)
        frame.to_csv(stac_config.metadata_path, index=False)

        with pytest.raises(OutputCollisionError, match="STAC item id"):
            StacEmitter(stac_config).run()

    def test_missing_inventory(self, stac_config):
        stac_config.metadata_path.unlink()
        with pytest.raises(MissingArtifactError, match="rcat inventory"):
            StacEmitter(stac_config).run()

    def test_missing_log(self, stac_config):
        stac_config.source = StacSource.LOG
        with pytest.raises(MissingArtifactError, match="rcat convert"):
            StacEmitter(stac_config).run()

    def test_empty_inventory(self, stac_config):
        frame = pd.read_csv(stac_config.metadata_path)
        frame.iloc[0:0].to_csv(stac_config.metadata_path, index=False)
        with pytest.raises(EmptyResultError):
            StacEmitter(stac_config).run()
        assert not stac_config.catalog_path.exists()


class TestHybridHosting:
    """Tests for hybrid asset hrefs."""

    def test_hosted(self, stac_config, make_probe):
        stac_config.hosting_mode = HostingMode.HYBRID
        probe = make_probe(hosted=True)

        result = StacEmitter(stac_config, prober=probe).run()

        item = load_json(stac_config.items_dir / "water_status.json")
        assert item["assets"]["data"]["href"] == BASE_URL + "water_status.tif"
        assert item["properties"]["is_hosted"] is True
        assert (result.hosted, result.local) == (2, 0)
        assert sorted(probe.urls) == [
            BASE_URL + "carbon_resilience.tif",
            BASE_URL + "water_status.tif",
        ]

    def test_not_hosted(self, stac_config, make_probe):
        stac_config.hosting_mode = HostingMode.HYBRID

        result = StacEmitter(stac_config, prober=make_probe(hosted=False)).run()

        item = load_json(stac_config.items_dir / "water_status.json")
        assert item["assets"]["data"]["href"] == relative_href(
            stac_config.cog_dir / "water_status.tif", stac_config.stac_dir
        )
        assert item["properties"]["is_hosted"] is False
        assert (result.hosted, result.local) == (0, 2)

    def test_skipped_items_not_probed(self, stac_config, make_probe):
        StacEmitter(stac_config).run()
        stac_config.hosting_mode = HostingMode.HYBRID
        probe = make_probe(hosted=True)

        StacEmitter(stac_config, prober=probe).run()

        assert probe.urls == []

    def test_local_mode_never_probes(self, stac_config, make_probe):
        probe = make_probe(hosted=True)
        result = StacEmitter(stac_config, prober=probe).run()
        assert probe.urls == []
        assert result.local == 2


class TestLogSource:
    """Tests for items sourced from the conversion log."""

    def test_items_from_log(self, workspace, stac_config):
        log = stac_config.log_path
        log.parent.mkdir(parents=True)
        pd.DataFrame(
            [
                {
                    "source_filepath": str(workspace / "data" / "water" / "water_status.tif"),
                    "output_path": str(workspace / "cogs" / "water_status.tif"),
                    "data_type": "aggregate",
                    "domain": "water",
                    "dimension": "status",
                    "resampling_method": "nearest",
                    "status": "converted",
                },
                {
                    "source_filepath": str(workspace / "data" / "carbon" / "carbon_resilience.tif"),
                    "output_path": str(workspace / "cogs" / "carbon_resilience.tif"),
                    "data_type": "aggregate",
                    "domain": "carbon",
                    "dimension": "resilience",
                    "resampling_method": "average",
                    "status": "failed",
                },
            ]
        ).to_csv(log, index=False)
        stac_config.source = StacSource.LOG

        result = StacEmitter(stac_config).run()

        assert result.total == 1
        assert result.counts["written"] == 1
        item = load_json(stac_config.items_dir / "water_status.json")
        assert item["properties"]["proj:code"] == "EPSG:5070"
        assert item["properties"]["cog:overview_resampling"] == "nearest"
        assert item["bbox"][0] < item["bbox"][2]


class TestRelativeHref:
    """Tests for relative_href()."""

    def test_sibling_directory(self, tmp_path):
        assert relative_href(tmp_path / "cogs" / "a.tif", tmp_path / "stac") == "../cogs/a.tif"

    def test_inside(self, tmp_path):
        assert relative_href(tmp_path / "stac" / "catalog.json", tmp_path / "stac") == "catalog.json"
