"""
End-to-end pipeline test: one raster through inventory, conversion and
STAC emission with the real rasterio encoder.
"""

import json

import pandas as pd
import rasterio

from core.cog.converter import COGConverter
from core.inventory.builder import InventoryBuilder
from core.stac.emitter import StacEmitter


def test_single_raster_pipeline(pipeline_settings, make_raster):
    source = make_raster(pipeline_settings.data_dir / "water" / "water_domain_score.tif")

    inventory = InventoryBuilder(pipeline_settings.inventory_config()).run()
    assert inventory.finalize.consistent == 1

    consistent = pd.read_csv(pipeline_settings.consistent_path)
    assert consistent["filepath"].tolist() == [str(source.resolve())]
    assert consistent["dimension"].tolist() == ["domain_score"]

    conversion = COGConverter(pipeline_settings.cog_config()).run()
    assert conversion.status_counts == {"converted": 1}

    log = pd.read_csv(pipeline_settings.conversion_log_path)
    assert log["status"].tolist() == ["converted"]
    assert log["resampling_method"].tolist() == ["average"]

    cog = pipeline_settings.cog_dir / "water_domain_score.tif"
    with rasterio.open(cog) as src:
        assert src.tags(ns="IMAGE_STRUCTURE")["COMPRESSION"] == "DEFLATE"
        assert src.crs.to_epsg() == 5070

    stac = StacEmitter(pipeline_settings.stac_config()).run()
    assert stac.counts["written"] == 1

    stac_config = pipeline_settings.stac_config()
    with open(stac_config.items_dir / "water_domain_score.json") as f:
        item = json.load(f)
    href = item["assets"]["data"]["href"]
    assert (stac_config.stac_dir / href).resolve() == cog.resolve()

    west, south, east, north = item["bbox"]
    assert west < east
    assert south < north

    with open(stac_config.collection_path) as f:
        collection = json.load(f)
    assert collection["extent"]["spatial"]["bbox"] == [item["bbox"]]


def test_pipeline_rerun_changes_nothing(pipeline_settings, make_raster):
    make_raster(pipeline_settings.data_dir / "water" / "water_status.tif")

    InventoryBuilder(pipeline_settings.inventory_config()).run()
    COGConverter(pipeline_settings.cog_config()).run()
    StacEmitter(pipeline_settings.stac_config()).run()

    rows = len(pd.read_csv(pipeline_settings.inventory_path))
    inventory = InventoryBuilder(pipeline_settings.inventory_config()).run()
    conversion = COGConverter(pipeline_settings.cog_config()).run()
    stac = StacEmitter(pipeline_settings.stac_config()).run()

    assert inventory.processed == 0
    assert len(pd.read_csv(pipeline_settings.inventory_path)) == rows
    assert conversion.status_counts == {"skipped_exists": 1}
    assert stac.counts["skipped"] == 1
