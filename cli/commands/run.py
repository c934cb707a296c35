"""
Run Command - Execute the full pipeline: inventory, convert, catalog.

Usage:
    rcat run
    rcat run --data-dir data/ --stats none --skip-catalog
"""

import logging
import time
from pathlib import Path
from typing import Optional

import click

from core.config import StatsMode
from core.errors import PipelineError

from cli.commands import catalog as catalog_stage
from cli.commands import convert as convert_stage
from cli.commands import inventory as inventory_stage
from cli.options import settings_with

logger = logging.getLogger("rcat.run")


@click.command("run")
@click.option(
    "--data-dir",
    "-d",
    type=click.Path(path_type=Path),
    default=None,
    help="Root directory of the raw rasters.",
)
@click.option(
    "--stats",
    "stats_mode",
    type=click.Choice([m.value for m in StatsMode], case_sensitive=False),
    default=None,
    help="Pixel statistics of the inventory stage.",
)
@click.option("--skip-convert", is_flag=True, default=False, help="Stop after the inventory.")
@click.option("--skip-catalog", is_flag=True, default=False, help="Do not emit STAC documents.")
@click.pass_obj
def run(
    ctx,
    data_dir: Optional[Path],
    stats_mode: Optional[str],
    skip_convert: bool,
    skip_catalog: bool,
):
    """
    Run inventory, COG conversion and STAC emission with one configuration.

    Every stage is idempotent, so an interrupted pipeline is resumed by
    running it again.
    """
    settings = settings_with(ctx["settings"], data_dir=data_dir, stats_mode=stats_mode)

    stages = [("inventory", inventory_stage.execute)]
    if not skip_convert:
        stages.append(("convert", convert_stage.execute))
        if not skip_catalog:
            stages.append(("catalog", catalog_stage.execute))

    click.echo(f"\n{'=' * 60}")
    click.echo("  WRI raster pipeline")
    click.echo(f"{'=' * 60}")

    started = time.time()
    for i, (name, execute) in enumerate(stages, start=1):
        click.echo(f"\n[{i}/{len(stages)}] {name}")
        try:
            execute(settings)
        except PipelineError as e:
            logger.error(f"Stage {name} failed: {e}")
            raise click.ClickException(f"{name}: {e}")

    click.echo(f"\nPipeline finished in {time.time() - started:.1f}s")
