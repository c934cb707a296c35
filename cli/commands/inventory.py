"""
Inventory Command - Extract, validate and partition raster metadata.

Usage:
    rcat inventory
    rcat inventory --data-dir data/ --stats global
    rcat inventory --validation mode --batch-size 20
"""

import logging
from pathlib import Path
from typing import Optional

import click

from core.config import PipelineSettings, StatsMode, ValidationMode
from core.errors import PipelineError
from core.inventory.builder import InventoryBuilder, InventoryResult
from core.inventory.records import RasterFileRecord

from cli.options import settings_with

logger = logging.getLogger("rcat.inventory")


def echo_progress(i: int, n: int, record: RasterFileRecord) -> None:
    line = f"[{i}/{n}] {record.data_type}: {record.filename}"
    if not record.read_succeeded:
        line += f"  READ FAILED ({record.read_error})"
    elif record.passes_assumptions is False:
        line += f"  INCONSISTENT ({record.assumption_error})"
    click.echo(line)


def print_summary(result: InventoryResult) -> None:
    click.echo("\n=== Inventory Summary ===")
    click.echo(f"  Discovered:         {result.discovered}")
    click.echo(f"  Excluded:           {result.excluded}")
    click.echo(f"  Already processed:  {result.already_processed}")
    click.echo(f"  Processed now:      {result.processed}")
    for data_type, count in sorted(result.type_counts.items()):
        click.echo(f"    {data_type}: {count}")

    final = result.finalize
    if final is None:
        click.echo("\nInventory is up to date; nothing new to process.")
        return

    click.echo(f"\n  Total records:      {final.total}")
    click.echo(f"  Consistent:         {final.consistent}")
    click.echo(f"  Inconsistent:       {final.inconsistent}")
    click.echo(f"  Failed reads:       {final.failed}")

    if final.failure_preview:
        click.echo("\nFailed files:")
        for filepath, error in final.failure_preview:
            click.echo(f"  - {filepath}: {error}")
        if final.failed > len(final.failure_preview):
            click.echo(f"  ... and {final.failed - len(final.failure_preview)} more")

    click.echo("\nWritten:")
    for path in final.written.values():
        click.echo(f"  {path}")


def execute(settings: PipelineSettings) -> InventoryResult:
    """Run the inventory stage with the given settings."""
    config = settings.inventory_config()
    click.echo(f"\nBuilding inventory of {config.data_dir}")
    click.echo(f"  Statistics: {config.stats_mode.value}")
    click.echo(f"  Validation: {config.validation_mode.value}")
    click.echo(f"  Batch size: {config.effective_batch_size}")

    result = InventoryBuilder(config).run(progress=echo_progress)
    print_summary(result)
    return result


@click.command("inventory")
@click.option(
    "--data-dir",
    "-d",
    type=click.Path(path_type=Path),
    default=None,
    help="Root directory of the raw rasters.",
)
@click.option(
    "--config-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory of the inventory tables.",
)
@click.option(
    "--reports-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory of the breakdown tables.",
)
@click.option("--pattern", type=str, default=None, help="Raster file glob (default: *.tif).")
@click.option(
    "--stats",
    "stats_mode",
    type=click.Choice([m.value for m in StatsMode], case_sensitive=False),
    default=None,
    help="Pixel statistics: none, sample or global.",
)
@click.option("--sample-size", type=int, default=None, help="Pixels sampled per raster.")
@click.option("--batch-size", type=int, default=None, help="Files per inventory flush.")
@click.option(
    "--validation",
    "validation_mode",
    type=click.Choice([m.value for m in ValidationMode], case_sensitive=False),
    default=None,
    help="Expected values: fixed constants or mode of observed values.",
)
@click.option(
    "--exclude-retro/--include-retro",
    "exclude_retro_dirs",
    default=None,
    help="Treat retro* directories as excluded locations.",
)
@click.pass_obj
def inventory(
    ctx,
    data_dir: Optional[Path],
    config_dir: Optional[Path],
    reports_dir: Optional[Path],
    pattern: Optional[str],
    stats_mode: Optional[str],
    sample_size: Optional[int],
    batch_size: Optional[int],
    validation_mode: Optional[str],
    exclude_retro_dirs: Optional[bool],
):
    """
    Extract and validate metadata for every raster.

    Resumes from the existing scan table: files already inventoried are
    skipped. The consistent partition is the input of `rcat convert`.
    """
    settings = settings_with(
        ctx["settings"],
        data_dir=data_dir,
        config_dir=config_dir,
        reports_dir=reports_dir,
        raster_glob=pattern,
        stats_mode=stats_mode,
        sample_size=sample_size,
        batch_size=batch_size,
        validation_mode=validation_mode,
        exclude_retro_dirs=exclude_retro_dirs,
    )
    try:
        execute(settings)
    except PipelineError as e:
        logger.error(str(e))
        raise click.ClickException(str(e))
