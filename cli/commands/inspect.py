"""
Inspect Command - Check a single raster against the spatial assumptions.

Usage:
    rcat inspect data/water/water_domain_score.tif
    rcat inspect layer.tif --no-stats
"""

import logging
from pathlib import Path

import click

from core.inventory.builder import classify_path
from core.inventory.header import HeaderExtractor
from core.inventory.validator import apply_validation

logger = logging.getLogger("rcat.inspect")

FIELDS = [
    "data_type", "domain", "dimension", "canonical_output_filename",
    "rows", "cols", "band_count", "resolution_x", "resolution_y", "crs_code",
    "extent_xmin", "extent_xmax", "extent_ymin", "extent_ymax",
    "pixel_datatype", "file_size_mb",
    "value_min", "value_max", "value_mean", "na_percent",
]


@click.command("inspect")
@click.argument("raster", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--stats/--no-stats",
    default=True,
    help="Sample pixel values for summary statistics (default: on).",
)
@click.pass_context
def inspect(ctx, raster: Path, stats: bool):
    """
    Extract one raster header and check it against the fixed expectations.

    Exits with status 1 when the file cannot be read or violates an
    assumption.
    """
    settings = ctx.obj["settings"]
    expectations = settings.expected.to_expectations()

    extractor = HeaderExtractor(seed=settings.sample_seed)
    record = extractor.extract(raster, sample_size=settings.sample_size if stats else None)
    for name, value in classify_path(raster, settings.data_dir).items():
        setattr(record, name, value)
    apply_validation(record, expectations)

    click.echo(f"\n{record.filepath}")
    if not record.read_succeeded:
        click.echo(f"  Read failed: {record.read_error}", err=True)
        ctx.exit(1)

    width = max(len(f) for f in FIELDS)
    for name in FIELDS:
        click.echo(f"  {name.ljust(width)}  {getattr(record, name)}")

    if record.passes_assumptions:
        click.echo(f"\nPASS: matches EPSG:{expectations.crs_code}, "
                   f"{expectations.res_x} x {expectations.res_y}, expected extent")
    else:
        click.echo(f"\nFAIL: {record.assumption_error}")
        ctx.exit(1)
