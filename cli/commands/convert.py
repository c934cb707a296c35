"""
Convert Command - Convert the consistent inventory into COGs.

Usage:
    rcat convert
    rcat convert --layout nested --threads 8
"""

import logging
from pathlib import Path
from typing import Optional

import click

from core.cog.converter import COGConverter, COGOutputRecord, ConversionResult
from core.config import CogLayout, PipelineSettings
from core.errors import PipelineError

from cli.options import settings_with

logger = logging.getLogger("rcat.convert")


def echo_progress(i: int, n: int, record: COGOutputRecord) -> None:
    line = f"[{i}/{n}] {record.status}: {Path(record.output_path).name} ({record.resampling_method})"
    if record.message:
        line += f"  {record.message}"
    click.echo(line)


def print_summary(result: ConversionResult) -> None:
    click.echo("\n=== COG Conversion Summary ===")
    for status, count in sorted(result.status_counts.items()):
        click.echo(f"  {status}: {count}")

    click.echo("\nBy resampling method:")
    for (method, status), count in sorted(result.resampling_status_counts.items()):
        click.echo(f"  {method} / {status}: {count}")

    if result.log_path is not None:
        click.echo(f"\nLog: {result.log_path}")


def execute(settings: PipelineSettings) -> ConversionResult:
    """Run the conversion stage with the given settings."""
    config = settings.cog_config()
    click.echo(f"\nConverting rows of {config.metadata_path}")
    click.echo(f"  Output: {config.cog_dir} ({config.layout.value})")

    result = COGConverter(config).run(progress=echo_progress)
    if not result.records:
        click.echo("No rows to convert.")
        return result
    print_summary(result)
    return result


@click.command("convert")
@click.option(
    "--config-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory holding all_layers_consistent.csv.",
)
@click.option(
    "--cog-dir",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="COG output root.",
)
@click.option(
    "--reports-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory of the conversion log.",
)
@click.option(
    "--layout",
    "cog_layout",
    type=click.Choice([m.value for m in CogLayout], case_sensitive=False),
    default=None,
    help="flat: <cog_dir>/<file>; nested: <cog_dir>/<data_type>/<domain>/<file>.",
)
@click.option("--threads", "cog_threads", type=int, default=None, help="Encoder thread cap.")
@click.pass_obj
def convert(
    ctx,
    config_dir: Optional[Path],
    cog_dir: Optional[Path],
    reports_dir: Optional[Path],
    cog_layout: Optional[str],
    cog_threads: Optional[int],
):
    """
    Convert consistent rasters into Cloud-Optimized GeoTIFFs.

    Existing outputs are skipped, so the command can be re-run after an
    interruption.
    """
    settings = settings_with(
        ctx["settings"],
        config_dir=config_dir,
        cog_dir=cog_dir,
        reports_dir=reports_dir,
        cog_layout=cog_layout,
        cog_threads=cog_threads,
    )
    try:
        execute(settings)
    except PipelineError as e:
        logger.error(str(e))
        raise click.ClickException(str(e))
