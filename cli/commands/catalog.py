"""
Catalog Command - Emit the STAC catalog of the converted COGs.

Usage:
    rcat catalog
    rcat catalog --from log --hosting hybrid
"""

import logging
from pathlib import Path
from typing import Optional

import click

from core.config import CogLayout, HostingMode, PipelineSettings, StacSource
from core.errors import PipelineError
from core.stac.emitter import StacEmitter, StacResult
from core.stac.hosting import HttpHostProbe

from cli.options import settings_with

logger = logging.getLogger("rcat.catalog")


def echo_progress(i: int, n: int, item_id: str, outcome: str) -> None:
    click.echo(f"[{i}/{n}] {outcome}: {item_id}")


def print_summary(result: StacResult, settings: PipelineSettings) -> None:
    click.echo("\n=== STAC Creation Summary ===")
    click.echo(f"  Catalog:         {result.catalog_path}")
    click.echo(f"  Collection:      {result.collection_path}")
    click.echo(f"  Total rows:      {result.total}")
    click.echo(f"  Written:         {result.counts['written']}")
    click.echo(f"  Skipped (exist): {result.counts['skipped']}")
    click.echo(f"  Missing COG:     {result.counts['missing_cog']}")
    click.echo(f"  Failed:          {result.counts['failed']}")

    if settings.hosting_mode == HostingMode.HYBRID:
        click.echo("\n=== Hosting Summary ===")
        click.echo(f"  Hosted:     {result.hosted}")
        click.echo(f"  Local only: {result.local}")

    for item_id, error in result.failures:
        click.echo(f"  FAILED {item_id}: {error}", err=True)


def execute(settings: PipelineSettings) -> StacResult:
    """Run the STAC stage with the given settings."""
    config = settings.stac_config()
    click.echo(f"\nWriting STAC catalog to {config.stac_dir}")
    click.echo(f"  Source:  {config.source.value}")
    click.echo(f"  Hosting: {config.hosting_mode.value}")

    prober = None
    if config.hosting_mode == HostingMode.HYBRID:
        prober = HttpHostProbe(timeout=settings.probe_timeout)

    result = StacEmitter(config, prober=prober).run(progress=echo_progress)
    print_summary(result, settings)
    return result


@click.command("catalog")
@click.option(
    "--stac-dir",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="STAC output root.",
)
@click.option("--cog-dir", type=click.Path(path_type=Path), default=None, help="COG root.")
@click.option(
    "--config-dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory holding all_layers_consistent.csv.",
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
    help="Layout the COGs were written with.",
)
@click.option(
    "--from",
    "stac_source",
    type=click.Choice([m.value for m in StacSource], case_sensitive=False),
    default=None,
    help="Read rows from the consistent inventory or the conversion log.",
)
@click.option(
    "--hosting",
    "hosting_mode",
    type=click.Choice([m.value for m in HostingMode], case_sensitive=False),
    default=None,
    help="local: relative hrefs; hybrid: remote URL when the host has the file.",
)
@click.option("--base-url", "hosting_base_url", type=str, default=None, help="Remote host prefix.")
@click.option("--timeout", "probe_timeout", type=float, default=None, help="Probe timeout (s).")
@click.option("--collection-id", type=str, default=None, help="Collection identifier.")
@click.option("--datetime", "item_datetime", type=str, default=None, help="Publication datetime.")
@click.pass_obj
def catalog(
    ctx,
    stac_dir: Optional[Path],
    cog_dir: Optional[Path],
    config_dir: Optional[Path],
    reports_dir: Optional[Path],
    cog_layout: Optional[str],
    stac_source: Optional[str],
    hosting_mode: Optional[str],
    hosting_base_url: Optional[str],
    probe_timeout: Optional[float],
    collection_id: Optional[str],
    item_datetime: Optional[str],
):
    """
    Write catalog, collection and item documents for the converted COGs.

    Existing items are left untouched; catalog and collection are
    regenerated on every run.
    """
    settings = settings_with(
        ctx["settings"],
        stac_dir=stac_dir,
        cog_dir=cog_dir,
        config_dir=config_dir,
        reports_dir=reports_dir,
        cog_layout=cog_layout,
        stac_source=stac_source,
        hosting_mode=hosting_mode,
        hosting_base_url=hosting_base_url,
        probe_timeout=probe_timeout,
        collection_id=collection_id,
        item_datetime=item_datetime,
    )
    try:
        execute(settings)
    except PipelineError as e:
        logger.error(str(e))
        raise click.ClickException(str(e))
