"""
Entry point of the ``rcat`` command group.

Settings are loaded once per invocation and shared with every command
through ``ctx.obj["settings"]``; command options override them.
"""

import logging

import click

from core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure the root logger once for the whole process."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
@click.option("--quiet", "-q", is_flag=True, default=False, help="Only log warnings and errors.")
@click.version_option(package_name="raster-cog-catalog", prog_name="rcat")
@click.pass_context
def app(ctx, verbose: bool, quiet: bool):
    """
    Inventory, convert and catalog WRI raster layers.

    Configuration is read from RCAT_* environment variables (and a .env
    file); command options take precedence.
    """
    configure_logging(verbose=verbose, quiet=quiet)
    ctx.ensure_object(dict)
    if "settings" not in ctx.obj:
        ctx.obj["settings"] = get_settings()


def _register_commands() -> None:
    from cli.commands.catalog import catalog
    from cli.commands.convert import convert
    from cli.commands.inspect import inspect
    from cli.commands.inventory import inventory
    from cli.commands.run import run

    for command in (inventory, inspect, convert, catalog, run):
        app.add_command(command)


_register_commands()


def main() -> None:
    """Console script entry point."""
    app(obj={})


if __name__ == "__main__":
    main()
