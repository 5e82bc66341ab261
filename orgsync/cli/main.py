"""Main CLI entry point for orgsync."""

import click
from rich.console import Console

from orgsync import __version__
from orgsync.cli.commands.cache import cache
from orgsync.cli.commands.order import order
from orgsync.cli.commands.replicate import replicate
from orgsync.observability.logging_config import setup_logging

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="orgsync")
@click.option("--log-level", "-l", default=None, help="Override the configured log level")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """
    orgsync - replicate records between two Salesforce orgs.

    Records are matched through an external-id field on the destination
    holding the source record id, so runs can be repeated safely.
    Connections are read from SOURCE_SF_* and DEST_SF_* settings.
    """
    ctx.ensure_object(dict)
    setup_logging(log_level)


# Register commands
cli.add_command(replicate)
cli.add_command(order)
cli.add_command(cache)


if __name__ == "__main__":
    cli()
