"""Order command: show the reference-count processing order."""

import asyncio
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from orgsync.common.config import get_settings

console = Console()


@click.command()
@click.option("--filter", "-f", "type_filter", help="Only object types whose name starts with this")
@click.option("--limit", "-n", type=int, default=25, show_default=True, help="Rows to show")
def order(type_filter: Optional[str], limit: int) -> None:
    """Show eligible object types, most referenced first."""
    from orgsync.cli.runtime import build_cache, build_clients
    from orgsync.replication.orchestrator import ReplicationOrchestrator

    settings = get_settings()
    cache = build_cache(settings)
    source, destination = build_clients(settings, cache)
    orchestrator = ReplicationOrchestrator(source, destination, cache=cache, config=settings.replication)

    async def _build():
        await source.connect()
        await destination.connect()
        names = await orchestrator.eligible_objects(type_filter)
        return await orchestrator.scheduler.build_order(source, names)

    try:
        ordered, counts = asyncio.run(_build())
    except Exception as e:
        console.print(f"[red]✗ Failed to build order: {e}[/red]")
        raise click.Abort()

    table = Table(show_header=True, header_style="bold magenta", title="Processing order")
    table.add_column("#", justify="right")
    table.add_column("Object")
    table.add_column("References", justify="right")
    for i, name in enumerate(ordered[:limit], start=1):
        table.add_row(str(i), name, str(counts.get(name, 0)))

    console.print(table)
