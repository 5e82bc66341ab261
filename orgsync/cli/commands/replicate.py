"""Replicate command: copy records from the source org to the destination org."""

import asyncio
import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from orgsync.common.config import get_settings
from orgsync.observability.metrics import MetricsExporter
from orgsync.replication import ReplicationReport
from orgsync.replication.field_policy import FieldPolicyTable

console = Console()


@click.command()
@click.option("--filter", "-f", "type_filter", help="Only object types whose name starts with this")
@click.option(
    "--enforce-order/--no-enforce-order",
    default=None,
    help="Process most referenced object types first",
)
@click.option(
    "--follow-references/--no-follow-references",
    default=None,
    help="Copy referenced records that are not yet in the destination",
)
@click.option("--batch-size", "-b", type=int, help="Records per upsert batch")
@click.option(
    "--policy-file",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON field policy table",
)
@click.option("--metrics-port", type=int, help="Expose Prometheus metrics on this port")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
def replicate(
    type_filter: Optional[str],
    enforce_order: Optional[bool],
    follow_references: Optional[bool],
    batch_size: Optional[int],
    policy_file: Optional[str],
    metrics_port: Optional[int],
    as_json: bool,
) -> None:
    """
    Replicate records from the source org to the destination org.

    Every eligible object type is processed; a failing type is reported
    and the run moves on to the next one.
    """
    from orgsync.cli.runtime import build_cache, build_clients
    from orgsync.replication.orchestrator import ReplicationOrchestrator

    settings = get_settings()
    overrides = {
        "enforce_dependency_order": enforce_order,
        "follow_references": follow_references,
        "batch_size": batch_size,
    }
    config = settings.replication.model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )

    metrics = MetricsExporter(port=metrics_port)
    metrics.start()

    policy = FieldPolicyTable.from_file(policy_file) if policy_file else FieldPolicyTable.default()
    cache = build_cache(settings)
    source, destination = build_clients(settings, cache, metrics)

    orchestrator = ReplicationOrchestrator(
        source, destination, cache=cache, config=config, policy=policy, metrics=metrics
    )

    if not as_json:
        console.print("\n[bold blue]Replicating records[/bold blue]\n")

    try:
        report = asyncio.run(orchestrator.run(type_filter))
    except Exception as e:
        console.print(f"[red]✗ Replication failed: {e}[/red]")
        raise click.Abort()

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _display_report(report)

    if report.failed:
        if not as_json:
            console.print(f"\n[bold red]✗ {len(report.failed)} object type(s) failed[/bold red]\n")
        raise click.Abort()

    if not as_json:
        console.print("\n[bold green]✓ Replication complete![/bold green]\n")


def _display_report(report: ReplicationReport) -> None:
    """Display per object results in a table."""
    table = Table(
        show_header=True,
        header_style="bold magenta",
        title=f"{report.source_username} → {report.destination_username}",
    )
    table.add_column("Object")
    table.add_column("State")
    for column in ("Read", "Upserted", "Unchanged", "Cached", "Skipped", "Failed"):
        table.add_column(column, justify="right")
    table.add_column("Error")

    for obj in report.objects:
        color = "green" if obj.succeeded else "red"
        table.add_row(
            obj.name,
            f"[{color}]{obj.state.value}[/{color}]",
            str(obj.read),
            str(obj.upserted),
            str(obj.unchanged),
            str(obj.cached),
            str(obj.skipped),
            str(obj.failed),
            obj.error or "",
        )

    console.print(table)
