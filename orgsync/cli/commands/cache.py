"""Cache commands for inspecting and clearing memoized results."""

from typing import Optional

import click
from rich.console import Console
from rich.prompt import Confirm

from orgsync.common.config import get_settings

console = Console()


@click.group()
def cache() -> None:
    """Inspect or clear the durable cache."""


@cache.command("list")
@click.argument("prefix", required=False, default="")
def list_keys(prefix: Optional[str]) -> None:
    """List cached keys starting with PREFIX."""
    from orgsync.cli.runtime import build_cache

    store = build_cache(get_settings())
    if store is None:
        console.print("[yellow]⚠ Cache is disabled[/yellow]")
        return

    count = 0
    for key in store.list(prefix or ""):
        console.print(key)
        count += 1
    console.print(f"\n[dim]{count} key(s)[/dim]")


@cache.command("clear")
@click.argument("prefix")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation prompt")
def clear(prefix: str, force: bool) -> None:
    """Delete cached keys starting with PREFIX (e.g. an org id)."""
    from orgsync.cli.runtime import build_cache

    store = build_cache(get_settings())
    if store is None:
        console.print("[yellow]⚠ Cache is disabled[/yellow]")
        return

    if not force and not Confirm.ask(f"Delete every cached key starting with {prefix!r}?"):
        console.print("[yellow]Clear cancelled[/yellow]\n")
        return

    removed = store.clear(prefix)
    console.print(f"[green]✓ Removed {removed} key(s)[/green]")
