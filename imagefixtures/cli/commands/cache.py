"""``imagefixtures cache`` — list and prune cached fixture archives."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from imagefixtures.cli.commands._options import FixturesDirOption, load_settings
from imagefixtures.core.cache_janitor import CacheJanitor

console = Console()

cache_app = typer.Typer(no_args_is_help=True)


@cache_app.command(name="list", help="List cached archives and whether they are current.")
def list_cmd(fixtures_dir: Path = FixturesDirOption) -> None:
    janitor = CacheJanitor(load_settings(fixtures_dir))
    entries = janitor.entries()
    if not entries:
        console.print("[dim]Cache is empty.[/dim]")
        return

    versions = janitor.current_versions()
    table = Table(title="Fixture Cache")
    table.add_column("Fixture", style="cyan")
    table.add_column("Transport")
    table.add_column("Version")
    table.add_column("Size", justify="right")
    table.add_column("Current", justify="center")

    for entry in entries:
        if entry.fixture_name not in versions:
            current = "[yellow]?[/yellow]"
        elif versions[entry.fixture_name] == entry.version:
            current = "[green]Yes[/green]"
        else:
            current = "[red]No[/red]"
        table.add_row(
            entry.fixture_name,
            entry.transport.value,
            entry.version[:12],
            f"{entry.size_bytes:,}",
            current,
        )
    console.print(table)


@cache_app.command(name="prune", help="Delete archives of superseded or removed fixtures.")
def prune_cmd(
    fixtures_dir: Path = FixturesDirOption,
    dry_run: bool = typer.Option(False, "--dry-run", help="Only show what would be removed."),
) -> None:
    janitor = CacheJanitor(load_settings(fixtures_dir))
    removed = janitor.prune(dry_run=dry_run)
    verb = "Would remove" if dry_run else "Removed"
    for entry in removed:
        console.print(f"{verb} {entry.path}", soft_wrap=True)
    console.print(f"[bold]{verb} {len(removed)} stale cache entr{'y' if len(removed) == 1 else 'ies'}.[/bold]")
