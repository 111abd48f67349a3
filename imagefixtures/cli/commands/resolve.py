"""``imagefixtures resolve`` — materialize a fixture ahead of a test run.

Useful in CI to warm the cache once before parallel test workers start.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from imagefixtures.cli.commands._options import FixturesDirOption, load_settings
from imagefixtures.core.resolver import FixtureResolver

console = Console()


def resolve_cmd(
    source: str = typer.Argument(
        ..., help="docker-archive, docker, oci-archive or oci-dir."
    ),
    name: str = typer.Argument(..., help="Fixture name."),
    fixtures_dir: Path = FixturesDirOption,
) -> None:
    """Build, save or convert the fixture as needed and print its locator."""
    resolver = FixtureResolver(load_settings(fixtures_dir))
    try:
        resolved = resolver.resolve(source, name)
    except (RuntimeError, ValueError) as exc:
        console.print(f"[red]Could not resolve fixture {name!r}:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(f"[dim]version {resolved.version}[/dim]")
    console.print(resolved.locator, soft_wrap=True)
