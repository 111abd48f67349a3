"""``imagefixtures hash`` — print a fixture's content version."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from imagefixtures.cli.commands._options import FixturesDirOption, load_settings
from imagefixtures.core.hasher import FixtureHashError, dir_hash

console = Console()


def hash_cmd(
    name: str = typer.Argument(..., help="Fixture name (a directory under the fixtures root)."),
    fixtures_dir: Path = FixturesDirOption,
) -> None:
    """Hash the fixture's build context and print the digest."""
    settings = load_settings(fixtures_dir)
    try:
        digest = dir_hash(settings.context_dir(name))
    except FixtureHashError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    console.print(digest, soft_wrap=True)
