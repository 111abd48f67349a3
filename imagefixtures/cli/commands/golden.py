"""``imagefixtures golden`` — refresh golden fixture images."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from imagefixtures.cli.commands._options import FixturesDirOption, load_settings
from imagefixtures.core.golden_store import GoldenFileStore
from imagefixtures.core.resolver import FixtureResolver

console = Console()

golden_app = typer.Typer(no_args_is_help=True)


@golden_app.command(name="update-image", help="Snapshot a fixture's current archive as its golden image.")
def update_image_cmd(
    name: str = typer.Argument(..., help="Fixture name."),
    fixtures_dir: Path = FixturesDirOption,
) -> None:
    settings = load_settings(fixtures_dir)
    store = GoldenFileStore(settings, FixtureResolver(settings))
    try:
        path = store.update_golden_image(name)
    except (RuntimeError, OSError) as exc:
        console.print(f"[red]Could not update golden image {name!r}:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    console.print(f"[green]Golden image written:[/green] {path}", soft_wrap=True)
