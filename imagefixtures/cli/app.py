"""Main Typer application — imports and registers all CLI commands.

Entry point: ``imagefixtures`` (configured via pyproject.toml scripts).

Commands: hash, resolve, cache list, cache prune, golden update-image.
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from imagefixtures.cli.commands.cache import cache_app
from imagefixtures.cli.commands.golden import golden_app
from imagefixtures.cli.commands.hash_cmd import hash_cmd
from imagefixtures.cli.commands.resolve import resolve_cmd
from imagefixtures.config import FixtureSettings

app = typer.Typer(
    name="imagefixtures",
    help="imagefixtures: content-addressed container image fixtures for tests.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="hash", help="Print the content version of a fixture context.")(hash_cmd)
app.command(name="resolve", help="Build/save a fixture and print its locator.")(resolve_cmd)
app.add_typer(cache_app, name="cache", help="Inspect and prune the archive cache.")
app.add_typer(golden_app, name="golden", help="Manage golden fixture images.")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Configure logging from IMAGEFIXTURES_LOG_LEVEL (or --verbose)."""
    level = "DEBUG" if verbose else FixtureSettings().log_level.upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
