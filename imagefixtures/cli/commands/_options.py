"""Options shared by the CLI commands."""

from __future__ import annotations

from pathlib import Path

import typer

from imagefixtures.config import FixtureSettings

FixturesDirOption = typer.Option(
    None,
    "--fixtures-dir",
    "-d",
    help="Fixtures root (default: IMAGEFIXTURES_FIXTURES_DIR or test-fixtures).",
)


def load_settings(fixtures_dir: Path | None) -> FixtureSettings:
    """Settings from the environment, with the CLI's fixtures root applied."""
    if fixtures_dir is None:
        return FixtureSettings()
    return FixtureSettings(fixtures_dir=fixtures_dir)
