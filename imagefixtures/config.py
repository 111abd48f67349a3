"""Fixture configuration — env-driven, injected once by the harness.

Centralized settings using pydantic-settings. Reads from a .env file and
IMAGEFIXTURES_* environment variables. There is deliberately no module-level
instance: the pytest plugin (or the CLI) builds one ``FixtureSettings`` and
passes it to the resolver and golden store, so separate test sessions can use
separate fixture roots.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class FixtureSettings(BaseSettings):
    """Directory layout and tool settings for image fixtures.

    All settings can be overridden via IMAGEFIXTURES_* environment variables
    or a .env file in the working directory.

    Examples
    --------
    Override via environment::

        export IMAGEFIXTURES_FIXTURES_DIR=tests/test-fixtures
        export IMAGEFIXTURES_ENGINE_BINARY=podman
        export IMAGEFIXTURES_UPDATE_GOLDEN=true

    Resulting layout::

        <fixtures_dir>/<name>/                          build contexts
        <fixtures_dir>/cache/<prefix>-<name>-<v>.tar    image archives
        <fixtures_dir>/snapshot/<identity>.golden       golden records
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="IMAGEFIXTURES_",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Layout
    fixtures_dir: Path = Path("test-fixtures")
    cache_dir_name: str = "cache"
    snapshot_dir_name: str = "snapshot"
    image_prefix: str = "anchore-fixture"
    golden_ext: str = ".golden"

    # External tools
    engine_binary: str = "docker"
    converter_binary: str = "skopeo"

    # Seconds to wait for another worker's build; negative waits forever
    lock_timeout_seconds: float = -1

    # Golden files
    update_golden: bool = False

    # Observability
    log_level: str = "INFO"

    @property
    def cache_dir(self) -> Path:
        """Directory holding built image archives and OCI conversions."""
        return self.fixtures_dir / self.cache_dir_name

    @property
    def snapshot_dir(self) -> Path:
        """Directory holding golden records."""
        return self.fixtures_dir / self.snapshot_dir_name

    def context_dir(self, name: str) -> Path:
        """Build context directory for fixture *name*."""
        return self.fixtures_dir / name

    def image_name(self, name: str) -> str:
        """Engine-local image name for fixture *name*."""
        return f"{self.image_prefix}-{name}"
