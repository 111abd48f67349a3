"""Container engine and archive converter adapters.

Thin, failure-transparent shims over the ``docker`` and ``skopeo`` CLIs.
Build and conversion output is streamed to the test process's own stdio so
failures are diagnosable; only the existence check discards output.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class EngineError(RuntimeError):
    """Raised when an external engine or converter command fails."""


class ConverterUnavailableError(EngineError):
    """Raised when the OCI conversion tool is not installed."""


class ContainerEngine:
    """Build, inspect and save images through a docker-compatible CLI.

    Parameters
    ----------
    binary:
        Engine executable, ``docker`` by default.
    """

    def __init__(self, binary: str = "docker") -> None:
        self._binary = binary

    @property
    def binary(self) -> str:
        return self._binary

    def _run(self, args: list[str], **kwargs) -> subprocess.CompletedProcess:
        cmd = [self._binary, *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            return subprocess.run(cmd, env=os.environ.copy(), **kwargs)
        except OSError as exc:
            raise EngineError(f"Could not run container engine {self._binary}: {exc}") from exc

    # ------------------------------------------------------------------
    # Inspect
    # ------------------------------------------------------------------

    def image_exists(self, ref: str) -> bool:
        """Whether *ref* is present in the engine.

        Every failure (not found, daemon down, missing binary) reads as
        False: callers only need a build/no-build decision.
        """
        try:
            result = self._run(
                ["image", "inspect", ref],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except EngineError:
            return False
        return result.returncode == 0

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self, context_dir: Path, name: str, tag: str) -> None:
        """Build *context_dir* tagged ``name:tag`` and ``name:latest``."""
        logger.info("Building fixture image %s:%s from %s", name, tag, context_dir)
        result = self._run(
            ["build", "-t", f"{name}:{tag}", "-t", f"{name}:latest", "."],
            cwd=str(context_dir),
        )
        if result.returncode != 0:
            raise EngineError(
                f"Could not build fixture image {name}:{tag} "
                f"(exit code {result.returncode})"
            )

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save(self, ref: str, dest: Path) -> None:
        """Write a single-image archive of *ref* to *dest*.

        The archive is piped from stdout rather than written with ``-o``:
        some CI setups run the engine client as root, and the archive should
        stay owned by the test user. Failure to create *dest* propagates.
        """
        logger.info("Saving fixture image %s to %s", ref, dest)
        with open(dest, "wb") as outfile:
            result = self._run(["image", "save", ref], stdout=outfile)
        if result.returncode != 0:
            raise EngineError(
                f"Could not save fixture image {ref} (exit code {result.returncode})"
            )

    def remove_image(self, ref: str) -> None:
        """Remove *ref* from the engine."""
        logger.info("Removing image %s", ref)
        result = self._run(["image", "rm", ref], stdout=subprocess.DEVNULL)
        if result.returncode != 0:
            raise EngineError(
                f"Could not remove image {ref} (exit code {result.returncode})"
            )


class OciConverter:
    """Transcode docker-archive files into OCI layouts via ``skopeo copy``."""

    def __init__(self, binary: str = "skopeo") -> None:
        self._binary = binary

    @staticmethod
    def oci_archive_destination(path: Path) -> str:
        return f"oci-archive:{path}"

    @staticmethod
    def oci_directory_destination(path: Path) -> str:
        return f"oci:{path}"

    def available(self) -> bool:
        """Whether the conversion tool is on PATH."""
        return shutil.which(self._binary) is not None

    def convert(self, src_archive: Path, destination: str) -> None:
        """Copy the docker-archive at *src_archive* to *destination*.

        *destination* is a skopeo transport reference such as
        ``oci-archive:/path`` or ``oci:/path``.
        """
        if not self.available():
            raise ConverterUnavailableError(f"Cannot find {self._binary} executable")

        cmd = [self._binary, "copy", f"docker-archive:{src_archive}", destination]
        logger.info("Converting %s to %s", src_archive, destination)
        result = subprocess.run(cmd, env=os.environ.copy())
        if result.returncode != 0:
            raise EngineError(
                f"{self._binary} failed converting {src_archive} to {destination} "
                f"(exit code {result.returncode})"
            )
