"""Golden file store — explicit, reviewable expected test output.

A golden record lives at ``<snapshot_dir>/<identity>.golden`` where the
identity is the test's hierarchical name with path separators replaced by
underscores. Records are only ever written by ``update`` (loudly); ``load``
never creates one, so a missing record always fails the test.

Whole fixture images can be snapshotted too: ``update_golden_image`` copies
the current cached archive of a fixture into the snapshot directory, and
``load_golden_image`` opens that copy without any freshness check.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from rich.console import Console

from imagefixtures.config import FixtureSettings
from imagefixtures.core.acquisition import Image, ImageAcquirer, ImageRegistry
from imagefixtures.core.hasher import file_sha256, sha256_hex
from imagefixtures.core.locking import publish_atomically
from imagefixtures.core.resolver import FixtureResolver
from imagefixtures.models.golden import GoldenRecord, GoldenState

logger = logging.getLogger(__name__)

_SEPARATORS = {"/", "\\", os.sep}
_GOLDEN_FILE_MODE = 0o600

_console = Console(stderr=True)


class GoldenFileMissingError(FileNotFoundError):
    """Raised when a golden record is read before it was ever written."""


class GoldenMismatchError(AssertionError):
    """Raised when actual output differs from its golden record."""


def _announce(banner: str, target: str) -> None:
    _console.print(f"[reverse bold red]{banner}[/reverse bold red] {target}")


def _first_difference(expected: bytes, actual: bytes) -> int:
    for offset, (a, b) in enumerate(zip(expected, actual)):
        if a != b:
            return offset
    return min(len(expected), len(actual))


class GoldenFileStore:
    """Maps test identities to golden records under the snapshot directory.

    Parameters
    ----------
    settings:
        Supplies ``snapshot_dir`` and ``golden_ext``.
    resolver:
        Needed only for golden fixture images.
    """

    def __init__(
        self, settings: FixtureSettings, resolver: FixtureResolver | None = None
    ) -> None:
        self._settings = settings
        self._resolver = resolver

    @property
    def snapshot_dir(self) -> Path:
        return self._settings.snapshot_dir

    # ------------------------------------------------------------------
    # Identity -> path
    # ------------------------------------------------------------------

    def path_for(self, identity: str) -> Path:
        """Deterministic golden path for *identity*; never nested.

        ``"Group/SubCase"`` maps to ``<snapshot_dir>/Group_SubCase.golden``.
        """
        filename = identity
        for sep in _SEPARATORS:
            filename = filename.replace(sep, "_")
        if not filename or filename in {".", ".."} or "\x00" in filename:
            raise ValueError(f"Not a usable golden identity: {identity!r}")
        return self.snapshot_dir / f"{filename}{self._settings.golden_ext}"

    def state(self, identity: str) -> GoldenState:
        if self.path_for(identity).is_file():
            return GoldenState.PRESENT
        return GoldenState.ABSENT

    def record(self, identity: str) -> GoldenRecord:
        path = self.path_for(identity)
        if not path.is_file():
            return GoldenRecord(identity=identity, path=path, state=GoldenState.ABSENT)
        return GoldenRecord(
            identity=identity,
            path=path,
            state=GoldenState.PRESENT,
            size_bytes=path.stat().st_size,
            sha256=file_sha256(path),
        )

    # ------------------------------------------------------------------
    # Update / load
    # ------------------------------------------------------------------

    def update(self, identity: str, contents: bytes) -> Path:
        """Overwrite the golden record for *identity* with *contents*."""
        path = self.path_for(identity)
        _announce("!!! UPDATING GOLDEN FILE !!!", str(path))
        logger.warning("Updating golden file %s (%d bytes)", path, len(contents))

        self.snapshot_dir.mkdir(parents=True, exist_ok=True)
        with publish_atomically(path) as partial:
            partial.write_bytes(contents)
            partial.chmod(_GOLDEN_FILE_MODE)
        return path

    def load(self, identity: str) -> bytes:
        """Return the golden bytes for *identity*; fail if never updated."""
        path = self.path_for(identity)
        if not path.is_file():
            raise GoldenFileMissingError(f"Golden file does not exist: {path}")
        return path.read_bytes()

    # ------------------------------------------------------------------
    # Compare
    # ------------------------------------------------------------------

    def compare(self, identity: str, actual: bytes) -> bool:
        """Whether *actual* equals the golden record (which must exist)."""
        return self.load(identity) == actual

    def assert_matches(
        self, identity: str, actual: bytes, *, update: bool = False
    ) -> None:
        """The compare/update protocol.

        With *update*, the record is (re)written from *actual*. Otherwise
        the record must exist and match byte for byte.
        """
        if update:
            self.update(identity, actual)
            return

        expected = self.load(identity)
        if expected == actual:
            return
        offset = _first_difference(expected, actual)
        raise GoldenMismatchError(
            f"Output differs from golden file {self.path_for(identity)}: "
            f"expected {len(expected)} bytes (sha256 {sha256_hex(expected)[:12]}), "
            f"got {len(actual)} bytes (sha256 {sha256_hex(actual)[:12]}); "
            f"first difference at byte {offset}"
        )

    # ------------------------------------------------------------------
    # Golden fixture images
    # ------------------------------------------------------------------

    def _require_resolver(self) -> FixtureResolver:
        if self._resolver is None:
            raise RuntimeError("Golden fixture images need a FixtureResolver")
        return self._resolver

    def golden_image_path(self, name: str) -> Path:
        """Snapshot path of fixture *name*'s image, keyed by the fixture."""
        image_name = self._settings.image_name(name)
        return self.snapshot_dir / f"{image_name}{self._settings.golden_ext}"

    def update_golden_image(self, name: str) -> Path:
        """Copy the current cached archive of fixture *name* into the snapshots."""
        golden_path = self.golden_image_path(name)
        _announce("!!! UPDATING GOLDEN FIXTURE IMAGE !!!", name)
        logger.warning("Updating golden fixture image %s at %s", name, golden_path)

        tar_path = self._require_resolver().image_tar_path(name)
        self.snapshot_dir.mkdir(parents=True, exist_ok=True)
        with publish_atomically(golden_path) as partial:
            shutil.copyfile(tar_path, partial)
        return golden_path

    def load_golden_image(
        self, name: str, registry: ImageRegistry | None = None
    ) -> Image:
        """Open the snapshotted image of fixture *name* as-is.

        The snapshot is ground truth: it is never rebuilt or checked against
        the current build context.
        """
        golden_path = self.golden_image_path(name)
        if not golden_path.is_file():
            raise GoldenFileMissingError(f"Golden fixture image does not exist: {golden_path}")
        locator = f"docker-archive://{golden_path}"
        if registry is not None:
            return registry.acquire(locator)
        acquirer = self._resolver.acquirer if self._resolver else ImageAcquirer()
        return acquirer.acquire(locator)
