"""Cache inspection and explicit pruning of superseded fixture versions.

Resolution never deletes anything: when a build context changes, its old
archives simply stop being referenced. ``CacheJanitor`` lists what is in the
cache directory and removes entries whose version no longer matches their
fixture's context (or whose context is gone), only when asked to.
"""

from __future__ import annotations

import logging
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path

from imagefixtures.config import FixtureSettings
from imagefixtures.core.hasher import FixtureHashError, dir_hash
from imagefixtures.core.locking import lock_path_for
from imagefixtures.models.fixtures import CacheEntry
from imagefixtures.models.transport import Transport

logger = logging.getLogger(__name__)

_ENTRY_PATTERN = re.compile(
    r"^(?:(?P<oci>oci-archive|oci-dir)-)?(?P<image>.+)-(?P<version>[0-9a-f]{64})\.tar$"
)
_OCI_TRANSPORTS = {
    "oci-archive": Transport.OCI_ARCHIVE,
    "oci-dir": Transport.OCI_DIRECTORY,
}


class CacheJanitor:
    """Lists and prunes artifacts in ``settings.cache_dir``."""

    def __init__(self, settings: FixtureSettings) -> None:
        self._settings = settings

    def _fixture_name(self, image_name: str) -> str | None:
        prefix = f"{self._settings.image_prefix}-"
        if not image_name.startswith(prefix):
            return None
        return image_name[len(prefix):] or None

    def entries(self) -> list[CacheEntry]:
        """Every fixture artifact in the cache, sorted by file name.

        Lock files, partial writes and foreign files are ignored.
        """
        cache_dir = self._settings.cache_dir
        if not cache_dir.is_dir():
            return []

        found: list[CacheEntry] = []
        for path in sorted(cache_dir.iterdir()):
            match = _ENTRY_PATTERN.match(path.name)
            if match is None:
                continue
            fixture_name = self._fixture_name(match["image"])
            if fixture_name is None:
                continue
            transport = _OCI_TRANSPORTS.get(match["oci"] or "", Transport.DOCKER_ARCHIVE)
            info = path.stat()
            found.append(
                CacheEntry(
                    fixture_name=fixture_name,
                    version=match["version"],
                    transport=transport,
                    path=path,
                    size_bytes=info.st_size if path.is_file() else 0,
                    modified_at=datetime.fromtimestamp(info.st_mtime, tz=timezone.utc),
                )
            )
        return found

    def current_versions(self) -> dict[str, str | None]:
        """Current context version per cached fixture; None if the context is gone.

        Fixtures whose context cannot be hashed are left out, so their
        entries are never treated as stale.
        """
        versions: dict[str, str | None] = {}
        for fixture_name in sorted({e.fixture_name for e in self.entries()}):
            context = self._settings.context_dir(fixture_name)
            if not context.is_dir():
                versions[fixture_name] = None
                continue
            try:
                versions[fixture_name] = dir_hash(context)
            except FixtureHashError:
                logger.warning("Could not hash %s; keeping its cache entries", context)
        return versions

    def stale_entries(self) -> list[CacheEntry]:
        """Entries superseded by a newer context version or orphaned."""
        versions = self.current_versions()
        return [
            e
            for e in self.entries()
            if e.fixture_name in versions and versions[e.fixture_name] != e.version
        ]

    def prune(self, *, dry_run: bool = False) -> list[CacheEntry]:
        """Delete stale entries; returns what was (or would be) removed."""
        stale = self.stale_entries()
        for entry in stale:
            if dry_run:
                logger.info("Would remove %s", entry.path)
                continue
            logger.info("Removing stale cache entry %s", entry.path)
            if entry.path.is_dir():
                shutil.rmtree(entry.path)
            else:
                entry.path.unlink()
            lock_path_for(entry.path).unlink(missing_ok=True)
            lock_path_for(self._build_key(entry)).unlink(missing_ok=True)
        return stale

    def _build_key(self, entry: CacheEntry) -> Path:
        # Guards the image build for this version; see FixtureResolver._ensure_built
        image_name = self._settings.image_name(entry.fixture_name)
        return self._settings.cache_dir / f"{image_name}-{entry.version}.build"
