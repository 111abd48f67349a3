"""Per-cache-key locks and atomic artifact writes.

Every "exists? else create" step in the resolver runs inside ``key_lock`` on
the artifact's path, and checks existence again once the lock is held, so
concurrent workers resolving the same fixture serialize onto a single build.
Artifacts are written to a ``.partial`` sibling and renamed into place, so a
reader never sees a half-written archive.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"
PARTIAL_SUFFIX = ".partial"


class FixtureLockTimeout(RuntimeError):
    """Raised when another worker holds a fixture lock for too long."""


def lock_path_for(path: Path) -> Path:
    """Lock file guarding the artifact at *path*."""
    return path.with_name(path.name + LOCK_SUFFIX)


def partial_path_for(path: Path) -> Path:
    """Temporary sibling an artifact is written to before it is published."""
    return path.with_name(path.name + PARTIAL_SUFFIX)


@contextmanager
def key_lock(path: Path, timeout: float = -1) -> Iterator[None]:
    """Hold the cross-process lock for the artifact at *path*."""
    lock_file = lock_path_for(path)
    lock_file.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(lock_file), timeout=timeout)
    try:
        lock.acquire()
    except Timeout as exc:
        raise FixtureLockTimeout(
            f"Timed out after {timeout}s waiting for {lock_file}"
        ) from exc
    logger.debug("Acquired lock %s", lock_file.name)
    try:
        yield
    finally:
        lock.release()


@contextmanager
def publish_atomically(path: Path) -> Iterator[Path]:
    """Yield a temporary path; rename it onto *path* if the block succeeds.

    On failure the partial artifact (file or directory) is removed and the
    exception propagates.
    """
    partial = partial_path_for(path)
    _remove(partial)
    try:
        yield partial
    except BaseException:
        _remove(partial)
        raise
    os.replace(partial, path)


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()
