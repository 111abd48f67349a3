"""Content hashing for fixture versions and cache integrity.

A fixture's version is the SHA-256 of the bytes of every regular file in its
build context, concatenated in a depth-first walk. Paths and file modes are
not part of the digest, only content.
"""

from __future__ import annotations

import hashlib
import os
import stat
from pathlib import Path

_CHUNK_SIZE = 1024 * 1024


class FixtureHashError(RuntimeError):
    """Raised when a build context cannot be walked or read."""


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def _update_from_file(hasher: "hashlib._Hash", path: Path) -> None:
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            hasher.update(chunk)


def file_sha256(path: Path) -> str:
    """SHA-256 hex digest of a single file, streamed."""
    hasher = hashlib.sha256()
    _update_from_file(hasher, Path(path))
    return hasher.hexdigest()


def _walk(hasher: "hashlib._Hash", directory: Path) -> None:
    # Entries are visited in name order; directories are recursed into where
    # they fall in that order (same order as a lexical walk).
    for name in sorted(os.listdir(directory)):
        path = directory / name
        mode = os.lstat(path).st_mode
        if stat.S_ISDIR(mode):
            _walk(hasher, path)
        elif stat.S_ISREG(mode):
            _update_from_file(hasher, path)


def dir_hash(root: Path) -> str:
    """Content digest of every regular file under *root*.

    *root* itself may be a symlink to a directory. Below it, symlinks (to
    files or directories), sockets, fifos and devices are
    skipped. Raises FixtureHashError if *root* is missing or any file cannot
    be read, including files removed mid-walk.
    """
    root = Path(root)
    hasher = hashlib.sha256()
    try:
        if not stat.S_ISDIR(os.stat(root).st_mode):
            raise FixtureHashError(f"Build context is not a directory: {root}")
        _walk(hasher, root)
    except OSError as exc:
        raise FixtureHashError(f"Could not hash build context {root}: {exc}") from exc
    return hasher.hexdigest()
