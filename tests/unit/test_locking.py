"""Tests for per-key locks and atomic publication."""

from __future__ import annotations

from pathlib import Path

import pytest
from filelock import FileLock

from imagefixtures.core.locking import (
    FixtureLockTimeout,
    key_lock,
    lock_path_for,
    partial_path_for,
    publish_atomically,
)


class TestPaths:
    def test_sibling_names(self, tmp_path: Path):
        target = tmp_path / "img-abc.tar"
        assert lock_path_for(target) == tmp_path / "img-abc.tar.lock"
        assert partial_path_for(target) == tmp_path / "img-abc.tar.partial"


class TestKeyLock:
    def test_creates_parent_and_lock_file(self, tmp_path: Path):
        target = tmp_path / "cache" / "img.tar"
        with key_lock(target):
            assert lock_path_for(target).exists()

    def test_timeout_when_held_elsewhere(self, tmp_path: Path):
        target = tmp_path / "img.tar"
        holder = FileLock(str(lock_path_for(target)))
        with holder:
            with pytest.raises(FixtureLockTimeout):
                with key_lock(target, timeout=0.05):
                    pass

    def test_released_after_block(self, tmp_path: Path):
        target = tmp_path / "img.tar"
        with key_lock(target):
            pass
        with key_lock(target, timeout=0.05):
            pass


class TestPublishAtomically:
    def test_publishes_file(self, tmp_path: Path):
        target = tmp_path / "out.tar"
        with publish_atomically(target) as partial:
            assert partial != target
            partial.write_bytes(b"data")
            assert not target.exists()
        assert target.read_bytes() == b"data"
        assert not partial_path_for(target).exists()

    def test_publishes_directory(self, tmp_path: Path):
        target = tmp_path / "layout"
        with publish_atomically(target) as partial:
            partial.mkdir()
            (partial / "index.json").write_text("{}")
        assert (target / "index.json").read_text() == "{}"

    def test_failure_leaves_nothing(self, tmp_path: Path):
        target = tmp_path / "out.tar"
        with pytest.raises(RuntimeError):
            with publish_atomically(target) as partial:
                partial.write_bytes(b"half")
                raise RuntimeError("engine died")
        assert not target.exists()
        assert not partial_path_for(target).exists()

    def test_stale_partial_is_discarded(self, tmp_path: Path):
        target = tmp_path / "out.tar"
        partial_path_for(target).write_bytes(b"left over from a crash")
        with publish_atomically(target) as partial:
            assert not partial.exists()
            partial.write_bytes(b"fresh")
        assert target.read_bytes() == b"fresh"
