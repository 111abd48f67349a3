"""Tests for CacheJanitor — listing and explicit pruning."""

from __future__ import annotations

import shutil

from imagefixtures.core.cache_janitor import CacheJanitor
from imagefixtures.models.transport import Transport


class TestEntries:
    def test_empty_when_cache_missing(self, settings):
        assert CacheJanitor(settings).entries() == []

    def test_lists_every_transport(self, resolver, make_context, settings):
        make_context("fx")
        resolver.resolve("docker-archive", "fx")
        resolver.resolve("oci-archive", "fx")
        resolver.resolve("oci-dir", "fx")

        entries = CacheJanitor(settings).entries()
        assert {e.transport for e in entries} == {
            Transport.DOCKER_ARCHIVE,
            Transport.OCI_ARCHIVE,
            Transport.OCI_DIRECTORY,
        }
        assert {e.fixture_name for e in entries} == {"fx"}
        assert {e.version for e in entries} == {resolver.fixture_version("fx")}

    def test_ignores_locks_partials_and_foreign_files(self, resolver, make_context, settings):
        make_context("fx")
        tar_path = resolver.image_tar_path("fx")
        (settings.cache_dir / "notes.txt").write_text("hello")
        (settings.cache_dir / (tar_path.name + ".partial")).write_bytes(b"")
        (settings.cache_dir / f"other-image-{'0' * 64}.tar").write_bytes(b"")

        entries = CacheJanitor(settings).entries()
        assert [e.path for e in entries] == [tar_path]

    def test_hyphenated_fixture_names(self, resolver, make_context, settings):
        make_context("scratch-fixture-2")
        resolver.image_tar_path("scratch-fixture-2")
        (entry,) = CacheJanitor(settings).entries()
        assert entry.fixture_name == "scratch-fixture-2"


class TestPrune:
    def test_current_entries_are_kept(self, resolver, make_context, settings):
        make_context("fx")
        tar_path = resolver.image_tar_path("fx")

        janitor = CacheJanitor(settings)
        assert janitor.stale_entries() == []
        assert janitor.prune() == []
        assert tar_path.exists()

    def test_superseded_versions_are_removed(self, resolver, make_context, settings):
        make_context("fx", {"Dockerfile": b"FROM scratch"})
        old = resolver.image_tar_path("fx")
        old_oci = resolver.oci_path("fx", Transport.OCI_DIRECTORY)
        make_context("fx", {"Dockerfile": b"FROM scratch\n"})
        new = resolver.image_tar_path("fx")

        removed = CacheJanitor(settings).prune()
        assert {e.path for e in removed} == {old, old_oci}
        assert not old.exists()
        assert not old_oci.exists()
        assert not (old.parent / (old.name + ".lock")).exists()
        assert new.exists()

    def test_build_lock_of_pruned_version_is_removed(self, resolver, make_context, settings):
        make_context("fx", {"Dockerfile": b"FROM scratch"})
        old_version = resolver.fixture_version("fx")
        resolver.image_tar_path("fx")
        make_context("fx", {"Dockerfile": b"FROM scratch\n"})
        new_version = resolver.fixture_version("fx")
        resolver.image_tar_path("fx")

        old_build_lock = settings.cache_dir / f"anchore-fixture-fx-{old_version}.build.lock"
        new_build_lock = settings.cache_dir / f"anchore-fixture-fx-{new_version}.build.lock"
        assert old_build_lock.exists()

        CacheJanitor(settings).prune()
        assert not old_build_lock.exists()
        assert new_build_lock.exists()

    def test_dry_run_keeps_lock_files(self, resolver, make_context, settings):
        make_context("fx", {"Dockerfile": b"FROM scratch"})
        old_version = resolver.fixture_version("fx")
        resolver.image_tar_path("fx")
        make_context("fx", {"Dockerfile": b"FROM busybox"})

        CacheJanitor(settings).prune(dry_run=True)
        assert (settings.cache_dir / f"anchore-fixture-fx-{old_version}.build.lock").exists()

    def test_dry_run_removes_nothing(self, resolver, make_context, settings):
        make_context("fx", {"Dockerfile": b"FROM scratch"})
        old = resolver.image_tar_path("fx")
        make_context("fx", {"Dockerfile": b"FROM busybox"})

        removed = CacheJanitor(settings).prune(dry_run=True)
        assert [e.path for e in removed] == [old]
        assert old.exists()

    def test_orphaned_fixture_is_removed(self, resolver, make_context, settings):
        context = make_context("gone")
        tar_path = resolver.image_tar_path("gone")
        shutil.rmtree(context)

        janitor = CacheJanitor(settings)
        assert janitor.current_versions() == {"gone": None}
        assert [e.path for e in janitor.prune()] == [tar_path]
