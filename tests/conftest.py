"""Shared test fixtures for imagefixtures."""

from __future__ import annotations

import hashlib
import io
import json
import shutil
import tarfile
from collections.abc import Callable
from pathlib import Path

import pytest

from imagefixtures.config import FixtureSettings
from imagefixtures.core.acquisition import ImageAcquirer
from imagefixtures.core.engine import ContainerEngine, EngineError, OciConverter
from imagefixtures.core.golden_store import GoldenFileStore
from imagefixtures.core.resolver import FixtureResolver

# ---------------------------------------------------------------------------
# Image archive builders
# ---------------------------------------------------------------------------


def _sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _tar_bytes(files: dict[str, bytes]) -> bytes:
    """Deterministic tar of *files* (sorted, mtime 0)."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        for name in sorted(files):
            info = tarfile.TarInfo(name)
            info.size = len(files[name])
            info.mtime = 0
            tar.addfile(info, io.BytesIO(files[name]))
    return buf.getvalue()


def _image_parts(files: dict[str, bytes]) -> tuple[bytes, bytes]:
    layer = _tar_bytes(files)
    config = json.dumps(
        {
            "architecture": "amd64",
            "os": "linux",
            "rootfs": {"type": "layers", "diff_ids": [f"sha256:{_sha256(layer)}"]},
        },
        sort_keys=True,
    ).encode()
    return layer, config


def write_docker_archive(dest: Path, tag: str, files: dict[str, bytes]) -> None:
    """Write a single-image archive shaped like ``docker image save`` output."""
    layer, config = _image_parts(files)
    layer_digest, config_digest = _sha256(layer), _sha256(config)
    manifest = json.dumps(
        [
            {
                "Config": f"{config_digest}.json",
                "RepoTags": [tag],
                "Layers": [f"{layer_digest}/layer.tar"],
            }
        ]
    ).encode()
    dest.write_bytes(
        _tar_bytes(
            {
                "manifest.json": manifest,
                f"{config_digest}.json": config,
                f"{layer_digest}/layer.tar": layer,
            }
        )
    )


def write_oci_layout(root: Path, ref_name: str, files: dict[str, bytes]) -> None:
    """Write an OCI image layout directory holding one image."""
    layer, config = _image_parts(files)
    manifest = json.dumps(
        {
            "schemaVersion": 2,
            "config": {
                "mediaType": "application/vnd.oci.image.config.v1+json",
                "digest": f"sha256:{_sha256(config)}",
                "size": len(config),
            },
            "layers": [
                {
                    "mediaType": "application/vnd.oci.image.layer.v1.tar",
                    "digest": f"sha256:{_sha256(layer)}",
                    "size": len(layer),
                }
            ],
        }
    ).encode()
    index = {
        "schemaVersion": 2,
        "manifests": [
            {
                "mediaType": "application/vnd.oci.image.manifest.v1+json",
                "digest": f"sha256:{_sha256(manifest)}",
                "size": len(manifest),
                "annotations": {"org.opencontainers.image.ref.name": ref_name},
            }
        ],
    }
    blobs = root / "blobs" / "sha256"
    blobs.mkdir(parents=True)
    for blob in (layer, config, manifest):
        (blobs / _sha256(blob)).write_bytes(blob)
    (root / "index.json").write_text(json.dumps(index))
    (root / "oci-layout").write_text('{"imageLayoutVersion": "1.0.0"}')


def _read_docker_archive_files(archive: Path) -> dict[str, bytes]:
    """Files of the single layer inside a test docker-archive."""
    with tarfile.open(archive) as outer:
        manifest = json.loads(outer.extractfile("manifest.json").read())
        layer_bytes = outer.extractfile(manifest[0]["Layers"][0]).read()
    with tarfile.open(fileobj=io.BytesIO(layer_bytes)) as layer:
        return {m.name: layer.extractfile(m).read() for m in layer.getmembers()}


# ---------------------------------------------------------------------------
# Engine / converter doubles
# ---------------------------------------------------------------------------


class FakeEngine(ContainerEngine):
    """In-memory engine: "builds" copy the context's files into a layer."""

    def __init__(self) -> None:
        super().__init__(binary="fake-docker")
        self.images: dict[str, dict[str, bytes]] = {}
        self.calls: list[tuple[str, ...]] = []

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)

    def image_exists(self, ref: str) -> bool:
        self.calls.append(("inspect", ref))
        return ref in self.images

    def build(self, context_dir: Path, name: str, tag: str) -> None:
        self.calls.append(("build", name, tag))
        files = {
            str(p.relative_to(context_dir)): p.read_bytes()
            for p in sorted(Path(context_dir).rglob("*"))
            if p.is_file()
        }
        self.images[f"{name}:{tag}"] = files
        self.images[f"{name}:latest"] = files

    def save(self, ref: str, dest: Path) -> None:
        self.calls.append(("save", ref))
        if ref not in self.images:
            raise EngineError(f"no such image: {ref}")
        write_docker_archive(Path(dest), ref, self.images[ref])

    def remove_image(self, ref: str) -> None:
        self.calls.append(("rm", ref))
        self.images.pop(ref, None)


class FakeConverter(OciConverter):
    """Converts test docker-archives into OCI layouts without skopeo."""

    def __init__(self) -> None:
        super().__init__(binary="fake-skopeo")
        self.calls: list[tuple[Path, str]] = []

    def available(self) -> bool:
        return True

    def convert(self, src_archive: Path, destination: str) -> None:
        self.calls.append((Path(src_archive), destination))
        kind, _, raw_path = destination.partition(":")
        files = _read_docker_archive_files(Path(src_archive))
        dest = Path(raw_path)
        if kind == "oci":
            write_oci_layout(dest, "latest", files)
            return
        staging = dest.with_name(dest.name + ".layout")
        write_oci_layout(staging, "latest", files)
        with tarfile.open(dest, mode="w") as tar:
            for path in sorted(staging.rglob("*")):
                tar.add(path, arcname=str(path.relative_to(staging)), recursive=False)
        shutil.rmtree(staging)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def settings(tmp_dir: Path) -> FixtureSettings:
    """Settings rooted at a temp fixtures directory."""
    return FixtureSettings(fixtures_dir=tmp_dir / "test-fixtures")


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def fake_converter() -> FakeConverter:
    return FakeConverter()


@pytest.fixture
def resolver(
    settings: FixtureSettings, fake_engine: FakeEngine, fake_converter: FakeConverter
) -> FixtureResolver:
    """Provide a FixtureResolver wired to the fake engine and converter."""
    return FixtureResolver(
        settings,
        engine=fake_engine,
        converter=fake_converter,
        acquirer=ImageAcquirer(fake_engine),
    )


@pytest.fixture
def golden_files(settings: FixtureSettings, resolver: FixtureResolver) -> GoldenFileStore:
    """Provide a GoldenFileStore over the temp snapshot directory."""
    return GoldenFileStore(settings, resolver)


@pytest.fixture
def make_context(settings: FixtureSettings) -> Callable[..., Path]:
    """Factory fixture: write a fixture build context from a {path: bytes} map."""

    def _factory(name: str, files: dict[str, bytes] | None = None) -> Path:
        context = settings.context_dir(name)
        context.mkdir(parents=True, exist_ok=True)
        for rel, data in (files or {"Dockerfile": b"FROM scratch"}).items():
            target = context / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        return context

    return _factory


@pytest.fixture
def make_docker_archive(tmp_dir: Path) -> Callable[..., Path]:
    """Factory fixture: write a docker-archive tarball and return its path."""

    def _factory(
        filename: str = "image.tar",
        tag: str = "example:latest",
        files: dict[str, bytes] | None = None,
    ) -> Path:
        dest = tmp_dir / filename
        write_docker_archive(dest, tag, files or {"etc/hello.txt": b"hello"})
        return dest

    return _factory


@pytest.fixture
def make_oci_layout(tmp_dir: Path) -> Callable[..., Path]:
    """Factory fixture: write an OCI layout directory and return its path."""

    def _factory(
        dirname: str = "oci-layout",
        ref_name: str = "latest",
        files: dict[str, bytes] | None = None,
    ) -> Path:
        root = tmp_dir / dirname
        write_oci_layout(root, ref_name, files or {"etc/hello.txt": b"hello"})
        return root

    return _factory
