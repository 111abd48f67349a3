"""Image acquisition — turn a locator into an in-memory image handle.

Supports the four fixture transports:

- ``docker-archive://<path>``  tarball from ``docker image save``
- ``oci-archive://<path>``     tarball of an OCI image layout
- ``oci-dir://<path>``         OCI image layout directory, read in place
- ``docker://<ref>``           image in the engine, saved to a temp archive

Archives are unpacked into a temporary directory owned by the returned
``Image``; ``Image.release()`` removes it. ``ImageRegistry`` tracks handles
for a test session so every one is released on teardown, whatever the exit
path.
"""

from __future__ import annotations

import json
import logging
import shutil
import tarfile
import tempfile
from pathlib import Path
from types import TracebackType
from typing import Any

from pydantic import BaseModel, ConfigDict

from imagefixtures.core.engine import ContainerEngine
from imagefixtures.core.hasher import file_sha256
from imagefixtures.models.transport import Transport, split_locator

logger = logging.getLogger(__name__)

_OCI_REF_NAME = "org.opencontainers.image.ref.name"


class ImageAcquisitionError(RuntimeError):
    """Raised when an image cannot be read from its locator."""


class Layer(BaseModel):
    """One filesystem layer of an image, in application order."""

    model_config = ConfigDict(frozen=True)

    digest: str  # "sha256:<hex>"
    path: Path
    media_type: str = ""


class Image:
    """A readable image: manifest, config and layer files on disk.

    Instances are created by ``ImageAcquirer``; callers only read them and
    call ``release()`` (directly or through an ``ImageRegistry``).
    """

    def __init__(
        self,
        *,
        locator: str,
        transport: Transport,
        manifest: dict[str, Any],
        config: dict[str, Any],
        config_digest: str,
        layers: list[Layer],
        repo_tags: list[str],
        workdir: Path | None = None,
    ) -> None:
        self.locator = locator
        self.transport = transport
        self.manifest = manifest
        self.config = config
        self.id = config_digest
        self.layers = layers
        self.repo_tags = repo_tags
        self._workdir = workdir
        self._released = False

    def __repr__(self) -> str:
        return f"Image(locator={self.locator!r}, id={self.id[:19]!r}, layers={len(self.layers)})"

    @property
    def released(self) -> bool:
        return self._released

    @property
    def architecture(self) -> str:
        return self.config.get("architecture", "")

    @property
    def os(self) -> str:
        return self.config.get("os", "")

    def layer_members(self, index: int) -> list[str]:
        """Names of the entries in layer *index* (compressed or not)."""
        if self._released:
            raise ImageAcquisitionError(f"Image already released: {self.locator}")
        with tarfile.open(self.layers[index].path, mode="r:*") as tar:
            return tar.getnames()

    def release(self) -> None:
        """Remove the temporary extraction directory, if any. Idempotent."""
        if self._released:
            return
        self._released = True
        if self._workdir is not None:
            logger.debug("Releasing %s (%s)", self.locator, self._workdir)
            shutil.rmtree(self._workdir)


class ImageAcquirer:
    """Open images from ``<transport>://<location>`` locators.

    Parameters
    ----------
    engine:
        Used only for ``docker://`` locators, to save the image to a
        temporary archive.
    """

    def __init__(self, engine: ContainerEngine | None = None) -> None:
        self._engine = engine or ContainerEngine()

    def acquire(self, locator: str) -> Image:
        transport, location = split_locator(locator)
        logger.debug("Acquiring %s", locator)
        try:
            return self._acquire(locator, transport, location)
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise ImageAcquisitionError(
                f"Unexpected image layout at {locator}: {exc!r}"
            ) from exc

    def _acquire(self, locator: str, transport: Transport, location: str) -> Image:
        if transport == Transport.OCI_DIRECTORY:
            return self._read_oci_layout(locator, Path(location), workdir=None)

        workdir = Path(tempfile.mkdtemp(prefix="imagefixtures-"))
        try:
            if transport == Transport.DOCKER_ARCHIVE:
                _extract(Path(location), workdir)
                return self._read_docker_archive(locator, workdir)
            if transport == Transport.OCI_ARCHIVE:
                _extract(Path(location), workdir / "layout")
                return self._read_oci_layout(locator, workdir / "layout", workdir=workdir)
            # Transport.DOCKER_DAEMON
            archive = workdir / "image.tar"
            self._engine.save(location, archive)
            _extract(archive, workdir / "archive")
            archive.unlink()
            return self._read_docker_archive(locator, workdir / "archive", owner=workdir)
        except BaseException:
            shutil.rmtree(workdir, ignore_errors=True)
            raise

    # ------------------------------------------------------------------
    # Format readers
    # ------------------------------------------------------------------

    def _read_docker_archive(
        self, locator: str, root: Path, owner: Path | None = None
    ) -> Image:
        manifests = _load_json(root / "manifest.json")
        if not isinstance(manifests, list) or not manifests:
            raise ImageAcquisitionError(f"Empty docker-archive manifest: {locator}")
        if len(manifests) > 1:
            logger.warning(
                "%s holds %d images; using the first", locator, len(manifests)
            )
        entry = manifests[0]
        config_path = root / entry["Config"]
        layers = [
            Layer(digest=f"sha256:{file_sha256(root / rel)}", path=root / rel)
            for rel in entry.get("Layers", [])
        ]
        return Image(
            locator=locator,
            transport=Transport.DOCKER_DAEMON
            if owner is not None
            else Transport.DOCKER_ARCHIVE,
            manifest=entry,
            config=_load_json(config_path),
            config_digest=f"sha256:{file_sha256(config_path)}",
            layers=layers,
            repo_tags=list(entry.get("RepoTags") or []),
            workdir=owner or root,
        )

    def _read_oci_layout(
        self, locator: str, root: Path, workdir: Path | None
    ) -> Image:
        index = _load_json(root / "index.json")
        descriptors = index.get("manifests") or []
        if not descriptors:
            raise ImageAcquisitionError(f"OCI index has no manifests: {locator}")
        descriptor = descriptors[0]
        manifest = _load_json(_blob_path(root, descriptor["digest"]))
        # Nested image index: follow its first manifest
        if "manifests" in manifest:
            manifest = _load_json(_blob_path(root, manifest["manifests"][0]["digest"]))

        config_digest = manifest["config"]["digest"]
        layers = [
            Layer(
                digest=layer["digest"],
                path=_blob_path(root, layer["digest"]),
                media_type=layer.get("mediaType", ""),
            )
            for layer in manifest.get("layers", [])
        ]
        ref_name = (descriptor.get("annotations") or {}).get(_OCI_REF_NAME)
        return Image(
            locator=locator,
            transport=Transport.OCI_DIRECTORY if workdir is None else Transport.OCI_ARCHIVE,
            manifest=manifest,
            config=_load_json(_blob_path(root, config_digest)),
            config_digest=config_digest,
            layers=layers,
            repo_tags=[ref_name] if ref_name else [],
            workdir=workdir,
        )


class ImageRegistry:
    """Tracks acquired images so a harness can release them all at once.

    Use as a context manager, or call ``release_all()`` from a teardown::

        with ImageRegistry(ImageAcquirer()) as images:
            image = images.acquire("docker-archive://fixture.tar")
            ...
    """

    def __init__(self, acquirer: ImageAcquirer | None = None) -> None:
        self._acquirer = acquirer or ImageAcquirer()
        self._images: list[Image] = []

    def __len__(self) -> int:
        return len(self._images)

    def __enter__(self) -> ImageRegistry:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release_all()

    def acquire(self, locator: str) -> Image:
        return self.track(self._acquirer.acquire(locator))

    def track(self, image: Image) -> Image:
        self._images.append(image)
        return image

    def release(self, image: Image) -> None:
        image.release()
        if image in self._images:
            self._images.remove(image)

    def release_all(self) -> None:
        """Release every tracked image, newest first."""
        while self._images:
            self._images.pop().release()


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------


def _extract(archive: Path, dest: Path) -> None:
    if not archive.is_file():
        raise ImageAcquisitionError(f"Image archive not found: {archive}")
    dest.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive, mode="r:*") as tar:
            tar.extractall(dest, filter="data")
    except tarfile.TarError as exc:
        raise ImageAcquisitionError(f"Could not read image archive {archive}: {exc}") from exc


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ImageAcquisitionError(f"Missing image metadata: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ImageAcquisitionError(f"Malformed image metadata {path}: {exc}") from exc


def _blob_path(root: Path, digest: str) -> Path:
    algorithm, _, hex_digest = digest.partition(":")
    return root / "blobs" / algorithm / hex_digest
