"""Fixture resolver — content-addressed image fixtures.

Given a fixture name and a transport, returns the location of a usable image,
building, saving or converting only when the cached artifact for the current
context version is absent:

    docker-archive  cache/<prefix>-<name>-<version>.tar          (build? save?)
    docker          <prefix>-<name>:<version> in the engine      (build?)
    oci-archive     cache/oci-archive-<prefix>-<name>-<version>.tar  (archive, convert?)
    oci-dir         cache/oci-dir-<prefix>-<name>-<version>.tar      (archive, convert?)

Each gate is mandatory: an unchanged context never rebuilds, resaves or
reconverts. A changed context gets a new version and so a new cache path;
old entries are left in place (see ``CacheJanitor`` for pruning).
"""

from __future__ import annotations

import logging
from pathlib import Path

from imagefixtures.config import FixtureSettings
from imagefixtures.core.acquisition import Image, ImageAcquirer, ImageRegistry
from imagefixtures.core.engine import ContainerEngine, OciConverter
from imagefixtures.core.hasher import dir_hash
from imagefixtures.core.locking import key_lock, publish_atomically
from imagefixtures.models.fixtures import FixtureIdentity, ResolvedFixture
from imagefixtures.models.transport import (
    Transport,
    UnknownTransportError,
    parse_transport,
)

logger = logging.getLogger(__name__)

OCI_PREFIXES: dict[Transport, str] = {
    Transport.OCI_ARCHIVE: "oci-archive-",
    Transport.OCI_DIRECTORY: "oci-dir-",
}


class FixtureResolver:
    """Resolves fixture images through the on-disk cache.

    Parameters
    ----------
    settings:
        Fixture layout and tool configuration.
    engine:
        Container engine adapter; defaults to ``settings.engine_binary``.
    converter:
        OCI converter; defaults to ``settings.converter_binary``.
    acquirer:
        Opens resolved locators as ``Image`` handles.
    """

    def __init__(
        self,
        settings: FixtureSettings,
        engine: ContainerEngine | None = None,
        converter: OciConverter | None = None,
        acquirer: ImageAcquirer | None = None,
    ) -> None:
        self._settings = settings
        self._engine = engine or ContainerEngine(settings.engine_binary)
        self._converter = converter or OciConverter(settings.converter_binary)
        self._acquirer = acquirer or ImageAcquirer(self._engine)

    @property
    def settings(self) -> FixtureSettings:
        return self._settings

    @property
    def acquirer(self) -> ImageAcquirer:
        return self._acquirer

    # ------------------------------------------------------------------
    # Versioning
    # ------------------------------------------------------------------

    def fixture_version(self, name: str) -> str:
        """Content digest of the fixture's build context."""
        return dir_hash(self._settings.context_dir(name))

    def fixture_info(self, name: str) -> tuple[str, str]:
        """Return ``(image_name, version)`` for fixture *name*."""
        return self._settings.image_name(name), self.fixture_version(name)

    # ------------------------------------------------------------------
    # Build gate
    # ------------------------------------------------------------------

    def _ensure_built(self, name: str, image_name: str, version: str) -> str:
        tag = f"{image_name}:{version}"
        if self._engine.image_exists(tag):
            logger.debug("Image %s already present in engine", tag)
            return tag
        build_lock = self._settings.cache_dir / f"{image_name}-{version}.build"
        with key_lock(build_lock, self._settings.lock_timeout_seconds):
            if not self._engine.image_exists(tag):
                self._engine.build(self._settings.context_dir(name), image_name, version)
        return tag

    # ------------------------------------------------------------------
    # Transports
    # ------------------------------------------------------------------

    def load_into_daemon(self, name: str) -> str:
        """Ensure the fixture image is in the engine; return its version tag."""
        image_name, version = self.fixture_info(name)
        return self._load_into_daemon(name, image_name, version)

    def image_tar_path(self, name: str) -> Path:
        """Path of the fixture's docker-archive, saving it if absent."""
        image_name, version = self.fixture_info(name)
        return self._image_tar_path(name, image_name, version)

    def oci_path(self, name: str, transport: Transport) -> Path:
        """Path of the fixture's OCI archive or layout, converting if absent."""
        if transport not in OCI_PREFIXES:
            raise UnknownTransportError(f"Not an OCI transport: {transport.value}")
        image_name, version = self.fixture_info(name)
        return self._oci_path(name, transport, image_name, version)

    def _load_into_daemon(self, name: str, image_name: str, version: str) -> str:
        self._settings.cache_dir.mkdir(parents=True, exist_ok=True)
        return self._ensure_built(name, image_name, version)

    def _image_tar_path(self, name: str, image_name: str, version: str) -> Path:
        cache_dir = self._settings.cache_dir
        cache_dir.mkdir(parents=True, exist_ok=True)
        tar_path = cache_dir / f"{image_name}-{version}.tar"

        if tar_path.exists():
            logger.debug("Cache hit: %s", tar_path)
            return tar_path

        with key_lock(tar_path, self._settings.lock_timeout_seconds):
            if tar_path.exists():
                logger.debug("Cache filled while waiting: %s", tar_path)
                return tar_path
            tag = self._ensure_built(name, image_name, version)
            with publish_atomically(tar_path) as partial:
                self._engine.save(tag, partial)
        logger.info("Cached fixture %s at %s", name, tar_path)
        return tar_path

    def _oci_path(
        self, name: str, transport: Transport, image_name: str, version: str
    ) -> Path:
        docker_archive = self._image_tar_path(name, image_name, version)
        oci_path = docker_archive.with_name(OCI_PREFIXES[transport] + docker_archive.name)
        if oci_path.exists():
            logger.debug("Cache hit: %s", oci_path)
            return oci_path

        with key_lock(oci_path, self._settings.lock_timeout_seconds):
            if oci_path.exists():
                return oci_path
            with publish_atomically(oci_path) as partial:
                if transport == Transport.OCI_ARCHIVE:
                    destination = self._converter.oci_archive_destination(partial)
                else:
                    destination = self._converter.oci_directory_destination(partial)
                self._converter.convert(docker_archive, destination)
        logger.info("Converted fixture %s to %s", name, oci_path)
        return oci_path

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, source: str, name: str) -> ResolvedFixture:
        """Resolve fixture *name* for *source* (e.g. ``"docker-archive"``).

        The context is hashed once; the returned version is the one the
        location was materialized for. Raises UnknownTransportError for an
        unrecognized source; this is a fixture misconfiguration and is never
        recovered from.
        """
        transport = parse_transport(source)
        if transport == Transport.UNKNOWN:
            raise UnknownTransportError(f"Could not determine source: {source!r}")

        image_name, version = self.fixture_info(name)
        if transport == Transport.DOCKER_ARCHIVE:
            location = str(self._image_tar_path(name, image_name, version))
        elif transport == Transport.DOCKER_DAEMON:
            location = self._load_into_daemon(name, image_name, version)
        else:
            location = str(self._oci_path(name, transport, image_name, version))

        return ResolvedFixture(
            identity=FixtureIdentity(name=name, transport=transport),
            image_name=image_name,
            version=version,
            location=location,
            locator=f"{source}://{location}",
        )

    def get_image(
        self, source: str, name: str, registry: ImageRegistry | None = None
    ) -> Image:
        """Resolve fixture *name* and open it as an ``Image``.

        With a *registry* the image is tracked there and released with it;
        otherwise the caller must call ``image.release()``.
        """
        resolved = self.resolve(source, name)
        image = self._acquirer.acquire(resolved.locator)
        if registry is not None:
            registry.track(image)
        return image
