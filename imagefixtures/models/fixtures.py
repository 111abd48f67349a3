"""Fixture identity and cache entry models."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from imagefixtures.models.transport import Transport


class FixtureIdentity(BaseModel):
    """A fixture name materialized through one transport.

    The name maps 1:1 to a build context directory. The same name may be
    materialized under several transports at once, each cached separately.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    transport: Transport = Transport.DOCKER_ARCHIVE


class ResolvedFixture(BaseModel):
    """The outcome of resolving a fixture: where a usable image lives."""

    model_config = ConfigDict(frozen=True)

    identity: FixtureIdentity
    image_name: str
    version: str  # sha256 hex of the build context
    location: str  # archive path, OCI path, or "<image>:<version>" tag
    locator: str  # "<source>://<location>"

    @property
    def tag(self) -> str:
        return f"{self.image_name}:{self.version}"


class CacheEntry(BaseModel):
    """One materialized artifact in the cache directory.

    Recovered from its file name; entries are keyed by
    (fixture_name, version, transport) and never overwritten in place.
    """

    model_config = ConfigDict(frozen=True)

    fixture_name: str
    version: str
    transport: Transport
    path: Path
    size_bytes: int = 0
    modified_at: datetime | None = None
