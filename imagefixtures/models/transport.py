"""Image transports and the source-string parser."""

from __future__ import annotations

from enum import Enum


class Transport(str, Enum):
    """Mechanism through which a fixture image is materialized."""

    DOCKER_ARCHIVE = "docker-archive"
    DOCKER_DAEMON = "docker"
    OCI_ARCHIVE = "oci-archive"
    OCI_DIRECTORY = "oci-dir"
    UNKNOWN = "unknown"


# Accepted spellings -> transport. Anything else parses to UNKNOWN.
_SOURCE_ALIASES: dict[str, Transport] = {
    "docker-archive": Transport.DOCKER_ARCHIVE,
    "docker": Transport.DOCKER_DAEMON,
    "docker-daemon": Transport.DOCKER_DAEMON,
    "oci-archive": Transport.OCI_ARCHIVE,
    "oci-dir": Transport.OCI_DIRECTORY,
    "oci-directory": Transport.OCI_DIRECTORY,
}


class UnknownTransportError(ValueError):
    """Raised when a source string or locator names no known transport."""


def parse_transport(source: str) -> Transport:
    """Map a source string (e.g. ``"docker-archive"``) to a Transport.

    Unrecognized strings yield ``Transport.UNKNOWN``; callers decide whether
    that is fatal.
    """
    return _SOURCE_ALIASES.get(source.strip().lower(), Transport.UNKNOWN)


def split_locator(locator: str) -> tuple[Transport, str]:
    """Split ``"<source>://<location>"`` into its transport and location."""
    source, sep, location = locator.partition("://")
    if not sep or not location:
        raise UnknownTransportError(f"Malformed image locator: {locator!r}")
    transport = parse_transport(source)
    if transport is Transport.UNKNOWN:
        raise UnknownTransportError(f"Could not determine source: {source!r}")
    return transport, location
