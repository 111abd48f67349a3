"""imagefixtures: Deterministic, cached container image fixtures for tests.

v0.1.0 — content-addressed fixture pipeline:
  - Build contexts under test-fixtures/<name>/ versioned by a SHA-256 of their file bytes
  - Image archives cached as test-fixtures/cache/<prefix>-<name>-<version>.tar
  - docker-archive, docker daemon, oci-archive and oci-dir transports
  - Golden files under test-fixtures/snapshot/ with an explicit update protocol
  - Per-cache-key file locks so parallel test workers share one build
  - pytest plugin (--update-golden) and a maintenance CLI
"""

__version__ = "0.1.0"
__description__ = "Content-addressed container image fixtures and golden files for tests"

from imagefixtures.config import FixtureSettings
from imagefixtures.core.acquisition import Image, ImageAcquirer, ImageRegistry
from imagefixtures.core.golden_store import GoldenFileStore
from imagefixtures.core.hasher import dir_hash
from imagefixtures.core.resolver import FixtureResolver
from imagefixtures.models.transport import Transport, parse_transport

__all__ = [
    "FixtureSettings",
    "FixtureResolver",
    "GoldenFileStore",
    "Image",
    "ImageAcquirer",
    "ImageRegistry",
    "Transport",
    "dir_hash",
    "parse_transport",
    "__version__",
]
