"""imagefixtures data models — all Pydantic v2, all frozen (immutable)."""

from imagefixtures.models.fixtures import CacheEntry, FixtureIdentity, ResolvedFixture
from imagefixtures.models.golden import GoldenRecord, GoldenState
from imagefixtures.models.transport import (
    Transport,
    UnknownTransportError,
    parse_transport,
    split_locator,
)

__all__ = [
    # transport
    "Transport",
    "UnknownTransportError",
    "parse_transport",
    "split_locator",
    # fixtures
    "FixtureIdentity",
    "ResolvedFixture",
    "CacheEntry",
    # golden
    "GoldenState",
    "GoldenRecord",
]
