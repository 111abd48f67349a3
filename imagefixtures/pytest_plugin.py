"""pytest integration — session-wide settings and per-test fixture helpers.

Registered through the ``pytest11`` entry point. Provides:

``--update-golden``
    Rewrite golden records instead of comparing against them (also
    ``IMAGEFIXTURES_UPDATE_GOLDEN=true``).

Fixtures
    ``fixture_settings``  the session's ``FixtureSettings``
    ``fixture_resolver``  session ``FixtureResolver``
    ``golden_store``      session ``GoldenFileStore``
    ``fixture_image``     ``fixture_image(source, name) -> Image``, released after the test
    ``golden_image``      ``golden_image(name) -> Image``, released after the test
    ``golden``            golden-file helper keyed by the running test's name
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from imagefixtures.config import FixtureSettings
from imagefixtures.core.acquisition import Image, ImageRegistry
from imagefixtures.core.golden_store import GoldenFileStore
from imagefixtures.core.resolver import FixtureResolver

logger = logging.getLogger(__name__)


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("imagefixtures", "container image fixtures")
    group.addoption(
        "--update-golden",
        action="store_true",
        default=False,
        help="Overwrite golden files with the output of this run.",
    )


def node_identity(node: pytest.Item) -> str:
    """Hierarchical name of a test, unique within the session.

    ``tests/unit/test_x.py::TestA::test_b[p]`` becomes
    ``tests/unit/test_x/TestA/test_b[p]``; the golden store flattens it to
    ``tests_unit_test_x_TestA_test_b[p].golden``.
    """
    module, *rest = node.nodeid.split("::")
    if module.endswith(".py"):
        module = module[: -len(".py")]
    return "/".join(part for part in (module, *rest) if part) or node.name


class Golden:
    """Golden-file operations bound to one test identity."""

    def __init__(self, store: GoldenFileStore, identity: str, update: bool) -> None:
        self.store = store
        self.identity = identity
        self.update_mode = update

    @property
    def path(self) -> Path:
        return self.store.path_for(self.identity)

    def load(self) -> bytes:
        return self.store.load(self.identity)

    def update(self, contents: bytes) -> Path:
        return self.store.update(self.identity, contents)

    def check(self, actual: bytes) -> None:
        """Compare *actual* to the golden record, or rewrite it in update mode."""
        self.store.assert_matches(self.identity, actual, update=self.update_mode)


@pytest.fixture(scope="session")
def fixture_settings(pytestconfig: pytest.Config) -> FixtureSettings:
    settings = FixtureSettings()
    if pytestconfig.getoption("update_golden"):
        settings = settings.model_copy(update={"update_golden": True})
    logger.debug("Image fixtures rooted at %s", settings.fixtures_dir.resolve())
    return settings


@pytest.fixture(scope="session")
def fixture_resolver(fixture_settings: FixtureSettings) -> FixtureResolver:
    return FixtureResolver(fixture_settings)


@pytest.fixture(scope="session")
def golden_store(
    fixture_settings: FixtureSettings, fixture_resolver: FixtureResolver
) -> GoldenFileStore:
    return GoldenFileStore(fixture_settings, fixture_resolver)


@pytest.fixture
def fixture_image(
    fixture_resolver: FixtureResolver,
) -> Iterator[Callable[[str, str], Image]]:
    """Factory resolving fixture images; every image is released after the test."""
    with ImageRegistry(fixture_resolver.acquirer) as registry:

        def _get(source: str, name: str) -> Image:
            return fixture_resolver.get_image(source, name, registry=registry)

        yield _get


@pytest.fixture
def golden_image(
    golden_store: GoldenFileStore, fixture_resolver: FixtureResolver
) -> Iterator[Callable[[str], Image]]:
    """Factory opening snapshotted fixture images; released after the test."""
    with ImageRegistry(fixture_resolver.acquirer) as registry:

        def _get(name: str) -> Image:
            return golden_store.load_golden_image(name, registry=registry)

        yield _get


@pytest.fixture
def golden(
    request: pytest.FixtureRequest,
    golden_store: GoldenFileStore,
    fixture_settings: FixtureSettings,
) -> Golden:
    return Golden(golden_store, node_identity(request.node), fixture_settings.update_golden)
