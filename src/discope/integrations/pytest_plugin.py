"""pytest plugin exposing a provider and a per-test scope as fixtures.

Enable it with ``pytest_plugins = ["discope.integrations.pytest_plugin"]`` and
override ``discope_provider`` to return the provider under test.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from discope.provider import ServiceProvider
from discope.scope import ServiceScope


@pytest.fixture()
def discope_provider() -> ServiceProvider:
    """Fixture hook for the provider used by the plugin.

    Users must override this fixture in their own test suite and return a
    built provider.

    """
    msg = (
        "The discope pytest plugin requires overriding the 'discope_provider' fixture in your "
        "test suite. Define @pytest.fixture() def discope_provider() -> ServiceProvider: ... "
        "and return a built provider."
    )
    raise RuntimeError(msg)


@pytest.fixture()
def discope_scope(discope_provider: ServiceProvider) -> Iterator[ServiceScope]:
    """Open a scope for the current test and dispose it at teardown.

    Scoped services resolved through this fixture are isolated per test, and
    everything the scope captured is closed once the test finishes.

    """
    with discope_provider.create_scope() as scope:
        yield scope
