"""Shared pytest fixtures for discope tests."""

import pytest

from discope import LockMode, ServiceCollection


@pytest.fixture()
def services() -> ServiceCollection:
    """Empty service collection."""
    return ServiceCollection()


@pytest.fixture(params=[LockMode.THREAD, LockMode.NONE], ids=["thread", "none"])
def lock_mode(request: pytest.FixtureRequest) -> LockMode:
    """Every supported lock mode, for behavior that must not depend on locking."""
    return request.param
