"""Shared fixtures for unit tests."""

import pytest

from .factories import FakeCluster


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()
