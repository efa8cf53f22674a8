"""
Pytest configuration and fixtures for dependency graph and drift tests.
"""

import pytest

from supply_guard.core.epoch import Epoch
from supply_guard.core.models import GitSource


@pytest.fixture
def git_source() -> GitSource:
    """A git checkout standing in for a forked dependency."""
    return GitSource(url="https://github.com/example/fork", rev="deadbeef")


@pytest.fixture
def empty_epoch() -> Epoch:
    """An approved epoch with no packages."""
    return Epoch(id="empty", project_id="demo")
