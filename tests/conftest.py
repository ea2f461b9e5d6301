"""Pytest fixtures shared by the unit tests."""

import pytest
from bson.timestamp import Timestamp
from tenacity import wait_none
from tenacity.wait import wait_base


@pytest.fixture
def no_backoff() -> wait_base:
    """Wait strategy that never waits, so retry tests run instantly."""
    return wait_none()


@pytest.fixture
def checkpoint() -> Timestamp:
    return Timestamp(1700000000, 0)


@pytest.fixture
def messages() -> list[str]:
    """Log sink capturing what the emitter reports through its ``log`` option."""
    return []
