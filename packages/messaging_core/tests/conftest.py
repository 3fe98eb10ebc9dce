"""
Pytest fixtures for messaging core tests.
"""

import pytest

from messaging_core.log import InMemoryLog
from messaging_core.transport import InMemoryBroker


@pytest.fixture
def broker():
    """Shared in-memory broker."""
    return InMemoryBroker()


@pytest.fixture
def event_log():
    """In-memory log with four partitions."""
    return InMemoryLog(partitions=4)


@pytest.fixture
def checkin_data():
    """Wire form of a daily check-in."""
    return {
        "type": "daily_checkin",
        "userId": "u1",
        "action": "daily_checkin",
        "timestamp": "2024-01-01T08:00:00Z",
    }
