"""
Pytest fixtures for notification tests.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from notifications_core.adapters import Channel, MockAdapter
from notifications_core.persistence import NotificationBase, RecipientDirectory
from notifications_core.router import NotificationRouter


@pytest.fixture
def session_factory():
    """Session factory over a SQLite in-memory database with notification tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    NotificationBase.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


@pytest.fixture
def directory(session_factory):
    """Directory for seeding; every write is committed so other sessions see it."""
    session = session_factory()

    class Seeder:
        def link(self, senior_id, linked_id, relation="family"):
            RecipientDirectory(session).link(senior_id, linked_id, relation)
            session.commit()

        def token(self, user_id, token, seen_at=None):
            RecipientDirectory(session).register_device_token(user_id, token, "android", seen_at)
            session.commit()

        def phone(self, user_id, number):
            RecipientDirectory(session).add_verified_destination(user_id, number)
            session.commit()

        def reader(self):
            session.expire_all()
            return RecipientDirectory(session)

    yield Seeder()
    session.close()


@pytest.fixture
def adapters():
    return {channel: MockAdapter(channel) for channel in Channel}


@pytest.fixture
def router(session_factory, adapters):
    return NotificationRouter(session_factory, adapters)


@pytest.fixture
def badge_data():
    """Wire form of a derived badge event."""
    return {
        "type": "badge_awarded",
        "userId": "senior-1",
        "eventId": "evt-badge-1",
        "badge": "7-day streak",
        "timestamp": datetime(2024, 1, 7, 8, tzinfo=timezone.utc).isoformat(),
    }
