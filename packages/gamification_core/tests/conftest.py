"""
Pytest fixtures for gamification tests.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from gamification_core.persistence import GamificationBase
from gamification_core.producer import DerivedEventPublisher, EngagementProducer
from messaging_core.contracts import DailyCheckinEvent
from messaging_core.log import InMemoryLog

ENGAGEMENT_TOPIC = "engagement.events"
GAMIFICATION_TOPIC = "gamification.events"
GROUP = "gamification-group"


@pytest.fixture
def db():
    """SQLite in-memory session with gamification tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    GamificationBase.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def event_log():
    log = InMemoryLog(partitions=4)
    log.ensure_group(ENGAGEMENT_TOPIC, GROUP)
    return log


@pytest.fixture
def producer(event_log):
    return EngagementProducer(event_log, ENGAGEMENT_TOPIC)


@pytest.fixture
def publisher(event_log):
    return DerivedEventPublisher(event_log, GAMIFICATION_TOPIC)


@pytest.fixture
def checkin():
    """Factory for the daily check-in of user ``user_id`` on day ``day``."""

    def make(user_id="u1", day=0, **kwargs):
        return DailyCheckinEvent(
            user_id=user_id,
            action="daily_checkin",
            timestamp=datetime(2024, 1, 1, 8, tzinfo=timezone.utc) + timedelta(days=day),
            **kwargs,
        )

    return make
