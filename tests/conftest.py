"""
Pytest fixtures for cross-package flow tests.

Gamification and notification tables share one SQLite in-memory database.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from gamification_core.persistence import GamificationBase
from messaging_core.log import InMemoryLog
from notifications_core.persistence import NotificationBase

ENGAGEMENT_TOPIC = "engagement.events"
GAMIFICATION_TOPIC = "gamification.events"
GAMIFICATION_GROUP = "gamification-group"
NOTIFICATION_GROUP = "notification-group"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    GamificationBase.metadata.create_all(engine)
    NotificationBase.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


@pytest.fixture
def event_log():
    log = InMemoryLog(partitions=4)
    log.ensure_group(ENGAGEMENT_TOPIC, GAMIFICATION_GROUP)
    log.ensure_group(GAMIFICATION_TOPIC, NOTIFICATION_GROUP)
    return log
