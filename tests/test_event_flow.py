"""
Event flow tests across packages.

Log path:    engagement.events -> gamification consumer -> gamification.events -> router
Direct path: PublishEvent -> notification/events (pub/sub) -> router
"""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi import FastAPI

from gamification_core.consumer import consume_from_log
from gamification_core.persistence import GameStateRepository
from gamification_core.producer import DerivedEventPublisher, EngagementProducer
from messaging_core.contracts import DailyCheckinEvent
from messaging_core.transport import InMemoryBroker, InMemoryTransport
from notifications_core.adapters import Channel, MockAdapter
from notifications_core.bridge import PUBLISH_EVENT_PATH, bridge_router, transport_intake
from notifications_core.persistence import RecipientDirectory
from notifications_core.router import NotificationRouter

ENGAGEMENT_TOPIC = "engagement.events"
GAMIFICATION_TOPIC = "gamification.events"
GAMIFICATION_GROUP = "gamification-group"
NOTIFICATION_GROUP = "notification-group"


def checkin(day):
    return DailyCheckinEvent(
        user_id="u1",
        action="daily_checkin",
        timestamp=datetime(2024, 1, 1, 8, tzinfo=timezone.utc) + timedelta(days=day),
    )


def run_gamification(session_factory, event_log):
    db = session_factory()
    try:
        publisher = DerivedEventPublisher(event_log, GAMIFICATION_TOPIC)
        total = 0
        while True:
            count = consume_from_log(
                db,
                event_log,
                publisher,
                topic=ENGAGEMENT_TOPIC,
                group=GAMIFICATION_GROUP,
                consumer_name="gamification-1",
            )
            if count == 0:
                return total
            total += count
    finally:
        db.close()


@pytest.fixture
def adapters():
    return {channel: MockAdapter(channel) for channel in Channel}


@pytest.fixture
def family(session_factory):
    db = session_factory()
    try:
        RecipientDirectory(db).link("u1", "daughter-1")
        db.commit()
    finally:
        db.close()


class TestLogPath:
    """Seven check-ins end as one badge notification per recipient."""

    @pytest.mark.asyncio
    async def test_seven_day_streak_notifies_family(self, session_factory, event_log, adapters, family):
        producer = EngagementProducer(event_log, ENGAGEMENT_TOPIC)
        for day in range(7):
            producer.publish(checkin(day))

        assert run_gamification(session_factory, event_log) == 7

        db = session_factory()
        try:
            state = GameStateRepository(db).get("u1")
        finally:
            db.close()
        assert (state.points, state.streak, state.badges) == (70, 7, {"7-day streak"})

        router = NotificationRouter(session_factory, adapters)
        acked = await router.consume_log(event_log, [GAMIFICATION_TOPIC], NOTIFICATION_GROUP, "router-1")

        assert acked == 1
        dashboard = adapters[Channel.DASHBOARD].sent
        assert sorted(d for d, _ in dashboard) == ["daughter-1", "u1"]
        assert all("7-day streak" in m.body for _, m in dashboard)

    @pytest.mark.asyncio
    async def test_replayed_checkin_does_not_renotify(self, session_factory, event_log, adapters):
        producer = EngagementProducer(event_log, ENGAGEMENT_TOPIC)
        for day in range(7):
            producer.publish(checkin(day))
        # Producer retry of the seventh check-in with the same id
        retried = checkin(6).model_copy(update={"event_id": "checkin-day-7"})
        producer.publish(retried)
        producer.publish(retried)

        run_gamification(session_factory, event_log)

        router = NotificationRouter(session_factory, adapters)
        await router.consume_log(event_log, [GAMIFICATION_TOPIC], NOTIFICATION_GROUP, "router-1")

        assert len(adapters[Channel.DASHBOARD].sent) == 1


class TestDirectPath:
    """Bridge acknowledgement feeds the router through pub/sub."""

    @pytest.mark.asyncio
    async def test_checkin_via_bridge_reaches_dashboard(self, session_factory, adapters, family):
        broker = InMemoryBroker()
        api_transport = InMemoryTransport(broker)
        worker_transport = InMemoryTransport(broker)
        await api_transport.connect()
        await worker_transport.connect()

        router = NotificationRouter(session_factory, adapters)
        await worker_transport.subscribe("notification/events", router.handle_message)

        app = FastAPI()
        app.include_router(bridge_router)
        app.state.intake = transport_intake(api_transport, "notification/events")

        checkin_event = {
            "type": "checkin",
            "userId": "u1",
            "eventId": "checkin-42",
            "mood": "great",
            "target": ["dashboard"],
            "timestamp": "2024-01-01T08:00:00Z",
        }
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://api") as http:
            response = await http.post(PUBLISH_EVENT_PATH, json=checkin_event)

        assert response.json() == {"ok": True}
        await worker_transport.drain()

        dashboard = adapters[Channel.DASHBOARD].sent
        assert [d for d, _ in dashboard] == ["u1"]
        assert json.loads(dashboard[0][1].data["payload"])["eventId"] == "checkin-42"
        assert adapters[Channel.PUSH].sent == []
