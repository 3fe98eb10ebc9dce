"""
Tests for the notification router: fan-out, dedup, routing table and log intake.
"""

import json
import threading
from datetime import datetime, timezone

import pytest

from messaging_core.contracts import DeliveryPath, parse_event
from messaging_core.log import InMemoryLog
from messaging_core.transport import InMemoryBroker, InMemoryTransport

from notifications_core.adapters import Channel, DeliveryAdapter, MockAdapter
from notifications_core.router import NotificationRouter

GROUP = "notification-group"
TOPIC = "gamification.events"


def destinations(adapter):
    return sorted(destination for destination, _ in adapter.sent)


class UnregisteredPush(DeliveryAdapter):
    name = "fake-fcm"

    def __init__(self):
        super().__init__(Channel.PUSH)

    async def send(self, destination, message):
        return self._result(False, error="Requested entity was not found.", unregistered=True)


class ExplodingSms(DeliveryAdapter):
    name = "exploding"

    def __init__(self):
        super().__init__(Channel.SMS)

    async def send(self, destination, message):
        raise RuntimeError("provider down")


class TestFanOut:
    """Recipient and channel selection."""

    @pytest.mark.asyncio
    async def test_untargeted_event_reaches_linked_parties(self, router, adapters, directory, badge_data):
        directory.link("senior-1", "family-1")
        directory.link("senior-1", "caregiver-1", "caregiver")
        directory.token("senior-1", "token-senior")
        directory.phone("family-1", "+15550001111")

        result = await router.route(parse_event(badge_data), DeliveryPath.LOG)

        assert result["status"] == "routed"
        assert destinations(adapters[Channel.DASHBOARD]) == ["caregiver-1", "family-1", "senior-1"]
        assert destinations(adapters[Channel.PUSH]) == ["token-senior"]
        assert destinations(adapters[Channel.SMS]) == ["+15550001111"]
        assert router.stats.sent == 5
        assert router.stats.skipped == 4

    @pytest.mark.asyncio
    async def test_dashboard_target_never_uses_push_or_sms(self, router, adapters, directory, badge_data):
        directory.link("senior-1", "family-1")
        directory.token("senior-1", "token-senior")
        directory.phone("senior-1", "+15550002222")

        event = parse_event({**badge_data, "target": ["dashboard"]})
        await router.route(event, DeliveryPath.LOG)

        assert destinations(adapters[Channel.DASHBOARD]) == ["senior-1"]
        assert adapters[Channel.PUSH].sent == []
        assert adapters[Channel.SMS].sent == []

    @pytest.mark.asyncio
    async def test_mobile_target_maps_to_push(self, router, adapters, directory, badge_data):
        directory.token("senior-1", "token-senior")

        event = parse_event({**badge_data, "target": ["mobile"]})
        await router.route(event, DeliveryPath.LOG)

        assert destinations(adapters[Channel.PUSH]) == ["token-senior"]
        assert adapters[Channel.DASHBOARD].sent == []

    @pytest.mark.asyncio
    async def test_rendered_badge_message(self, router, adapters, badge_data):
        await router.route(parse_event(badge_data), DeliveryPath.LOG)

        _, message = adapters[Channel.DASHBOARD].sent[0]
        assert message.title == "New badge earned!"
        assert "7-day streak" in message.body
        assert json.loads(message.data["payload"])["badge"] == "7-day streak"

    @pytest.mark.asyncio
    async def test_latest_token_is_used(self, router, adapters, directory, badge_data):
        directory.token("senior-1", "old-token", datetime(2024, 1, 1, tzinfo=timezone.utc))
        directory.token("senior-1", "new-token", datetime(2024, 2, 1, tzinfo=timezone.utc))

        await router.route(parse_event({**badge_data, "target": ["mobile"]}), DeliveryPath.LOG)

        assert destinations(adapters[Channel.PUSH]) == ["new-token"]


class TestDeliveryOutcomes:
    """Failures are counted and never stop the remaining deliveries."""

    @pytest.mark.asyncio
    async def test_unregistered_token_is_revoked(self, session_factory, directory, badge_data):
        directory.token("senior-1", "dead-token")
        router = NotificationRouter(session_factory, {Channel.PUSH: UnregisteredPush()})

        await router.route(parse_event({**badge_data, "target": ["mobile"]}), DeliveryPath.LOG)

        assert router.stats.failed == 1
        assert directory.reader().latest_device_token("senior-1") is None

    @pytest.mark.asyncio
    async def test_adapter_exception_counts_as_failure(self, session_factory, directory, badge_data):
        directory.phone("senior-1", "+15550003333")
        dashboard = MockAdapter(Channel.DASHBOARD)
        router = NotificationRouter(session_factory, {Channel.SMS: ExplodingSms(), Channel.DASHBOARD: dashboard})

        result = await router.route(parse_event(badge_data), DeliveryPath.LOG)

        outcomes = {d["channel"]: d["outcome"] for d in result["deliveries"]}
        assert outcomes == {"sms": "failed", "dashboard": "sent", "push": "skipped"}
        assert destinations(dashboard) == ["senior-1"]

    @pytest.mark.asyncio
    async def test_database_work_stays_off_the_event_loop(self, session_factory, adapters, directory, badge_data):
        directory.link("senior-1", "family-1")
        directory.token("senior-1", "token-senior")
        session_threads = []

        def tracked_sessions():
            session_threads.append(threading.get_ident())
            return session_factory()

        router = NotificationRouter(tracked_sessions, adapters)
        result = await router.route(parse_event(badge_data), DeliveryPath.LOG)

        assert result["status"] == "routed"
        assert destinations(adapters[Channel.PUSH]) == ["token-senior"]
        assert len(session_threads) == 2
        assert threading.get_ident() not in session_threads

    def test_missing_channel_gets_mock_adapter(self, session_factory):
        router = NotificationRouter(session_factory, {})

        assert {a.name for a in router.adapters.values()} == {"mock"}
        assert set(router.adapters) == set(Channel)


class TestSuppression:
    """Duplicates, misrouted and malformed messages."""

    @pytest.mark.asyncio
    async def test_duplicate_event_delivered_once(self, router, adapters, badge_data):
        event = parse_event(badge_data)

        first = await router.route(event, DeliveryPath.LOG)
        second = await router.route(event, DeliveryPath.LOG)

        assert first["status"] == "routed"
        assert second == {"key": "evt-badge-1", "status": "skipped", "reason": "duplicate"}
        assert len(adapters[Channel.DASHBOARD].sent) == 1
        assert router.stats.duplicate == 1

    @pytest.mark.asyncio
    async def test_event_without_id_deduplicated_by_content(self, router, adapters, badge_data):
        data = {k: v for k, v in badge_data.items() if k != "eventId"}

        await router.handle_raw(json.dumps(data), DeliveryPath.LOG)
        await router.handle_raw(json.dumps(data), DeliveryPath.LOG)

        assert len(adapters[Channel.DASHBOARD].sent) == 1

    @pytest.mark.asyncio
    async def test_log_type_on_direct_path_is_skipped(self, router, adapters, badge_data):
        result = await router.handle_raw(json.dumps(badge_data), DeliveryPath.DIRECT)

        assert result == {"status": "skipped", "reason": "misrouted"}
        assert adapters[Channel.DASHBOARD].sent == []
        assert router.stats.misrouted == 1

    @pytest.mark.asyncio
    async def test_direct_type_on_log_path_is_skipped(self, router):
        checkin = {"type": "checkin", "userId": "senior-1", "timestamp": "2024-01-01T08:00:00Z"}

        result = await router.handle_raw(json.dumps(checkin), DeliveryPath.LOG)

        assert result["reason"] == "misrouted"

    @pytest.mark.asyncio
    async def test_unknown_type_is_skipped(self, router, adapters):
        raw = json.dumps({"type": "sms_delivery", "userId": "senior-1", "timestamp": "2024-01-01T08:00:00Z"})

        result = await router.handle_raw(raw, DeliveryPath.LOG)

        assert result["reason"] == "unknown_type"
        assert adapters[Channel.DASHBOARD].sent == []

    @pytest.mark.asyncio
    async def test_malformed_message_then_valid_message(self, router, adapters, badge_data):
        bad = await router.handle_raw("{not json", DeliveryPath.LOG)
        good = await router.handle_raw(json.dumps(badge_data), DeliveryPath.LOG)

        assert bad["status"] == "invalid"
        assert good["status"] == "routed"
        assert router.stats.invalid == 1


class TestIntake:
    """Log consumer group and pub/sub intake."""

    @pytest.mark.asyncio
    async def test_consume_log_acks_routed_and_invalid(self, router, adapters, badge_data):
        log = InMemoryLog(partitions=2)
        log.ensure_group(TOPIC, GROUP)
        log.publish(TOPIC, "senior-1", json.dumps(badge_data))
        log.publish(TOPIC, "senior-1", "garbage")

        acked = await router.consume_log(log, [TOPIC], GROUP, "router-1")

        assert acked == 2
        assert log.pending(TOPIC, GROUP, min_idle_ms=0) == []
        assert destinations(adapters[Channel.DASHBOARD]) == ["senior-1"]

    @pytest.mark.asyncio
    async def test_failed_routing_stays_pending_for_reclaim(self, router, adapters, badge_data, monkeypatch):
        log = InMemoryLog(partitions=2)
        log.ensure_group(TOPIC, GROUP)
        log.publish(TOPIC, "senior-1", json.dumps(badge_data))

        original = router.route

        async def broken(event, path):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(router, "route", broken)
        assert await router.consume_log(log, [TOPIC], GROUP, "router-1") == 0
        assert len(log.pending(TOPIC, GROUP, min_idle_ms=0)) == 1

        monkeypatch.setattr(router, "route", original)
        assert await router.reclaim(log, [TOPIC], GROUP, "router-2", min_idle_ms=0) == 1
        assert log.pending(TOPIC, GROUP, min_idle_ms=0) == []
        assert len(adapters[Channel.DASHBOARD].sent) == 1

    @pytest.mark.asyncio
    async def test_pubsub_intake_routes_direct_events(self, router, adapters):
        broker = InMemoryBroker()
        subscriber = InMemoryTransport(broker)
        publisher = InMemoryTransport(broker)
        await subscriber.connect()
        await publisher.connect()
        await subscriber.subscribe("notification/events", router.handle_message)

        checkin = {"type": "checkin", "userId": "senior-1", "mood": "happy", "timestamp": "2024-01-01T08:00:00Z"}
        await publisher.publish("notification/events", json.dumps(checkin))
        await subscriber.drain()

        _, message = adapters[Channel.DASHBOARD].sent[0]
        assert message.title == "Check-in received"
        assert message.body == "senior-1 checked in feeling happy"
