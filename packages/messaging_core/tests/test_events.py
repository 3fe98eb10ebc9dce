"""
Tests for event parsing and routing.
"""

import json

import pytest

from messaging_core.contracts import (
    ActivityEvent,
    BadgeAwardedEvent,
    DailyCheckinEvent,
    DeliveryPath,
    EventType,
    UnknownEvent,
    dedup_key,
    parse_event,
    path_for,
)
from messaging_core.errors import EventValidationError


class TestParseEvent:
    """Tests for parse_event."""

    def test_parse_daily_checkin(self, checkin_data):
        event = parse_event(json.dumps(checkin_data))

        assert isinstance(event, DailyCheckinEvent)
        assert event.user_id == "u1"
        assert event.transition_key == "daily_checkin"
        assert event.target is None

    def test_parse_bytes(self, checkin_data):
        event = parse_event(json.dumps(checkin_data).encode("utf-8"))
        assert event.type == EventType.DAILY_CHECKIN.value

    def test_parse_activity_with_payload(self):
        event = parse_event({
            "type": "trivia_completed",
            "userId": "u2",
            "timestamp": "2024-01-01T08:00:00Z",
            "payload": {"score": 8},
        })
        assert isinstance(event, ActivityEvent)
        assert event.payload == {"score": 8}

    def test_target_is_normalized(self, checkin_data):
        event = parse_event({**checkin_data, "target": ["Dashboard", " mobile "]})
        assert event.target == frozenset({"dashboard", "mobile"})

    def test_empty_target_means_all(self, checkin_data):
        event = parse_event({**checkin_data, "target": []})
        assert event.target is None

    def test_unknown_type_keeps_fields(self, checkin_data):
        event = parse_event({**checkin_data, "type": "medication_taken", "dose": "5mg"})
        assert isinstance(event, UnknownEvent)
        assert event.model_extra["dose"] == "5mg"

    def test_not_json(self):
        with pytest.raises(EventValidationError, match="not JSON"):
            parse_event("{not json")

    def test_not_an_object(self):
        with pytest.raises(EventValidationError):
            parse_event("[1, 2, 3]")

    def test_missing_type(self, checkin_data):
        del checkin_data["type"]
        with pytest.raises(EventValidationError, match="no type"):
            parse_event(checkin_data)

    def test_missing_user_id(self, checkin_data):
        del checkin_data["userId"]
        with pytest.raises(EventValidationError) as exc_info:
            parse_event(checkin_data)
        assert exc_info.value.details["errors"]

    def test_badge_requires_name(self):
        with pytest.raises(EventValidationError):
            parse_event({"type": "badge_awarded", "userId": "u1", "timestamp": "2024-01-01T08:00:00Z"})

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_event("nope")


class TestWireFormat:
    """Tests for serialization back to the wire."""

    def test_to_wire_uses_camel_case(self, checkin_data):
        event = parse_event({**checkin_data, "eventId": "e-1", "target": ["mobile", "dashboard"]})
        wire = event.to_wire()

        assert wire["userId"] == "u1"
        assert wire["eventId"] == "e-1"
        assert wire["target"] == ["dashboard", "mobile"]
        assert "payload" not in wire

    def test_json_reparses_to_equal_event(self, checkin_data):
        event = parse_event(checkin_data)
        assert parse_event(event.to_json()) == event


class TestDerivedBadge:
    """Tests for derived badge events."""

    def test_event_id_is_deterministic(self):
        first = BadgeAwardedEvent.derive("u1", "7-day streak", "engagement.events:0/1-0")
        second = BadgeAwardedEvent.derive("u1", "7-day streak", "engagement.events:0/1-0")

        assert first.event_id == second.event_id
        assert first.payload == {"source": "gamification"}

    def test_event_id_differs_per_badge(self):
        first = BadgeAwardedEvent.derive("u1", "7-day streak", "src")
        second = BadgeAwardedEvent.derive("u1", "30-day streak", "src")
        assert first.event_id != second.event_id


class TestDedupKey:
    """Tests for the idempotency key."""

    def test_prefers_event_id(self, checkin_data):
        event = parse_event({**checkin_data, "eventId": "evt-42"})
        assert dedup_key(event) == "evt-42"

    def test_deterministic_without_event_id(self, checkin_data):
        assert dedup_key(parse_event(checkin_data)) == dedup_key(parse_event(checkin_data))

    def test_differs_by_timestamp(self, checkin_data):
        other = {**checkin_data, "timestamp": "2024-01-02T08:00:00Z"}
        assert dedup_key(parse_event(checkin_data)) != dedup_key(parse_event(other))


class TestRoutes:
    """Tests for the delivery routing table."""

    def test_checkin_goes_direct(self):
        assert path_for("checkin") == DeliveryPath.DIRECT

    def test_badge_goes_through_log(self):
        assert path_for(EventType.BADGE_AWARDED) == DeliveryPath.LOG

    def test_unlisted_type_defaults_to_log(self):
        assert path_for("something_new") == DeliveryPath.LOG
