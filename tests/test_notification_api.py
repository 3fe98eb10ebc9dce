"""
Tests for the notification API: dashboard feed, read receipts and device registration.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from basecore.db import get_db
from notification_api.main import app
from notifications_core.persistence import RecipientDirectory


@pytest.fixture
def client(session_factory):
    """Test client whose requests use the in-memory database."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def feed(session_factory):
    """Adds feed entries for a recipient, one minute apart."""

    def add(recipient_id, *titles):
        db = session_factory()
        try:
            directory = RecipientDirectory(db)
            ids = []
            for minute, title in enumerate(titles):
                record = directory.record_notification(recipient_id, "badge_awarded", title, f"{title} body")
                record.created_at = datetime(2024, 1, 7, 8, tzinfo=timezone.utc) + timedelta(minutes=minute)
                ids.append(record.id)
            db.commit()
            return ids
        finally:
            db.close()

    return add


class TestFeed:

    def test_newest_first_with_camel_case_fields(self, client, feed):
        feed("family-1", "First", "Second")

        response = client.get("/notifications/family-1")

        assert response.status_code == 200
        body = response.json()
        assert [entry["title"] for entry in body] == ["Second", "First"]
        assert body[0]["type"] == "badge_awarded"
        assert body[0]["read"] is False
        assert "createdAt" in body[0]

    def test_limit_and_recipient_filter(self, client, feed):
        feed("family-1", "First", "Second", "Third")
        feed("caregiver-1", "Other")

        body = client.get("/notifications/family-1", params={"limit": 2}).json()

        assert [entry["title"] for entry in body] == ["Third", "Second"]

    def test_limit_out_of_range(self, client):
        response = client.get("/notifications/family-1", params={"limit": 0})

        assert response.status_code == 422

    def test_unknown_recipient_has_empty_feed(self, client):
        assert client.get("/notifications/nobody").json() == []


class TestMarkRead:

    def test_marks_entry_read_for_reader(self, client, feed):
        (notification_id,) = feed("family-1", "Badge")

        response = client.post(f"/notifications/{notification_id}/read", params={"readerId": "family-1"})

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        (entry,) = client.get("/notifications/family-1").json()
        assert entry["read"] is True

    def test_missing_notification(self, client):
        response = client.post("/notifications/missing/read", params={"readerId": "family-1"})

        assert response.status_code == 404

    def test_reader_is_required(self, client, feed):
        (notification_id,) = feed("family-1", "Badge")

        response = client.post(f"/notifications/{notification_id}/read")

        assert response.status_code == 422


class TestDeviceRegistration:

    def test_registers_token(self, client, session_factory):
        response = client.post("/devices", json={"userId": "senior-1", "token": "token-1", "platform": "android"})

        assert response.status_code == 201
        db = session_factory()
        try:
            device = RecipientDirectory(db).latest_device_token("senior-1")
        finally:
            db.close()
        assert device.id == response.json()["id"]
        assert device.token == "token-1"

    def test_same_token_moves_to_new_user(self, client, session_factory):
        first = client.post("/devices", json={"userId": "senior-1", "token": "token-1"}).json()
        second = client.post("/devices", json={"userId": "senior-2", "token": "token-1"}).json()

        assert first["id"] == second["id"]
        db = session_factory()
        try:
            directory = RecipientDirectory(db)
            assert directory.latest_device_token("senior-1") is None
            assert directory.latest_device_token("senior-2").token == "token-1"
        finally:
            db.close()

    def test_empty_token_rejected(self, client):
        response = client.post("/devices", json={"userId": "senior-1", "token": ""})

        assert response.status_code == 422


class TestOperations:

    def test_health_without_intake(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["intake_connected"] is False

    def test_metrics_exposes_bridge_counter(self, client):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "notification_bridge_calls_total" in response.text
