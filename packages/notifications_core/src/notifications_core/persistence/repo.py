"""
Repository helpers for notification tables.

``RecipientDirectory`` answers the router's questions (who is linked to a
senior, where can a recipient be reached) and records what was delivered.
Writes are flushed; callers commit.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from notifications_core.persistence.models import (
    DeviceToken,
    NotificationRecord,
    ProcessedNotification,
    Relationship,
    RelationKind,
    VerifiedDestination,
)


class RecipientDirectory:
    """Repository for recipients, destinations and the notification ledger."""

    def __init__(self, db: Session):
        self.db = db

    # --- Relationship graph ---

    def linked_parties(self, senior_id: str) -> list[str]:
        """Family members and caregivers linked to a senior."""
        rows = (
            self.db.query(Relationship.linked_id)
            .filter(Relationship.senior_id == senior_id)
            .order_by(Relationship.created_at.asc())
            .all()
        )
        return [row.linked_id for row in rows]

    def link(
        self,
        senior_id: str,
        linked_id: str,
        relation: str = RelationKind.FAMILY.value,
    ) -> Relationship:
        relationship = Relationship(senior_id=senior_id, linked_id=linked_id, relation=relation)
        self.db.add(relationship)
        self.db.flush()
        return relationship

    # --- Push tokens ---

    def latest_device_token(self, user_id: str) -> DeviceToken | None:
        """Most recently seen non-revoked token."""
        return (
            self.db.query(DeviceToken)
            .filter(DeviceToken.user_id == user_id, DeviceToken.revoked.is_(False))
            .order_by(func.coalesce(DeviceToken.last_seen_at, DeviceToken.created_at).desc())
            .first()
        )

    def register_device_token(
        self,
        user_id: str,
        token: str,
        platform: str | None = None,
        seen_at: datetime | None = None,
    ) -> DeviceToken:
        """Register a token, or reactivate it for the user if already known."""
        existing = self.db.query(DeviceToken).filter(DeviceToken.token == token).first()
        if existing:
            existing.user_id = user_id
            existing.platform = platform or existing.platform
            existing.revoked = False
            existing.last_seen_at = seen_at or datetime.now(timezone.utc)
            self.db.flush()
            return existing

        device = DeviceToken(
            user_id=user_id,
            token=token,
            platform=platform,
            last_seen_at=seen_at or datetime.now(timezone.utc),
        )
        self.db.add(device)
        self.db.flush()
        return device

    def revoke_token(self, token: str) -> bool:
        updated = (
            self.db.query(DeviceToken)
            .filter(DeviceToken.token == token)
            .update({DeviceToken.revoked: True}, synchronize_session="fetch")
        )
        self.db.flush()
        return updated > 0

    def touch_token(self, token: str) -> None:
        self.db.query(DeviceToken).filter(DeviceToken.token == token).update(
            {DeviceToken.last_seen_at: datetime.now(timezone.utc)},
            synchronize_session="fetch",
        )
        self.db.flush()

    # --- Verified destinations ---

    def active_destination(self, user_id: str, channel: str = "sms") -> VerifiedDestination | None:
        return (
            self.db.query(VerifiedDestination)
            .filter(
                VerifiedDestination.user_id == user_id,
                VerifiedDestination.channel == channel,
                VerifiedDestination.is_active.is_(True),
            )
            .order_by(VerifiedDestination.verified_at.desc())
            .first()
        )

    def add_verified_destination(
        self,
        user_id: str,
        address: str,
        channel: str = "sms",
        is_active: bool = True,
    ) -> VerifiedDestination:
        destination = VerifiedDestination(
            user_id=user_id,
            address=address,
            channel=channel,
            is_active=is_active,
        )
        self.db.add(destination)
        self.db.flush()
        return destination

    def mark_destination_used(self, user_id: str, address: str) -> None:
        self.db.query(VerifiedDestination).filter(
            VerifiedDestination.user_id == user_id,
            VerifiedDestination.address == address,
        ).update({VerifiedDestination.last_sent_at: datetime.now(timezone.utc)}, synchronize_session="fetch")
        self.db.flush()

    # --- Dashboard feed ---

    def record_notification(
        self,
        recipient_id: str,
        event_type: str,
        title: str,
        body: str,
        payload: dict[str, Any] | None = None,
    ) -> NotificationRecord:
        record = NotificationRecord(
            recipient_id=recipient_id,
            event_type=event_type,
            title=title,
            body=body,
            payload=payload,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def recent_notifications(self, recipient_id: str, limit: int = 50) -> list[NotificationRecord]:
        return (
            self.db.query(NotificationRecord)
            .filter(NotificationRecord.recipient_id == recipient_id)
            .order_by(NotificationRecord.created_at.desc())
            .limit(limit)
            .all()
        )

    def mark_read(self, notification_id: str, reader_id: str) -> bool:
        record = self.db.get(NotificationRecord, notification_id)
        if record is None:
            return False
        if reader_id not in (record.read_by or []):
            record.read_by = [*(record.read_by or []), reader_id]
            self.db.flush()
        return True

    # --- Processed ledger ---

    def claim_event(self, key: str, event_type: str) -> bool:
        """
        Record that an event is being fanned out.

        Call on a session with no other pending work: a conflicting claim
        rolls the session back.

        Returns:
            True on first claim, False if the event was already processed
            (here or by another replica)
        """
        if self.db.get(ProcessedNotification, key) is not None:
            return False
        try:
            self.db.add(ProcessedNotification(key=key, event_type=event_type))
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            return False
        return True
