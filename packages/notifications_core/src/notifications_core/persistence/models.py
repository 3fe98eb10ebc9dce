"""
Notification Database Models

Tables owned by the notification service:
- notification_device_tokens: push tokens per user device
- notification_verified_destinations: OTP-verified SMS/voice numbers
- notification_relationships: senior -> family/caregiver links
- notification_records: dashboard feed entries
- notification_processed: ledger of events already fanned out
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base

NotificationBase = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid4())


class RelationKind(str, Enum):
    FAMILY = "family"
    CAREGIVER = "caregiver"
    EMERGENCY = "emergency"


class DeviceToken(NotificationBase):
    """
    Push token for one device of a user.

    Valid only while not revoked; the most recently seen token wins.
    """

    __tablename__ = "notification_device_tokens"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(128), nullable=False, index=True)
    token = Column(String(512), nullable=False, unique=True)
    platform = Column(String(20), nullable=True)  # android, ios, web
    revoked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_device_tokens_user_revoked", "user_id", "revoked"),)


class VerifiedDestination(NotificationBase):
    """A contact point verified by OTP. Only active rows are eligible targets."""

    __tablename__ = "notification_verified_destinations"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(128), nullable=False, index=True)
    address = Column(String(32), nullable=False)  # E.164 phone number
    channel = Column(String(20), nullable=False, default="sms")  # sms, voice
    is_active = Column(Boolean, nullable=False, default=True)
    verified_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    last_sent_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (UniqueConstraint("address", "channel", name="uq_verified_destination_address"),)


class Relationship(NotificationBase):
    """Link from a senior to a family member or caregiver account."""

    __tablename__ = "notification_relationships"

    id = Column(String(36), primary_key=True, default=_uuid)
    senior_id = Column(String(128), nullable=False, index=True)
    linked_id = Column(String(128), nullable=False, index=True)
    relation = Column(String(20), nullable=False, default=RelationKind.FAMILY.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (UniqueConstraint("senior_id", "linked_id", name="uq_relationship_pair"),)


class NotificationRecord(NotificationBase):
    """Dashboard feed entry for one recipient."""

    __tablename__ = "notification_records"

    id = Column(String(36), primary_key=True, default=_uuid)
    recipient_id = Column(String(128), nullable=False, index=True)
    event_type = Column(String(64), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)
    read_by = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ProcessedNotification(NotificationBase):
    """Ledger of events already fanned out, keyed by the event's dedup key."""

    __tablename__ = "notification_processed"

    key = Column(String(255), primary_key=True)
    event_type = Column(String(64), nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
