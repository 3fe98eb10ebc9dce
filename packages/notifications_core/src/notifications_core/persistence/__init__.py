"""Notification persistence - models and repository."""

from notifications_core.persistence.models import (
    DeviceToken,
    NotificationBase,
    NotificationRecord,
    ProcessedNotification,
    Relationship,
    RelationKind,
    VerifiedDestination,
)
from notifications_core.persistence.repo import RecipientDirectory

__all__ = [
    "DeviceToken",
    "NotificationBase",
    "NotificationRecord",
    "ProcessedNotification",
    "RecipientDirectory",
    "RelationKind",
    "Relationship",
    "VerifiedDestination",
]
