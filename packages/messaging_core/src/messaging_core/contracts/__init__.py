"""Event contracts - types, tagged-union models and the delivery routing table."""

from messaging_core.contracts.events import (
    ActivityEvent,
    BadgeAwardedEvent,
    BadgeNotificationEvent,
    CheckinEvent,
    DailyCheckinEvent,
    Event,
    UnknownEvent,
    dedup_key,
    parse_event,
)
from messaging_core.contracts.routes import DeliveryPath, EVENT_ROUTES, path_for
from messaging_core.contracts.types import Audience, EventType

__all__ = [
    "ActivityEvent",
    "Audience",
    "BadgeAwardedEvent",
    "BadgeNotificationEvent",
    "CheckinEvent",
    "DailyCheckinEvent",
    "DeliveryPath",
    "EVENT_ROUTES",
    "Event",
    "EventType",
    "UnknownEvent",
    "dedup_key",
    "parse_event",
    "path_for",
]
