"""
Delivery routing table.

Every event type reaches the notification service through exactly one path:

- LOG: published to a partitioned log topic and consumed by the router's
  consumer group (ordered, replayable).
- DIRECT: sent through the direct-call bridge (low latency, acknowledged on
  receipt).

The bridge refuses LOG types and the router skips events that arrive on the
other path, so one logical event can never be delivered twice through both.
"""

from enum import Enum

from messaging_core.contracts.types import EventType


class DeliveryPath(str, Enum):
    LOG = "log"
    DIRECT = "direct"

    def __str__(self) -> str:
        return self.value


EVENT_ROUTES: dict[str, DeliveryPath] = {
    EventType.DAILY_CHECKIN.value: DeliveryPath.LOG,
    EventType.ACTIVITY_COMPLETED.value: DeliveryPath.LOG,
    EventType.TRIVIA_COMPLETED.value: DeliveryPath.LOG,
    EventType.MEMORY_QUIZ_COMPLETED.value: DeliveryPath.LOG,
    EventType.BADGE_AWARDED.value: DeliveryPath.LOG,
    EventType.BADGE_NOTIFICATION.value: DeliveryPath.LOG,
    # Caregiver check-in alerts are latency sensitive
    EventType.CHECKIN.value: DeliveryPath.DIRECT,
}


def path_for(event_type: str) -> DeliveryPath:
    """Delivery path for an event type (unlisted types use the log)."""
    return EVENT_ROUTES.get(str(event_type), DeliveryPath.LOG)
