"""
Event Types - Known event types flowing between care platform services.

The event type is the tag of the event union; consumers dispatch on it.
"""

from enum import Enum


class EventType(str, Enum):
    """
    Known event types.

    Format: noun or action_performed, as emitted on the wire.
    """

    # Engagement events (check-in / activity producers)
    DAILY_CHECKIN = "daily_checkin"
    CHECKIN = "checkin"
    ACTIVITY_COMPLETED = "activity_completed"
    TRIVIA_COMPLETED = "trivia_completed"
    MEMORY_QUIZ_COMPLETED = "memory_quiz_completed"

    # Derived gamification events
    BADGE_AWARDED = "badge_awarded"
    BADGE_NOTIFICATION = "badge_notification"

    def __str__(self) -> str:
        return self.value


class Audience(str, Enum):
    """Downstream audiences an event can be addressed to."""

    DASHBOARD = "dashboard"
    MOBILE = "mobile"
    SMS = "sms"

    def __str__(self) -> str:
        return self.value
