"""Message rendering - event to channel-independent title and body."""

from messaging_core.contracts import BadgeAwardedEvent, BadgeNotificationEvent, CheckinEvent, Event, EventType

from notifications_core.adapters.base import RenderedMessage


def render(event: Event) -> RenderedMessage:
    """Render an event. Explicit ``title``/``body`` in the payload win."""
    payload = event.payload or {}

    if isinstance(event, (BadgeAwardedEvent, BadgeNotificationEvent)):
        title = "New badge earned!"
        body = f"{event.user_id} earned the {event.badge} badge"
    elif isinstance(event, CheckinEvent):
        title = "Check-in received"
        body = f"{event.user_id} checked in" + (f" feeling {event.mood}" if event.mood else "")
    elif event.type == EventType.DAILY_CHECKIN.value:
        title = "Daily check-in"
        body = f"{event.user_id} completed today's check-in"
    else:
        title = "Notification"
        body = f"Event: {event.type}"

    return RenderedMessage(
        title=str(payload.get("title") or title),
        body=str(payload.get("body") or body),
        event_type=event.type,
        data={"payload": event.to_json()},
    )
