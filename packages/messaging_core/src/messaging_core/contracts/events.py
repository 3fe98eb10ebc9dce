"""
Event Models - tagged union of all events on the wire.

Wire format is camelCase JSON:
    {type, userId, eventId?, action?, badge?, target?, timestamp, payload?}

``parse_event`` picks the model from the ``type`` tag. Unknown tags parse into
``UnknownEvent`` so consumers can log and skip them explicitly.
"""

import json
from datetime import datetime, timezone
from typing import Any, Literal
from uuid import NAMESPACE_URL, uuid5

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from messaging_core.contracts.types import EventType
from messaging_core.errors import EventValidationError

# Namespace for deterministic event ids
EVENT_NAMESPACE = uuid5(NAMESPACE_URL, "care-platform/events")


class Event(BaseModel):
    """Fields shared by every event. Immutable once built."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    type: str
    user_id: str = Field(..., alias="userId", min_length=1)
    timestamp: datetime
    event_id: str | None = Field(None, alias="eventId")
    action: str | None = None
    target: frozenset[str] | None = None
    payload: dict[str, Any] | None = None

    @field_validator("target", mode="before")
    @classmethod
    def _normalize_target(cls, value: Any) -> Any:
        # A single string, a list, or nothing; empty means "all audiences"
        if value is None:
            return None
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError("target must be a list of audience names")
        names = {str(v).strip().lower() for v in value if str(v).strip()}
        return frozenset(names) or None

    @property
    def transition_key(self) -> str:
        """Key used by the engagement state machine (action, falling back to type)."""
        return self.action or self.type

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase wire dict."""
        data = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        if self.target is not None:
            data["target"] = sorted(self.target)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_wire())


class DailyCheckinEvent(Event):
    type: Literal["daily_checkin"] = "daily_checkin"


class CheckinEvent(Event):
    type: Literal["checkin"] = "checkin"
    mood: str | None = None


class ActivityEvent(Event):
    """Activity or game completion; points come from the payload."""

    type: Literal["activity_completed", "trivia_completed", "memory_quiz_completed"]


class BadgeAwardedEvent(Event):
    type: Literal["badge_awarded"] = "badge_awarded"
    badge: str = Field(..., min_length=1)

    @classmethod
    def derive(
        cls,
        user_id: str,
        badge: str,
        source_key: str,
        target: frozenset[str] | None = None,
    ) -> "BadgeAwardedEvent":
        """
        Build the derived event for a badge earned while processing ``source_key``.

        The event id is deterministic so a re-emission for the same source
        message is recognisable downstream.
        """
        return cls(
            user_id=user_id,
            badge=badge,
            event_id=str(uuid5(EVENT_NAMESPACE, f"{source_key}:badge:{badge}")),
            timestamp=datetime.now(timezone.utc),
            target=target,
            payload={"source": "gamification"},
        )


class BadgeNotificationEvent(Event):
    type: Literal["badge_notification"] = "badge_notification"
    badge: str = Field(..., min_length=1)


class UnknownEvent(Event):
    """Any event whose type has no model. Extra fields are kept."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")


EVENT_MODELS: dict[str, type[Event]] = {
    EventType.DAILY_CHECKIN.value: DailyCheckinEvent,
    EventType.CHECKIN.value: CheckinEvent,
    EventType.ACTIVITY_COMPLETED.value: ActivityEvent,
    EventType.TRIVIA_COMPLETED.value: ActivityEvent,
    EventType.MEMORY_QUIZ_COMPLETED.value: ActivityEvent,
    EventType.BADGE_AWARDED.value: BadgeAwardedEvent,
    EventType.BADGE_NOTIFICATION.value: BadgeNotificationEvent,
}


def parse_event(raw: str | bytes | dict[str, Any]) -> Event:
    """
    Parse a wire message into its event model.

    Raises:
        EventValidationError: body is not JSON, not an object, has no type,
            or violates the schema of its type
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EventValidationError(f"Message is not UTF-8: {e}") from e

    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise EventValidationError(f"Message is not JSON: {e}") from e
    else:
        data = raw

    if not isinstance(data, dict):
        raise EventValidationError("Event must be a JSON object")

    event_type = data.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise EventValidationError("Event has no type")

    model = EVENT_MODELS.get(event_type, UnknownEvent)
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise EventValidationError(
            f"Invalid {event_type} event",
            details={"errors": e.errors(include_url=False)},
        ) from e


def dedup_key(event: Event) -> str:
    """
    Idempotency key for an event.

    The producer's eventId when present, else a deterministic id over
    type, user, action and timestamp.
    """
    if event.event_id:
        return event.event_id
    basis = f"{event.type}|{event.user_id}|{event.action or ''}|{event.timestamp.isoformat()}"
    return str(uuid5(EVENT_NAMESPACE, basis))
