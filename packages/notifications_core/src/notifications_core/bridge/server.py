"""
Direct-Call Bridge (server side)

Unary ``PublishEvent(Event) -> Ack`` exposed over HTTP. The call returns once
the notification service has accepted the event (receipt, not delivery).
Accepted events are handed to the configured intake, normally a publish onto
the notification pub/sub topic that the router subscribes to. Pub/sub keeps
nothing for absent subscribers, so a publish no consumer received is
reported as ``ok=false``.

Only event types routed through the direct path are accepted; types routed
through the log are refused so one logical event never takes both paths.
"""

import logging
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Body, Request
from pydantic import BaseModel

from messaging_core.contracts import DeliveryPath, Event, parse_event, path_for
from messaging_core.errors import EventValidationError, NotConnectedError
from messaging_core.transport import PubSubTransport

from notifications_core.metrics import bridge_calls_total

logger = logging.getLogger(__name__)

PUBLISH_EVENT_PATH = "/rpc/notification/PublishEvent"

# Resolves to the number of consumers that received the event
EventIntake = Callable[[Event], Awaitable[int]]


class Ack(BaseModel):
    ok: bool
    error: str | None = None


def transport_intake(transport: PubSubTransport, topic: str) -> EventIntake:
    """Intake that publishes accepted events onto ``topic``."""

    async def intake(event: Event) -> int:
        return await transport.publish(topic, event.to_json())

    return intake


bridge_router = APIRouter(tags=["bridge"])


@bridge_router.post(PUBLISH_EVENT_PATH, response_model=Ack, response_model_exclude_none=True)
async def publish_event(request: Request, body: dict[str, Any] = Body(...)) -> Ack:
    """Accept an event for notification fan-out."""
    try:
        event = parse_event(body)
    except EventValidationError as e:
        logger.warning(f"PublishEvent rejected invalid event: {e}", extra={"details": e.details})
        bridge_calls_total.labels(result="invalid").inc()
        return Ack(ok=False, error=str(e))

    if path_for(event.type) != DeliveryPath.DIRECT:
        logger.warning(
            f"PublishEvent refused {event.type}: routed through the log",
            extra={"user_id": event.user_id},
        )
        bridge_calls_total.labels(result="refused").inc()
        return Ack(ok=False, error=f"Event type {event.type} must be published to the log")

    intake: EventIntake | None = getattr(request.app.state, "intake", None)
    if intake is None:
        bridge_calls_total.labels(result="unavailable").inc()
        return Ack(ok=False, error="Notification intake not configured")

    try:
        receivers = await intake(event)
    except NotConnectedError as e:
        logger.error(f"PublishEvent intake unavailable: {e}")
        bridge_calls_total.labels(result="unavailable").inc()
        return Ack(ok=False, error=str(e))

    if receivers == 0:
        logger.warning(
            f"PublishEvent dropped {event.type} for {event.user_id}: no notification consumer",
            extra={"event_id": event.event_id},
        )
        bridge_calls_total.labels(result="no_consumer").inc()
        return Ack(ok=False, error="No notification consumer received the event")

    logger.info(f"Accepted {event.type} for {event.user_id}", extra={"event_id": event.event_id})
    bridge_calls_total.labels(result="accepted").inc()
    return Ack(ok=True)
