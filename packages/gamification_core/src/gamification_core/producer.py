"""
Engagement and derived event emission.

``EngagementProducer`` appends engagement events to the log keyed by user,
so one user's events stay in one partition and in order.

``DerivedEventPublisher`` emits events produced by the gamification engine
on the path the routing table assigns to their type.
"""

import logging
from typing import Protocol

from messaging_core.contracts import DeliveryPath, Event, path_for
from messaging_core.errors import DownstreamPublishError
from messaging_core.log import EventLog, LogRecord

logger = logging.getLogger(__name__)


class EngagementProducer:
    """Producer for engagement events."""

    def __init__(self, log: EventLog, topic: str = "engagement.events"):
        self.log = log
        self.topic = topic

    def publish(self, event: Event) -> LogRecord:
        record = self.log.publish(self.topic, event.user_id, event.to_json())
        logger.info(
            f"Published {event.type} for {event.user_id}",
            extra={"topic": self.topic, "partition": record.partition, "offset": record.offset},
        )
        return record


class DirectPublisher(Protocol):
    """Anything exposing the direct-call bridge's publish operation."""

    def publish_event(self, event: Event) -> object:
        ...


class DerivedEventPublisher:
    """Publisher for events derived while processing engagement messages."""

    def __init__(
        self,
        log: EventLog,
        topic: str = "gamification.events",
        direct: DirectPublisher | None = None,
    ):
        self.log = log
        self.topic = topic
        self.direct = direct

    def publish(self, event: Event) -> None:
        """
        Emit a derived event.

        Raises:
            DownstreamPublishError: if the event could not be emitted
        """
        path = path_for(event.type)
        try:
            if path == DeliveryPath.DIRECT:
                if self.direct is None:
                    raise DownstreamPublishError(f"No direct publisher configured for {event.type}")
                self.direct.publish_event(event)
            else:
                self.log.publish(self.topic, event.user_id, event.to_json())
        except DownstreamPublishError:
            raise
        except Exception as e:
            raise DownstreamPublishError(
                f"Failed to publish {event.type} for {event.user_id}: {e}",
                details={"event_type": event.type, "path": path.value},
            ) from e

        logger.info(
            f"Published derived {event.type} for {event.user_id}",
            extra={"path": path.value, "event_id": event.event_id},
        )
