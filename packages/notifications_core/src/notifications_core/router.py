"""
Notification Router

Receives events from the partitioned log (consumer group) and from the
pub/sub topic fed by the direct-call bridge, and fans each one out to
recipients through the configured channel adapters.

Features:
- Routing table check: an event arriving on the path its type is not routed
  through is skipped, so one logical event is never delivered twice
- Duplicate suppression through the processed-notification ledger,
  claimed before delivery
- Per (recipient, channel) delivery; failures are logged and counted,
  never retried
- Push tokens reported as unregistered are revoked
- Database work runs in worker threads so pub/sub dispatch is never blocked
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable

from sqlalchemy.orm import Session

from messaging_core.contracts import DeliveryPath, Event, UnknownEvent, dedup_key, parse_event, path_for
from messaging_core.errors import EventValidationError
from messaging_core.log import EventLog, LogRecord

from notifications_core.adapters.base import Channel, DeliveryAdapter, DeliveryResult
from notifications_core.adapters.mock import MockAdapter
from notifications_core.metrics import notification_deliveries_total, notification_events_total
from notifications_core.persistence.repo import RecipientDirectory
from notifications_core.recipients import Delivery, resolve_deliveries, resolve_destination
from notifications_core.rendering import render

logger = logging.getLogger(__name__)


@dataclass
class DeliveryStats:
    """In-process outcome counters, mirrored into Prometheus."""

    sent: int = 0
    failed: int = 0
    skipped: int = 0
    duplicate: int = 0
    invalid: int = 0
    misrouted: int = 0

    def delivery(self, channel: Channel, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)
        notification_deliveries_total.labels(channel=channel.value, outcome=outcome).inc()

    def event(self, status: str) -> None:
        if hasattr(self, status):
            setattr(self, status, getattr(self, status) + 1)
        notification_events_total.labels(status=status).inc()

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class NotificationRouter:
    """
    Fans events out to channel adapters.

    Args:
        session_factory: Creates database sessions (recipient directory, ledger)
        adapters: One adapter per channel; a missing channel gets MockAdapter
        stats: Counters to update (new DeliveryStats if omitted)
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        adapters: dict[Channel, DeliveryAdapter],
        stats: DeliveryStats | None = None,
    ):
        self.session_factory = session_factory
        self.adapters = dict(adapters)
        for channel in Channel:
            if channel not in self.adapters:
                logger.warning(f"No adapter configured for {channel}, using mock")
                self.adapters[channel] = MockAdapter(channel)
        self.stats = stats or DeliveryStats()

    async def route(self, event: Event, path: DeliveryPath) -> dict[str, Any]:
        """
        Deliver one event arriving on ``path``.

        Returns:
            Result dict with ``status`` and, when routed, the per-delivery outcomes

        Raises:
            Exception: database failure while claiming or resolving recipients
        """
        expected = path_for(event.type)
        if expected != path:
            logger.warning(
                f"Skipping {event.type} received via {path}; it is routed via {expected}",
                extra={"user_id": event.user_id, "event_type": event.type},
            )
            self.stats.event("misrouted")
            return {"status": "skipped", "reason": "misrouted"}

        if isinstance(event, UnknownEvent):
            logger.warning(
                f"Skipping unknown event type {event.type}",
                extra={"user_id": event.user_id},
            )
            self.stats.event("unknown_type")
            return {"status": "skipped", "reason": "unknown_type"}

        key = dedup_key(event)
        message = render(event)

        plan = await asyncio.to_thread(self._claim_and_plan, event, key)
        if plan is None:
            logger.info(f"Event {key} already delivered, skipping", extra={"event_type": event.type})
            self.stats.event("duplicate")
            return {"key": key, "status": "skipped", "reason": "duplicate"}

        outcomes = []
        for delivery, destination in plan:
            outcome = await self._deliver(delivery.channel, delivery.recipient_id, destination, message)
            outcomes.append({
                "recipientId": delivery.recipient_id,
                "channel": delivery.channel.value,
                "outcome": outcome,
            })

        self.stats.event("routed")
        logger.info(
            f"Routed {event.type} for {event.user_id} to {len(outcomes)} deliveries",
            extra={"key": key, "path": path.value},
        )
        return {"key": key, "status": "routed", "deliveries": outcomes}

    def _claim_and_plan(self, event: Event, key: str) -> list[tuple[Delivery, str | None]] | None:
        """
        Claim the ledger entry for ``key`` and resolve every destination.

        Runs in a worker thread. Returns None when the event was already claimed.
        """
        db = self.session_factory()
        try:
            directory = RecipientDirectory(db)
            if not directory.claim_event(key, event.type):
                return None
            db.commit()

            plan = [
                (delivery, resolve_destination(delivery.channel, delivery.recipient_id, directory))
                for delivery in resolve_deliveries(event, directory)
            ]
            db.commit()
            return plan
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _update_destination(self, channel: Channel, recipient_id: str, destination: str, result: DeliveryResult) -> None:
        """Record the send outcome on the destination. Runs in a worker thread."""
        db = self.session_factory()
        try:
            directory = RecipientDirectory(db)
            if result.success and channel == Channel.PUSH:
                directory.touch_token(destination)
            elif result.success and channel == Channel.SMS:
                directory.mark_destination_used(recipient_id, destination)
            elif result.unregistered and channel == Channel.PUSH:
                directory.revoke_token(destination)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def _deliver(self, channel, recipient_id, destination, message) -> str:
        if destination is None:
            logger.debug(f"No {channel} destination for {recipient_id}")
            self.stats.delivery(channel, "skipped")
            return "skipped"

        adapter = self.adapters[channel]
        try:
            result: DeliveryResult = await adapter.send(destination, message)
        except Exception as e:
            logger.error(
                f"{adapter.name} adapter raised for {recipient_id}: {e}",
                extra={"channel": channel.value, "recipient_id": recipient_id},
                exc_info=True,
            )
            self.stats.delivery(channel, "failed")
            return "failed"

        if channel in (Channel.PUSH, Channel.SMS) and (result.success or result.unregistered):
            await asyncio.to_thread(self._update_destination, channel, recipient_id, destination, result)

        if result.success:
            self.stats.delivery(channel, "sent")
            return "sent"

        if result.unregistered and channel == Channel.PUSH:
            logger.info(f"Revoked unregistered push token for {recipient_id}")

        logger.warning(
            f"{channel} delivery to {recipient_id} failed: {result.error}",
            extra={"channel": channel.value, "provider": result.provider},
        )
        self.stats.delivery(channel, "failed")
        return "failed"

    async def handle_raw(self, raw: str | bytes, path: DeliveryPath) -> dict[str, Any]:
        """Parse and route a wire message. Invalid messages are dropped."""
        try:
            event = parse_event(raw)
        except EventValidationError as e:
            logger.warning(f"Dropping invalid notification message: {e}", extra={"details": e.details})
            self.stats.event("invalid")
            return {"status": "invalid", "error": str(e)}
        return await self.route(event, path)

    async def handle_message(self, topic: str, data: str) -> None:
        """Pub/sub handler for events handed over by the direct-call bridge."""
        await self.handle_raw(data, DeliveryPath.DIRECT)

    async def _process_records(self, log: EventLog, group: str, records: list[LogRecord]) -> int:
        acked = 0
        for record in records:
            try:
                await self.handle_raw(record.value, DeliveryPath.LOG)
                await asyncio.to_thread(log.ack, group, record)
                acked += 1
            except Exception as e:
                # Don't ACK - message will be reclaimed
                logger.error(
                    f"Failed to route {record.record_id}: {e}",
                    extra={"record_id": record.record_id, "delivery_count": record.delivery_count},
                    exc_info=True,
                )
        return acked

    async def consume_log(
        self,
        log: EventLog,
        topics: list[str],
        group: str,
        consumer: str,
        partitions: list[int] | None = None,
        count: int = 10,
        block_ms: int = 1000,
    ) -> int:
        """
        Read one batch per topic and route it.

        Returns:
            Number of messages acknowledged
        """
        acked = 0
        for topic in topics:
            records = await asyncio.to_thread(log.read, topic, group, consumer, partitions, count, block_ms)
            if records:
                acked += await self._process_records(log, group, records)
        return acked

    async def reclaim(
        self,
        log: EventLog,
        topics: list[str],
        group: str,
        consumer: str,
        partitions: list[int] | None = None,
        min_idle_ms: int = 60000,
        count: int = 100,
    ) -> int:
        """Route messages left pending by a crashed router instance."""
        acked = 0
        for topic in topics:
            records = await asyncio.to_thread(log.reclaim, topic, group, consumer, partitions, min_idle_ms, count)
            if records:
                logger.info(f"Reclaimed {len(records)} pending messages from {topic}")
                acked += await self._process_records(log, group, records)
        return acked

    async def close(self) -> None:
        for adapter in self.adapters.values():
            await adapter.close()
