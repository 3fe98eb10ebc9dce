"""
Engagement Log Consumer

Reads engagement events from the partitioned log through a consumer group
and folds them into GameState.

Features:
- Per-message idempotency via the gamification_processed_events ledger
- Ledger row and GameState written in one transaction
- Derived events emitted after commit; a failed emission never rolls back
- ACK after commit, or after dropping an invalid message
"""

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from messaging_core.contracts import BadgeAwardedEvent, Event, UnknownEvent, dedup_key, parse_event
from messaging_core.errors import DownstreamPublishError, EventValidationError
from messaging_core.log import EventLog, LogRecord

from gamification_core.engine import EngagementEngine
from gamification_core.metrics import (
    badges_awarded_total,
    downstream_publish_errors_total,
    engagement_messages_total,
)
from gamification_core.persistence.repo import GameStateRepository
from gamification_core.producer import DerivedEventPublisher

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "engagement.events"
DEFAULT_GROUP = "gamification-group"

_default_engine = EngagementEngine()


def idempotency_key(event: Event) -> str:
    """
    Ledger key of an event.

    The producer's eventId, else a digest of its content, so a producer retry
    appended at a new offset is still recognised. The log position is kept
    in the ledger row but never identifies the event.
    """
    return dedup_key(event)


def process_log_record(
    db: Session,
    record: LogRecord,
    publisher: DerivedEventPublisher,
    engine: EngagementEngine | None = None,
) -> dict[str, Any]:
    """
    Process a single engagement message.

    1. Parse; invalid messages are dropped
    2. Skip if the ledger already has the message
    3. Apply the transition and badge rules
    4. Write GameState and ledger row, commit
    5. Emit derived events

    Returns:
        Processing result dict. Every status except a raised exception means
        the message may be acknowledged.

    Raises:
        Exception: database or other infrastructure failure (message stays pending)
    """
    engine = engine or _default_engine

    try:
        event = parse_event(record.value)
    except EventValidationError as e:
        logger.warning(
            f"Dropping invalid message {record.record_id}: {e}",
            extra={"record_id": record.record_id, "details": e.details},
        )
        engagement_messages_total.labels(status="invalid").inc()
        return {"record_id": record.record_id, "status": "invalid", "error": str(e)}

    if isinstance(event, UnknownEvent):
        logger.warning(
            f"Skipping unknown event type {event.type}",
            extra={"record_id": record.record_id, "user_id": event.user_id},
        )
        engagement_messages_total.labels(status="unknown_type").inc()
        return {"record_id": record.record_id, "status": "skipped", "reason": "unknown_type"}

    key = idempotency_key(event)
    repo = GameStateRepository(db)

    if repo.is_processed(key):
        logger.debug(f"Message {key} already processed, skipping")
        engagement_messages_total.labels(status="duplicate").inc()
        return {"key": key, "status": "skipped", "reason": "already_processed"}

    try:
        before = repo.load_or_create(event.user_id)
        result = engine.apply(before, event)
        repo.save(result.state)
        repo.mark_processed(
            key,
            user_id=event.user_id,
            event_type=event.type,
            record_id=record.record_id,
            result={"applied": result.applied, "badges": result.new_badges},
        )
        db.commit()
    except IntegrityError:
        # Another consumer committed the same message first
        db.rollback()
        logger.info(f"Message {key} was processed concurrently, skipping")
        engagement_messages_total.labels(status="duplicate").inc()
        return {"key": key, "status": "skipped", "reason": "concurrent_processing"}
    except Exception as e:
        db.rollback()
        logger.error(
            f"Error processing message {key}: {e}",
            extra={"key": key, "event_type": event.type},
            exc_info=True,
        )
        raise

    state = result.state
    logger.info(
        f"Updated game state for {state.user_id}",
        extra={
            "key": key,
            "action": event.transition_key,
            "points": state.points,
            "streak": state.streak,
        },
    )
    engagement_messages_total.labels(status="processed" if result.applied else "no_transition").inc()

    published = []
    for badge in result.new_badges:
        badges_awarded_total.labels(badge=badge).inc()
        derived = BadgeAwardedEvent.derive(state.user_id, badge, source_key=key, target=event.target)
        try:
            publisher.publish(derived)
            published.append(badge)
            logger.info(f"Badge awarded to {state.user_id}: {badge}")
        except DownstreamPublishError as e:
            # State stays committed; the gap is visible through the counter
            downstream_publish_errors_total.labels(event_type=derived.type).inc()
            logger.error(
                f"Failed to emit {derived.type} for {state.user_id}: {e}",
                extra={"key": key, "badge": badge},
            )

    return {
        "key": key,
        "status": "processed",
        "state": state.to_dict(),
        "badges": result.new_badges,
        "published": published,
    }


def _process_batch(
    db: Session,
    log: EventLog,
    group: str,
    records: list[LogRecord],
    publisher: DerivedEventPublisher,
    engine: EngagementEngine | None,
) -> int:
    processed_count = 0

    for record in records:
        try:
            result = process_log_record(db, record, publisher, engine)

            # ACK after commit (or after dropping an invalid message)
            log.ack(group, record)
            processed_count += 1

            logger.debug(
                f"ACKed {record.record_id}",
                extra={"record_id": record.record_id, "status": result["status"]},
            )

        except Exception as e:
            # Don't ACK - message will be reclaimed
            logger.error(
                f"Failed to process {record.record_id}: {e}",
                extra={"record_id": record.record_id, "delivery_count": record.delivery_count},
                exc_info=True,
            )

    return processed_count


def consume_from_log(
    db: Session,
    log: EventLog,
    publisher: DerivedEventPublisher,
    topic: str = DEFAULT_TOPIC,
    group: str = DEFAULT_GROUP,
    consumer_name: str = "gamification-worker",
    partitions: list[int] | None = None,
    count: int = 10,
    block_ms: int = 5000,
    engine: EngagementEngine | None = None,
) -> int:
    """
    Read one batch from the owned partitions and process it.

    Args:
        db: Database session
        log: Partitioned log
        publisher: Emitter for derived events
        topic: Engagement topic
        group: Consumer group name
        consumer_name: This consumer's name
        partitions: Partitions owned by this instance (None = all)
        count: Max messages to read per batch
        block_ms: Milliseconds to block waiting for messages
        engine: State machine (default: built-in transitions and badge rules)

    Returns:
        Number of messages acknowledged
    """
    records = log.read(topic, group, consumer_name, partitions, count=count, block_ms=block_ms)
    if not records:
        return 0
    return _process_batch(db, log, group, records, publisher, engine)


def reclaim_pending_records(
    db: Session,
    log: EventLog,
    publisher: DerivedEventPublisher,
    topic: str = DEFAULT_TOPIC,
    group: str = DEFAULT_GROUP,
    consumer_name: str = "gamification-worker",
    partitions: list[int] | None = None,
    min_idle_ms: int = 60000,
    count: int = 100,
    engine: EngagementEngine | None = None,
) -> int:
    """
    Reclaim and process messages left pending by crashed or stuck consumers.

    The ledger makes reprocessing a message that was already committed a no-op.

    Returns:
        Number of reclaimed messages acknowledged
    """
    records = log.reclaim(topic, group, consumer_name, partitions, min_idle_ms=min_idle_ms, count=count)
    if not records:
        return 0

    logger.info(f"Reclaimed {len(records)} pending messages")
    return _process_batch(db, log, group, records, publisher, engine)
