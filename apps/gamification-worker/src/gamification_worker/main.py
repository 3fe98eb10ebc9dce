"""
Gamification Worker - Engagement Log Consumer

This worker uses ONLY:
- basecore (DB, settings, logging, redis)
- messaging_core (log, contracts)
- gamification_core (engine, persistence, consumer)

Features:
- XREADGROUP consumer over the owned partitions of engagement.events
- PEL reclaim for stuck messages
- Idempotency via the gamification_processed_events ledger
- Badge events emitted to gamification.events (or the bridge for direct types)
- Graceful shutdown
"""

import logging
import os
import signal
import socket
import sys
import threading
import time

from basecore.db import create_tables, get_db
from basecore.logging import setup_logging
from basecore.redis import get_redis_client
from basecore.settings import get_settings
from gamification_core.consumer import consume_from_log, reclaim_pending_records
from gamification_core.persistence import GamificationBase
from gamification_core.producer import DerivedEventPublisher
from messaging_core.errors import ConfigurationError
from messaging_core.log import RedisStreamLog
from notifications_core.bridge import NotificationBridgeClient

setup_logging()
logger = logging.getLogger(__name__)

# Configuration
CONSUMER_NAME = os.getenv("GAMIFICATION_CONSUMER_NAME", f"gamification-{socket.gethostname()}-{os.getpid()}")
BATCH_SIZE = int(os.getenv("GAMIFICATION_BATCH_SIZE", "10"))
BLOCK_MS = int(os.getenv("GAMIFICATION_BLOCK_MS", "5000"))
RECLAIM_INTERVAL_SEC = int(os.getenv("GAMIFICATION_RECLAIM_INTERVAL", "60"))
RECLAIM_IDLE_MS = int(os.getenv("GAMIFICATION_RECLAIM_IDLE_MS", "60000"))

# Graceful shutdown
shutdown_requested = False


def signal_handler(signum, frame):
    global shutdown_requested
    logger.info(f"Received signal {signum}, requesting shutdown...")
    shutdown_requested = True


def run_reclaim_loop(log, publisher, settings):
    """
    Background thread for reclaiming pending messages.

    Runs every RECLAIM_INTERVAL_SEC seconds.
    """
    logger.info(f"Starting PEL reclaim loop (interval={RECLAIM_INTERVAL_SEC}s, idle_threshold={RECLAIM_IDLE_MS}ms)")

    while not shutdown_requested:
        try:
            for _ in range(RECLAIM_INTERVAL_SEC):
                if shutdown_requested:
                    return
                time.sleep(1)

            db = next(get_db())
            try:
                reclaimed = reclaim_pending_records(
                    db,
                    log,
                    publisher,
                    topic=settings.ENGAGEMENT_TOPIC,
                    group=settings.GAMIFICATION_GROUP,
                    consumer_name=CONSUMER_NAME,
                    partitions=settings.engagement_partitions,
                    min_idle_ms=RECLAIM_IDLE_MS,
                )
                if reclaimed > 0:
                    logger.info(f"Reclaimed and processed {reclaimed} pending messages")
            finally:
                db.close()

        except Exception as e:
            logger.error(f"Error in reclaim loop: {e}", exc_info=True)


def main():
    """Main worker loop."""
    settings = get_settings()
    try:
        settings.validate_required()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    partitions = settings.engagement_partitions
    logger.info(
        f"Starting gamification worker (topic={settings.ENGAGEMENT_TOPIC}, group={settings.GAMIFICATION_GROUP}, "
        f"consumer={CONSUMER_NAME}, partitions={partitions or 'all'}, batch={BATCH_SIZE})"
    )

    create_tables(GamificationBase)

    log = RedisStreamLog(get_redis_client(), partitions=settings.LOG_PARTITIONS, max_len=settings.LOG_MAX_LEN)
    try:
        log.ensure_group(settings.ENGAGEMENT_TOPIC, settings.GAMIFICATION_GROUP)
    except Exception as e:
        logger.error(f"Failed to initialize consumer group, exiting: {e}", exc_info=True)
        sys.exit(1)

    bridge = NotificationBridgeClient(settings.NOTIFICATION_API_URL, timeout=settings.BRIDGE_TIMEOUT_S)
    publisher = DerivedEventPublisher(log, settings.GAMIFICATION_TOPIC, direct=bridge)

    # Initial reclaim on startup to pick up orphaned messages
    db = next(get_db())
    try:
        initial = reclaim_pending_records(
            db,
            log,
            publisher,
            topic=settings.ENGAGEMENT_TOPIC,
            group=settings.GAMIFICATION_GROUP,
            consumer_name=CONSUMER_NAME,
            partitions=partitions,
            min_idle_ms=RECLAIM_IDLE_MS,
        )
        if initial > 0:
            logger.info(f"Initial reclaim: processed {initial} orphaned messages")
    except Exception as e:
        logger.warning(f"Initial reclaim failed: {e}")
    finally:
        db.close()

    reclaim_thread = threading.Thread(target=run_reclaim_loop, args=(log, publisher, settings), daemon=True)
    reclaim_thread.start()

    while not shutdown_requested:
        db = next(get_db())
        try:
            count = consume_from_log(
                db,
                log,
                publisher,
                topic=settings.ENGAGEMENT_TOPIC,
                group=settings.GAMIFICATION_GROUP,
                consumer_name=CONSUMER_NAME,
                partitions=partitions,
                count=BATCH_SIZE,
                block_ms=BLOCK_MS,
            )
            if count > 0:
                logger.info(f"Processed {count} engagement messages")
        except Exception as e:
            logger.error(f"Error in consume loop: {e}", exc_info=True)
            time.sleep(1)
        finally:
            db.close()

    bridge.close()
    logger.info("Gamification worker shutting down gracefully")


if __name__ == "__main__":
    main()
