"""
Notification Worker - Notification Router Process

Feeds the Notification Router from both delivery paths:
- Log path: consumer group over gamification.events and engagement.events
- Direct path: pub/sub subscription to notification/events, fed by the
  direct-call bridge

Adapters are selected once at startup from PUSH_ADAPTER / SMS_ADAPTER /
DASHBOARD_ADAPTER; a misconfigured adapter falls back to mock.
"""

import asyncio
import logging
import os
import signal
import socket
import sys

from basecore.db import create_tables, get_sessionmaker
from basecore.logging import setup_logging
from basecore.redis import get_redis_client
from basecore.settings import get_settings
from messaging_core.errors import ConfigurationError
from messaging_core.log import RedisStreamLog
from messaging_core.transport import RedisPubSubTransport
from notifications_core.adapters import AdapterContext, build_adapters
from notifications_core.persistence import NotificationBase
from notifications_core.router import NotificationRouter

setup_logging()
logger = logging.getLogger(__name__)

# Configuration
CONSUMER_NAME = os.getenv("NOTIFICATION_CONSUMER_NAME", f"notification-{socket.gethostname()}-{os.getpid()}")
BATCH_SIZE = int(os.getenv("NOTIFICATION_BATCH_SIZE", "10"))
BLOCK_MS = int(os.getenv("NOTIFICATION_BLOCK_MS", "1000"))
RECLAIM_INTERVAL_SEC = int(os.getenv("NOTIFICATION_RECLAIM_INTERVAL", "60"))
RECLAIM_IDLE_MS = int(os.getenv("NOTIFICATION_RECLAIM_IDLE_MS", "60000"))


async def reclaim_loop(router, log, topics, group, stop: asyncio.Event):
    while not stop.is_set():
        try:
            await asyncio.wait_for(stop.wait(), timeout=RECLAIM_INTERVAL_SEC)
            return
        except asyncio.TimeoutError:
            pass

        try:
            reclaimed = await router.reclaim(log, topics, group, CONSUMER_NAME, min_idle_ms=RECLAIM_IDLE_MS)
            if reclaimed > 0:
                logger.info(f"Reclaimed and routed {reclaimed} pending messages")
        except Exception as e:
            logger.error(f"Error in reclaim loop: {e}", exc_info=True)


async def run():
    settings = get_settings()
    try:
        settings.validate_required()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    topics = [settings.GAMIFICATION_TOPIC, settings.ENGAGEMENT_TOPIC]
    group = settings.NOTIFICATION_GROUP

    create_tables(NotificationBase)
    session_factory = get_sessionmaker()

    router = NotificationRouter(session_factory, build_adapters(AdapterContext(settings, session_factory)))

    log = RedisStreamLog(get_redis_client(), partitions=settings.LOG_PARTITIONS, max_len=settings.LOG_MAX_LEN)
    try:
        for topic in topics:
            log.ensure_group(topic, group)
    except Exception as e:
        logger.error(f"Failed to initialize consumer groups, exiting: {e}", exc_info=True)
        sys.exit(1)

    transport = RedisPubSubTransport(settings.REDIS_URL)
    await transport.connect()
    await transport.subscribe(settings.NOTIFICATION_TOPIC, router.handle_message)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop.set)

    logger.info(
        f"Starting notification worker (topics={topics}, group={group}, consumer={CONSUMER_NAME}, "
        f"direct={settings.NOTIFICATION_TOPIC})"
    )

    reclaimer = asyncio.create_task(reclaim_loop(router, log, topics, group, stop))

    while not stop.is_set():
        try:
            count = await router.consume_log(log, topics, group, CONSUMER_NAME, count=BATCH_SIZE, block_ms=BLOCK_MS)
            if count > 0:
                logger.info(f"Routed {count} log messages", extra={"stats": router.stats.to_dict()})
        except Exception as e:
            logger.error(f"Error in consume loop: {e}", exc_info=True)
            await asyncio.sleep(1)

    await reclaimer
    await transport.close()
    await router.close()
    logger.info("Notification worker shutting down gracefully", extra={"stats": router.stats.to_dict()})


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
