"""
Redis Pub/Sub Transport

PUBLISH / PSUBSCRIBE over a dedicated asyncio connection. One reader task
per transport pulls messages and dispatches them to handlers.

PUBLISH returns the number of receiving clients; that count is the broker's
acknowledgement to the publisher.
"""

import asyncio
import logging

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from basecore.redis import create_async_redis_client
from messaging_core.errors import NotConnectedError
from messaging_core.transport.base import MessageHandler, PubSubTransport
from messaging_core.transport.topics import to_redis_pattern

logger = logging.getLogger(__name__)


class RedisPubSubTransport(PubSubTransport):
    """Pub/sub transport backed by Redis."""

    def __init__(
        self,
        url: str | None = None,
        client: aioredis.Redis | None = None,
        poll_timeout: float = 1.0,
    ):
        super().__init__()
        self.url = url
        self.poll_timeout = poll_timeout
        self._client = client
        self._pubsub = None
        self._reader: asyncio.Task | None = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        if self._connected:
            return

        if self._client is None:
            self._client = create_async_redis_client(self.url)

        try:
            await self._client.ping()
        except RedisError as e:
            raise NotConnectedError(f"Could not connect to Redis: {e}") from e

        self._pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        self._connected = True
        logger.info("Redis pub/sub transport connected")

    async def close(self) -> None:
        was_connected = self._connected
        self._connected = False
        self._handlers.clear()

        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None

        if self._pubsub is not None:
            await self._pubsub.aclose()
            self._pubsub = None
        if self._client is not None:
            await self._client.aclose()
            self._client = None

        if was_connected:
            logger.info("Redis pub/sub transport closed")
            self._notify_disconnect(None)

    async def publish(self, topic: str, data: str) -> int:
        if not self._connected:
            raise NotConnectedError("Transport is not connected")

        try:
            receivers = await self._client.publish(topic, data)
        except RedisConnectionError as e:
            self._connection_lost(e)
            raise NotConnectedError(f"Lost connection while publishing: {e}") from e

        logger.debug(
            f"Published to {topic}",
            extra={"topic": topic, "receivers": receivers},
        )
        return receivers

    async def subscribe(self, pattern: str, handler: MessageHandler) -> None:
        if not self._connected:
            raise NotConnectedError("Transport is not connected")

        self._handlers[pattern] = handler
        await self._pubsub.psubscribe(to_redis_pattern(pattern))
        logger.info(f"Subscribed to {pattern}")

        # PubSub has no connection until the first subscription
        if self._reader is None:
            self._reader = asyncio.create_task(self._read_loop())

    async def unsubscribe(self, pattern: str) -> None:
        self._handlers.pop(pattern, None)
        if self._connected and self._pubsub is not None:
            await self._pubsub.punsubscribe(to_redis_pattern(pattern))
            logger.info(f"Unsubscribed from {pattern}")

    async def _read_loop(self) -> None:
        while self._connected:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=self.poll_timeout,
                )
            except (RedisConnectionError, OSError) as e:
                self._connection_lost(e)
                return

            if message is None:
                continue

            await self._dispatch(message["channel"], message["data"])

    def _connection_lost(self, error: Exception) -> None:
        if not self._connected:
            return
        self._connected = False
        logger.error(f"Lost connection to Redis pub/sub: {error}")
        self._notify_disconnect(error)
