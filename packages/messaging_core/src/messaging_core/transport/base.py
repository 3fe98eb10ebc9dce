"""
Pub/Sub Transport Base

Abstract interface for topic-based publish/subscribe brokers.
Implementations: Redis (production), in-memory (development and tests).
"""

import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from messaging_core.transport.topics import topic_matches

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, str], Awaitable[None]]
DisconnectListener = Callable[[Exception | None], None]


class PubSubTransport(ABC):
    """
    Abstract publish/subscribe transport.

    Handlers are coroutines receiving ``(topic, data)``. A handler that raises
    is logged and never stops delivery to other handlers or later messages.
    """

    def __init__(self):
        self._handlers: dict[str, MessageHandler] = {}
        self._disconnect_listeners: list[DisconnectListener] = []

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection to the broker. No-op when already connected."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection and drop all subscriptions."""
        ...

    @abstractmethod
    async def publish(self, topic: str, data: str) -> int:
        """
        Publish a message.

        Returns:
            Number of subscribers the broker handed the message to

        Raises:
            NotConnectedError: if the transport is not connected
        """
        ...

    @abstractmethod
    async def subscribe(self, pattern: str, handler: MessageHandler) -> None:
        """Subscribe a handler to a topic pattern (``+``/``#`` wildcards)."""
        ...

    @abstractmethod
    async def unsubscribe(self, pattern: str) -> None:
        ...

    def add_disconnect_listener(self, listener: DisconnectListener) -> None:
        """Register a callback run when the connection is lost or closed."""
        self._disconnect_listeners.append(listener)

    def remove_disconnect_listener(self, listener: DisconnectListener) -> None:
        if listener in self._disconnect_listeners:
            self._disconnect_listeners.remove(listener)

    def _notify_disconnect(self, error: Exception | None) -> None:
        for listener in list(self._disconnect_listeners):
            try:
                listener(error)
            except Exception as e:
                logger.error(f"Disconnect listener failed: {e}", exc_info=True)

    async def _dispatch(self, topic: str, data: str) -> None:
        for pattern, handler in list(self._handlers.items()):
            if not topic_matches(pattern, topic):
                continue
            try:
                await handler(topic, data)
            except Exception as e:
                logger.error(
                    f"Handler for {pattern} failed: {e}",
                    extra={"topic": topic, "pattern": pattern},
                    exc_info=True,
                )

    async def __aenter__(self) -> "PubSubTransport":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
