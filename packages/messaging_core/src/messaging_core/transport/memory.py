"""
In-Memory Pub/Sub Transport

Development transport that routes messages between transports sharing one
InMemoryBroker inside a single process. No network, no persistence.
Useful for local development and testing.

Delivery is asynchronous like a real broker: ``publish`` schedules handler
calls on the running event loop and returns before any handler runs.
"""

import asyncio
import logging

from messaging_core.errors import DisconnectedError, NotConnectedError
from messaging_core.transport.base import MessageHandler, PubSubTransport
from messaging_core.transport.topics import topic_matches

logger = logging.getLogger(__name__)


class InMemoryBroker:
    """Fan-out hub shared by in-memory transports."""

    def __init__(self):
        self._transports: list["InMemoryTransport"] = []
        self.published: list[tuple[str, str]] = []

    def attach(self, transport: "InMemoryTransport") -> None:
        if transport not in self._transports:
            self._transports.append(transport)

    def detach(self, transport: "InMemoryTransport") -> None:
        if transport in self._transports:
            self._transports.remove(transport)

    def publish(self, topic: str, data: str) -> int:
        self.published.append((topic, data))
        receivers = 0
        for transport in list(self._transports):
            if transport.accepts(topic):
                transport._enqueue(topic, data)
                receivers += 1
        return receivers


class InMemoryTransport(PubSubTransport):
    """Transport attached to an InMemoryBroker."""

    def __init__(self, broker: InMemoryBroker | None = None):
        super().__init__()
        self.broker = broker or InMemoryBroker()
        self._connected = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        if self._connected:
            return
        self._connected = True
        self.broker.attach(self)
        logger.debug("[MEMORY] Transport connected")

    async def close(self) -> None:
        if not self._connected:
            return
        self._teardown()
        logger.debug("[MEMORY] Transport closed")
        self._notify_disconnect(None)

    def drop_connection(self) -> None:
        """Simulate the broker dropping this connection."""
        if not self._connected:
            return
        self._teardown()
        logger.warning("[MEMORY] Connection dropped")
        self._notify_disconnect(DisconnectedError("Broker connection dropped"))

    async def publish(self, topic: str, data: str) -> int:
        if not self._connected:
            raise NotConnectedError("Transport is not connected")
        return self.broker.publish(topic, data)

    async def subscribe(self, pattern: str, handler: MessageHandler) -> None:
        if not self._connected:
            raise NotConnectedError("Transport is not connected")
        self._handlers[pattern] = handler

    async def unsubscribe(self, pattern: str) -> None:
        self._handlers.pop(pattern, None)

    def accepts(self, topic: str) -> bool:
        return self._connected and any(topic_matches(p, topic) for p in self._handlers)

    async def drain(self) -> None:
        """Wait until every scheduled delivery has run."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _enqueue(self, topic: str, data: str) -> None:
        task = asyncio.get_running_loop().create_task(self._dispatch(topic, data))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _teardown(self) -> None:
        self._connected = False
        self._handlers.clear()
        self.broker.detach(self)
