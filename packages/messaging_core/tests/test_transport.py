"""
Tests for the in-memory pub/sub transport.
"""

import pytest

from messaging_core.errors import DisconnectedError, NotConnectedError
from messaging_core.transport import InMemoryTransport


class TestInMemoryTransport:
    """Tests for publish/subscribe delivery."""

    @pytest.mark.asyncio
    async def test_publish_returns_receiver_count(self, broker):
        publisher = InMemoryTransport(broker)
        subscriber = InMemoryTransport(broker)
        await publisher.connect()
        await subscriber.connect()
        received = []

        async def handler(topic, data):
            received.append((topic, data))

        await subscriber.subscribe("notification/#", handler)

        assert await publisher.publish("notification/events", "hello") == 1
        assert await publisher.publish("other/topic", "ignored") == 0
        await subscriber.drain()

        assert received == [("notification/events", "hello")]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_delivery(self, broker):
        transport = InMemoryTransport(broker)
        await transport.connect()
        received = []

        async def broken(topic, data):
            raise RuntimeError("boom")

        async def healthy(topic, data):
            received.append(data)

        await transport.subscribe("a/+", broken)
        await transport.subscribe("a/#", healthy)
        await transport.publish("a/b", "first")
        await transport.publish("a/b", "second")
        await transport.drain()

        assert received == ["first", "second"]

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self, broker):
        transport = InMemoryTransport(broker)
        await transport.connect()
        received = []

        async def handler(topic, data):
            received.append(data)

        await transport.subscribe("a/b", handler)
        await transport.unsubscribe("a/b")

        assert await transport.publish("a/b", "x") == 0
        await transport.drain()
        assert received == []

    @pytest.mark.asyncio
    async def test_publish_when_not_connected(self, broker):
        transport = InMemoryTransport(broker)

        with pytest.raises(NotConnectedError):
            await transport.publish("a/b", "x")

    @pytest.mark.asyncio
    async def test_drop_connection_notifies_listeners(self, broker):
        transport = InMemoryTransport(broker)
        await transport.connect()
        errors = []
        transport.add_disconnect_listener(errors.append)

        transport.drop_connection()

        assert transport.is_connected is False
        assert len(errors) == 1
        assert isinstance(errors[0], DisconnectedError)

    @pytest.mark.asyncio
    async def test_close_notifies_without_error(self, broker):
        errors = []
        async with InMemoryTransport(broker) as transport:
            transport.add_disconnect_listener(errors.append)

        assert errors == [None]
