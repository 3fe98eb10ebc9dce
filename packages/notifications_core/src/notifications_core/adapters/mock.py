"""
Mock Delivery Adapter

Development adapter that logs deliveries without calling any provider.
Also the fallback for a missing or misconfigured adapter.
"""

import logging
from uuid import uuid4

from notifications_core.adapters.base import Channel, DeliveryAdapter, DeliveryResult, RenderedMessage

logger = logging.getLogger(__name__)


class MockAdapter(DeliveryAdapter):
    """Records every delivery in ``sent``."""

    name = "mock"

    def __init__(self, channel: Channel):
        super().__init__(channel)
        self.sent: list[tuple[str, RenderedMessage]] = []

    async def send(self, destination: str, message: RenderedMessage) -> DeliveryResult:
        message_id = f"mock_{uuid4().hex[:16]}"
        self.sent.append((destination, message))

        logger.info(
            f"[MOCK] {self.channel} to {destination}: {message.title}",
            extra={"channel": self.channel.value, "message_id": message_id},
        )

        return self._result(True, message_id=message_id)
