"""
Delivery Adapter Base

One capability per channel: ``send(destination, message) -> DeliveryResult``.
Implementations: FCM push, Twilio SMS, dashboard feed, mock (development).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Channel(str, Enum):
    """Notification media."""

    PUSH = "push"
    SMS = "sms"
    DASHBOARD = "dashboard"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RenderedMessage:
    """Channel-independent message content."""

    title: str
    body: str
    event_type: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class DeliveryResult:
    """
    Result of one delivery attempt.

    ``unregistered`` is set when the provider reports the destination no
    longer exists (e.g. an uninstalled app's push token).
    """

    success: bool
    channel: Channel
    provider: str
    message_id: str | None = None
    error: str | None = None
    unregistered: bool = False
    raw_response: dict[str, Any] = field(default_factory=dict)


class DeliveryAdapter(ABC):
    """Abstract delivery adapter for one channel."""

    name: str = "base"

    def __init__(self, channel: Channel):
        self.channel = channel

    @abstractmethod
    async def send(self, destination: str, message: RenderedMessage) -> DeliveryResult:
        """
        Deliver a message.

        Args:
            destination: Push token, E.164 number or recipient id, per channel
            message: Rendered content

        Returns:
            DeliveryResult; provider failures are reported, not raised
        """
        ...

    async def close(self) -> None:
        """Release provider resources."""
        return None

    def _result(self, success: bool, **kwargs: Any) -> DeliveryResult:
        return DeliveryResult(success=success, channel=self.channel, provider=self.name, **kwargs)
