"""
Delivery Adapters

One adapter per notification channel.
Supports FCM push, Twilio SMS and the dashboard feed (production) and
mock (development and fallback).
"""

from notifications_core.adapters.base import Channel, DeliveryAdapter, DeliveryResult, RenderedMessage
from notifications_core.adapters.mock import MockAdapter
from notifications_core.adapters.registry import AdapterContext, build_adapter, build_adapters

__all__ = [
    "AdapterContext",
    "Channel",
    "DeliveryAdapter",
    "DeliveryResult",
    "MockAdapter",
    "RenderedMessage",
    "build_adapter",
    "build_adapters",
]
