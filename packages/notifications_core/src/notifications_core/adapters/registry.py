"""
Adapter registry.

Maps each channel to the adapters available for it, keyed by the name used
in configuration (``PUSH_ADAPTER``, ``SMS_ADAPTER``, ``DASHBOARD_ADAPTER``).
Selection happens once at startup. An unknown key or a factory that fails
(missing credentials, bad config) falls back to ``MockAdapter`` so the
router keeps running.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from basecore.settings import Settings
from notifications_core.adapters.base import Channel, DeliveryAdapter
from notifications_core.adapters.dashboard import DashboardFeedAdapter
from notifications_core.adapters.mock import MockAdapter
from notifications_core.adapters.push import FcmPushAdapter
from notifications_core.adapters.sms import TwilioSmsAdapter

logger = logging.getLogger(__name__)


@dataclass
class AdapterContext:
    """What adapter factories may draw on."""

    settings: Settings
    session_factory: Callable[[], Session] | None = None


AdapterFactory = Callable[[AdapterContext], DeliveryAdapter]


def _fcm(ctx: AdapterContext) -> DeliveryAdapter:
    return FcmPushAdapter(ctx.settings.FCM_PROJECT_ID, ctx.settings.FCM_ACCESS_TOKEN)


def _twilio(ctx: AdapterContext) -> DeliveryAdapter:
    s = ctx.settings
    return TwilioSmsAdapter(s.TWILIO_ACCOUNT_SID, s.TWILIO_AUTH_TOKEN, s.TWILIO_FROM)


def _feed(ctx: AdapterContext) -> DeliveryAdapter:
    if ctx.session_factory is None:
        raise ValueError("Dashboard feed adapter needs a database session factory")
    return DashboardFeedAdapter(ctx.session_factory)


ADAPTER_REGISTRY: dict[Channel, dict[str, AdapterFactory]] = {
    Channel.PUSH: {"mock": lambda ctx: MockAdapter(Channel.PUSH), "fcm": _fcm},
    Channel.SMS: {"mock": lambda ctx: MockAdapter(Channel.SMS), "twilio": _twilio},
    Channel.DASHBOARD: {"mock": lambda ctx: MockAdapter(Channel.DASHBOARD), "feed": _feed},
}

CHANNEL_SETTINGS = {
    Channel.PUSH: "PUSH_ADAPTER",
    Channel.SMS: "SMS_ADAPTER",
    Channel.DASHBOARD: "DASHBOARD_ADAPTER",
}


def build_adapter(channel: Channel, key: str, ctx: AdapterContext) -> DeliveryAdapter:
    """Build the adapter named ``key`` for a channel, falling back to mock."""
    key = (key or "mock").strip().lower()
    factory = ADAPTER_REGISTRY.get(channel, {}).get(key)

    if factory is None:
        logger.warning(f"Unknown {channel} adapter '{key}', falling back to mock")
        return MockAdapter(channel)

    try:
        adapter = factory(ctx)
    except Exception as e:
        logger.warning(f"Could not create {channel} adapter '{key}': {e}; falling back to mock")
        return MockAdapter(channel)

    logger.info(f"Using {adapter.name} adapter for {channel}")
    return adapter


def build_adapters(ctx: AdapterContext) -> dict[Channel, DeliveryAdapter]:
    """One adapter per channel, selected from settings."""
    return {
        channel: build_adapter(channel, getattr(ctx.settings, setting), ctx)
        for channel, setting in CHANNEL_SETTINGS.items()
    }
