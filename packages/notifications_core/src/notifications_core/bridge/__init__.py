"""Direct-Call Bridge - PublishEvent endpoint and client."""

from notifications_core.bridge.client import NotificationBridgeClient
from notifications_core.bridge.server import PUBLISH_EVENT_PATH, Ack, bridge_router, transport_intake

__all__ = [
    "Ack",
    "NotificationBridgeClient",
    "PUBLISH_EVENT_PATH",
    "bridge_router",
    "transport_intake",
]
