"""Direct-Call Bridge client used by producers."""

import logging

import httpx
from pydantic import ValidationError

from messaging_core.contracts import Event
from messaging_core.errors import BridgeCallError

from notifications_core.bridge.server import PUBLISH_EVENT_PATH, Ack

logger = logging.getLogger(__name__)


class NotificationBridgeClient:
    """
    Blocking client for ``PublishEvent``.

    Args:
        base_url: Notification API base URL
        timeout: Request timeout in seconds
        client: Preconfigured httpx client (tests, connection reuse)
    """

    def __init__(self, base_url: str, timeout: float = 5.0, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout)

    def publish_event(self, event: Event) -> Ack:
        """
        Send an event and wait for the acknowledgement of receipt.

        Raises:
            BridgeCallError: transport failure, non-2xx response or ``ok=false``
        """
        url = f"{self.base_url}{PUBLISH_EVENT_PATH}"
        try:
            response = self.client.post(url, json=event.to_wire())
        except httpx.HTTPError as e:
            logger.error(f"PublishEvent call failed: {e}")
            raise BridgeCallError(f"PublishEvent call failed: {e}", code="transport") from e

        if response.status_code >= 400:
            raise BridgeCallError(
                f"PublishEvent returned HTTP {response.status_code}",
                code="http",
                details={"status": response.status_code, "body": response.text[:500]},
            )

        try:
            ack = Ack.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise BridgeCallError(f"Malformed PublishEvent reply: {e}", code="protocol") from e

        if not ack.ok:
            raise BridgeCallError(ack.error or "PublishEvent refused", code="refused")
        return ack

    def close(self) -> None:
        self.client.close()
