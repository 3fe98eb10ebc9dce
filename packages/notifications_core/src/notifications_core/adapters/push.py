"""
FCM Push Adapter

Sends push notifications through the Firebase Cloud Messaging HTTP v1 API.
The OAuth access token is supplied by configuration.
"""

import json
import logging
from typing import Any

import httpx

from notifications_core.adapters.base import Channel, DeliveryAdapter, DeliveryResult, RenderedMessage

logger = logging.getLogger(__name__)

FCM_BASE_URL = "https://fcm.googleapis.com/v1"

# FCM error statuses meaning the token is gone for good
UNREGISTERED_STATUSES = {"UNREGISTERED", "NOT_FOUND"}


class FcmPushAdapter(DeliveryAdapter):
    """FCM HTTP v1 push adapter."""

    name = "fcm"

    def __init__(
        self,
        project_id: str,
        access_token: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(Channel.PUSH)
        if not project_id or not access_token:
            raise ValueError("FCM project id and access token are required")
        self.project_id = project_id
        self.access_token = access_token
        self.timeout = timeout
        self._client = client

    @property
    def send_url(self) -> str:
        return f"{FCM_BASE_URL}/projects/{self.project_id}/messages:send"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def send(self, destination: str, message: RenderedMessage) -> DeliveryResult:
        body: dict[str, Any] = {
            "message": {
                "token": destination,
                "notification": {"title": message.title, "body": message.body},
                # FCM data values must be strings
                "data": {k: v if isinstance(v, str) else json.dumps(v) for k, v in message.data.items()},
            }
        }

        client = await self._get_client()
        try:
            response = await client.post(
                self.send_url,
                headers={"Authorization": f"Bearer {self.access_token}"},
                json=body,
            )
        except httpx.RequestError as e:
            logger.error(f"FCM request failed: {e}")
            return self._result(False, error=f"HTTP request failed: {e}")

        try:
            response_data = response.json()
        except ValueError:
            response_data = {"raw": response.text}

        if response.status_code >= 400:
            error = response_data.get("error", {}) if isinstance(response_data, dict) else {}
            status = error.get("status", "")
            details = error.get("details") or []
            codes = {status} | {d.get("errorCode", "") for d in details if isinstance(d, dict)}
            unregistered = response.status_code == 404 or bool(codes & UNREGISTERED_STATUSES)

            logger.warning(
                f"FCM rejected push: {error.get('message', response.status_code)}",
                extra={"status_code": response.status_code, "unregistered": unregistered},
            )
            return self._result(
                False,
                error=error.get("message") or f"HTTP {response.status_code}",
                unregistered=unregistered,
                raw_response=response_data if isinstance(response_data, dict) else {},
            )

        return self._result(True, message_id=response_data.get("name"), raw_response=response_data)
