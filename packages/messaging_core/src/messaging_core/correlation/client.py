"""
Correlated Request Client

Request/response over publish/subscribe. A request carries a correlation id;
the responder publishes its reply on ``<namespace>/response/.../<correlationId>``.
The client subscribes once to ``<namespace>/response/#`` and resolves the
waiting call from the trailing topic segment.

Each call settles exactly once: by its reply, by its timeout, or by a
disconnect, whichever comes first.
"""

import asyncio
import json
import logging
from typing import Any
from uuid import uuid4

from messaging_core.correlation.pending import PendingRequest, PendingRequestTable
from messaging_core.errors import (
    DisconnectedError,
    DuplicateCorrelationError,
    NotConnectedError,
    RemoteRequestError,
    RequestTimeoutError,
)
from messaging_core.metrics import correlated_requests_total
from messaging_core.transport.base import PubSubTransport
from messaging_core.transport.topics import last_segment

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5000


def response_topic(namespace: str, correlation_id: str, kind: str | None = None) -> str:
    """Topic a responder publishes a successful reply on."""
    if kind:
        return f"{namespace}/response/{kind}/{correlation_id}"
    return f"{namespace}/response/{correlation_id}"


def error_topic(namespace: str, correlation_id: str) -> str:
    """Topic a responder publishes a failure reply on."""
    return f"{namespace}/response/error/{correlation_id}"


async def reply(
    transport: PubSubTransport,
    namespace: str,
    request: dict[str, Any],
    result: dict[str, Any] | None = None,
    error: str | None = None,
    kind: str | None = None,
) -> int:
    """
    Publish the reply to a correlated request.

    Args:
        transport: Connected transport of the responder
        namespace: Response namespace the requester listens on
        request: The decoded request (must carry ``correlationId``)
        result: Reply body on success
        error: Error message; when set the reply goes to the error topic
        kind: Optional topic segment naming the request kind

    Returns:
        Number of receivers the broker handed the reply to
    """
    correlation_id = request["correlationId"]

    if error is not None:
        topic = error_topic(namespace, correlation_id)
        body: dict[str, Any] = {"success": False, "error": error}
    else:
        topic = response_topic(namespace, correlation_id, kind)
        body = dict(result or {})
        body.setdefault("success", True)

    body["correlationId"] = correlation_id
    return await transport.publish(topic, json.dumps(body))


class CorrelatedRequestClient:
    """
    Awaitable request/response calls over a pub/sub transport.

    Usage:
        client = CorrelatedRequestClient(transport, namespace="games")
        await client.start()
        games = await client.send("games/request/list", {"userId": "u1"})
    """

    def __init__(
        self,
        transport: PubSubTransport,
        namespace: str = "games",
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self.transport = transport
        self.namespace = namespace
        self.default_timeout_ms = default_timeout_ms
        self._pending = PendingRequestTable()
        self._started = False

    @property
    def response_pattern(self) -> str:
        return f"{self.namespace}/response/#"

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def start(self) -> None:
        """Connect if needed and subscribe to the response namespace (once)."""
        if self._started:
            return

        if not self.transport.is_connected:
            await self.transport.connect()

        self.transport.add_disconnect_listener(self._on_disconnect)
        await self.transport.subscribe(self.response_pattern, self._on_response)
        self._started = True
        logger.info(f"Correlated client listening on {self.response_pattern}")

    async def send(
        self,
        topic: str,
        payload: dict[str, Any],
        timeout_ms: int | None = None,
        correlation_id: str | None = None,
    ) -> Any:
        """
        Publish a request and wait for its reply.

        Args:
            topic: Request topic
            payload: Request body; the correlation id is added to it
            timeout_ms: Deadline for the reply (default: client default)
            correlation_id: Caller-chosen id (default: payload's, else generated)

        Returns:
            The decoded reply body

        Raises:
            NotConnectedError: transport not connected at call time
            DuplicateCorrelationError: the id is already in flight
            RequestTimeoutError: no reply before the deadline
            DisconnectedError: client or transport went away first
            RemoteRequestError: the responder replied with a failure
        """
        if not self.transport.is_connected:
            correlated_requests_total.labels(outcome="not_connected").inc()
            raise NotConnectedError("Request client is not connected")

        correlation_id = correlation_id or payload.get("correlationId") or uuid4().hex
        timeout_ms = self.default_timeout_ms if timeout_ms is None else timeout_ms
        body = {**payload, "correlationId": correlation_id}

        loop = asyncio.get_running_loop()
        request = PendingRequest(
            correlation_id=correlation_id,
            future=loop.create_future(),
            deadline=loop.time() + timeout_ms / 1000,
        )
        if not self._pending.insert_if_absent(request):
            raise DuplicateCorrelationError(
                f"Request {correlation_id} is already in flight",
                details={"correlation_id": correlation_id},
            )
        request.timer = loop.call_later(timeout_ms / 1000, self._expire, correlation_id, timeout_ms)

        try:
            await self.transport.publish(topic, json.dumps(body))
        except Exception:
            # Publish failure settles the call unless something else already did
            if self._pending.pop(correlation_id) is not None:
                request.cancel_timer()
                correlated_requests_total.labels(outcome="publish_error").inc()
                raise

        logger.debug(
            f"Sent request {correlation_id} to {topic}",
            extra={"correlation_id": correlation_id, "topic": topic, "timeout_ms": timeout_ms},
        )

        try:
            return await request.future
        except asyncio.CancelledError:
            if self._pending.pop(correlation_id) is not None:
                request.cancel_timer()
                correlated_requests_total.labels(outcome="cancelled").inc()
            raise

    async def disconnect(self) -> int:
        """
        Reject every outstanding call, unsubscribe and close the transport.

        Returns:
            Number of calls rejected
        """
        rejected = self._reject_all(DisconnectedError("Request client disconnecting"))
        self.transport.remove_disconnect_listener(self._on_disconnect)

        if self._started and self.transport.is_connected:
            await self.transport.unsubscribe(self.response_pattern)
        self._started = False
        await self.transport.close()

        logger.info(f"Correlated client disconnected, rejected {rejected} pending requests")
        return rejected

    async def _on_response(self, topic: str, data: str) -> None:
        try:
            body = json.loads(data)
        except (TypeError, ValueError) as e:
            logger.error(f"Malformed reply on {topic}: {e}")
            return

        correlation_id = last_segment(topic)
        request = self._pending.pop(correlation_id)
        if request is None:
            # Late reply (after timeout) or a reply for another client
            logger.debug(f"No pending request for {correlation_id}", extra={"topic": topic})
            return

        is_error_topic = "error" in topic.split("/")[:-1]
        if is_error_topic or (isinstance(body, dict) and body.get("success") is False):
            message = body.get("error") if isinstance(body, dict) else None
            request.reject(
                RemoteRequestError(message or "Request failed", details={"topic": topic, "reply": body})
            )
            correlated_requests_total.labels(outcome="remote_error").inc()
            return

        request.resolve(body)
        correlated_requests_total.labels(outcome="success").inc()

    def _expire(self, correlation_id: str, timeout_ms: int) -> None:
        request = self._pending.pop(correlation_id)
        if request is None:
            return
        request.timer = None
        request.reject(
            RequestTimeoutError(
                f"Request {correlation_id} timed out after {timeout_ms}ms",
                details={"correlation_id": correlation_id},
            )
        )
        correlated_requests_total.labels(outcome="timeout").inc()
        logger.warning(f"Request {correlation_id} timed out", extra={"timeout_ms": timeout_ms})

    def _on_disconnect(self, error: Exception | None) -> None:
        reason = f"Transport disconnected: {error}" if error else "Transport closed"
        rejected = self._reject_all(DisconnectedError(reason))
        self._started = False
        if rejected:
            logger.warning(f"{reason}; rejected {rejected} pending requests")

    def _reject_all(self, error: DisconnectedError) -> int:
        entries = self._pending.drain()
        for request in entries:
            request.reject(
                DisconnectedError(str(error), details={"correlation_id": request.correlation_id})
            )
        if entries:
            correlated_requests_total.labels(outcome="disconnected").inc(len(entries))
        return len(entries)
