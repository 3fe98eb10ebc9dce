"""
Messaging error taxonomy.

Transport-level errors also subclass the matching builtin so callers can
catch ``ConnectionError`` / ``TimeoutError`` without importing this module.
"""

from typing import Any


class MessagingError(Exception):
    """Base class for all messaging core errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class NotConnectedError(MessagingError, ConnectionError):
    """Transport is not connected at call time. Never retried by the caller's client."""


class RequestTimeoutError(MessagingError, TimeoutError):
    """No matching reply arrived before the request deadline."""


class DisconnectedError(MessagingError, ConnectionError):
    """Transport dropped (or client disconnected) while the call was outstanding."""


class RemoteRequestError(MessagingError):
    """The responder replied with an application-level failure."""


class DuplicateCorrelationError(MessagingError, ValueError):
    """A request with the same correlation id is already in flight."""


class EventValidationError(MessagingError, ValueError):
    """Message body is not JSON or violates the event schema."""


class DownstreamPublishError(MessagingError):
    """A derived event could not be emitted."""


class ConfigurationError(MessagingError):
    """Unrecoverable configuration problem, raised at startup."""


class BridgeCallError(MessagingError):
    """A direct call to the notification service failed."""
