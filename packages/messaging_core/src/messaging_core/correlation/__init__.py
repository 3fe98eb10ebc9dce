"""Correlated request/response over publish/subscribe."""

from messaging_core.correlation.client import (
    CorrelatedRequestClient,
    error_topic,
    reply,
    response_topic,
)
from messaging_core.correlation.pending import PendingRequest, PendingRequestTable

__all__ = [
    "CorrelatedRequestClient",
    "PendingRequest",
    "PendingRequestTable",
    "error_topic",
    "reply",
    "response_topic",
]
