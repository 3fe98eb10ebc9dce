"""
Pending request table.

Owned by one client instance. Every operation is atomic under the table
lock, so an entry can be removed exactly once no matter which of reply,
timeout or disconnect gets there first.
"""

import asyncio
import threading
from dataclasses import dataclass, field
from typing import Any


@dataclass
class PendingRequest:
    """An outstanding call awaiting its reply."""

    correlation_id: str
    future: asyncio.Future
    deadline: float
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def resolve(self, result: Any) -> None:
        self.cancel_timer()
        if not self.future.done():
            self.future.set_result(result)

    def reject(self, error: BaseException) -> None:
        self.cancel_timer()
        if not self.future.done():
            self.future.set_exception(error)


class PendingRequestTable:
    """Correlation id -> PendingRequest, safe for concurrent use."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: dict[str, PendingRequest] = {}

    def insert_if_absent(self, request: PendingRequest) -> bool:
        """Add the request unless its correlation id is in flight. Returns True if added."""
        with self._lock:
            if request.correlation_id in self._entries:
                return False
            self._entries[request.correlation_id] = request
            return True

    def pop(self, correlation_id: str) -> PendingRequest | None:
        """Remove and return the request, or None if already settled."""
        with self._lock:
            return self._entries.pop(correlation_id, None)

    def drain(self) -> list[PendingRequest]:
        """Remove and return every outstanding request."""
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
            return entries

    def __contains__(self, correlation_id: str) -> bool:
        with self._lock:
            return correlation_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
