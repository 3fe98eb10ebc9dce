"""
Dashboard Feed Adapter

Persists a NotificationRecord per recipient for the caregiver dashboard and
keeps a bounded buffer of recent entries for live views.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Callable

from sqlalchemy.orm import Session

from notifications_core.adapters.base import Channel, DeliveryAdapter, DeliveryResult, RenderedMessage
from notifications_core.persistence.repo import RecipientDirectory

logger = logging.getLogger(__name__)

RECENT_LIMIT = 200


class DashboardFeedAdapter(DeliveryAdapter):
    """Writes dashboard feed entries."""

    name = "feed"

    def __init__(self, session_factory: Callable[[], Session], recent_limit: int = RECENT_LIMIT):
        super().__init__(Channel.DASHBOARD)
        self.session_factory = session_factory
        self._recent: deque[dict[str, Any]] = deque(maxlen=recent_limit)

    def recent(self) -> list[dict[str, Any]]:
        """Newest first."""
        return list(self._recent)

    def _store(self, destination: str, message: RenderedMessage) -> int:
        db = self.session_factory()
        try:
            record = RecipientDirectory(db).record_notification(
                recipient_id=destination,
                event_type=message.event_type,
                title=message.title,
                body=message.body,
                payload=message.data,
            )
            record_id = record.id
            db.commit()
            return record_id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def send(self, destination: str, message: RenderedMessage) -> DeliveryResult:
        try:
            # Blocking database write, kept off the event loop
            record_id = await asyncio.to_thread(self._store, destination, message)
        except Exception as e:
            logger.error(f"Failed to store feed entry for {destination}: {e}", exc_info=True)
            return self._result(False, error=str(e))

        self._recent.appendleft({
            "id": record_id,
            "recipientId": destination,
            "type": message.event_type,
            "title": message.title,
            "body": message.body,
        })
        return self._result(True, message_id=record_id)
