"""
Gamification Database Models

Tables owned by the gamification service:
- gamification_game_states: one row per user (points, streak, badges)
- gamification_processed_events: ledger of engagement messages already applied
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.orm import declarative_base

GamificationBase = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameStateRecord(GamificationBase):
    """Persisted GameState. Created on a user's first event, never deleted."""

    __tablename__ = "gamification_game_states"

    user_id = Column(String(128), primary_key=True)
    points = Column(Integer, nullable=False, default=0)
    streak = Column(Integer, nullable=False, default=0)
    badges = Column(JSON, nullable=False, default=list)  # sorted list of badge names
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class ProcessedEngagementEvent(GamificationBase):
    """
    Idempotency ledger.

    ``key`` is the producer's eventId, or the log record id when the producer
    sent none. Written in the same transaction as the GameState change.
    """

    __tablename__ = "gamification_processed_events"

    key = Column(String(255), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    event_type = Column(String(64), nullable=False)
    record_id = Column(String(255), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    result = Column(JSON, nullable=True)
