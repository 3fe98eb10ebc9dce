"""
Repository helpers for gamification tables.

Writes are flushed, never committed; the consumer owns the transaction.
"""

from typing import Any

from sqlalchemy.orm import Session

from gamification_core.persistence.models import GameStateRecord, ProcessedEngagementEvent
from gamification_core.state import GameState


class GameStateRepository:
    """Repository for game state and the processed-message ledger."""

    def __init__(self, db: Session):
        self.db = db

    # --- Game state ---

    def get(self, user_id: str) -> GameState | None:
        record = self.db.get(GameStateRecord, user_id)
        if record is None:
            return None
        return GameState(
            user_id=record.user_id,
            points=record.points,
            streak=record.streak,
            badges=set(record.badges or []),
        )

    def load_or_create(self, user_id: str) -> GameState:
        """Load a user's state; a user without a row starts from zero."""
        return self.get(user_id) or GameState(user_id=user_id)

    def save(self, state: GameState) -> GameStateRecord:
        """Upsert the state row (single write per message)."""
        record = self.db.get(GameStateRecord, state.user_id)
        if record is None:
            record = GameStateRecord(user_id=state.user_id)
            self.db.add(record)

        record.points = state.points
        record.streak = state.streak
        record.badges = sorted(state.badges)
        self.db.flush()
        return record

    def list_states(self, limit: int = 100) -> list[GameState]:
        records = (
            self.db.query(GameStateRecord)
            .order_by(GameStateRecord.points.desc())
            .limit(limit)
            .all()
        )
        return [
            GameState(r.user_id, r.points, r.streak, set(r.badges or []))
            for r in records
        ]

    # --- Processed ledger ---

    def is_processed(self, key: str) -> bool:
        return self.db.get(ProcessedEngagementEvent, key) is not None

    def mark_processed(
        self,
        key: str,
        user_id: str,
        event_type: str,
        record_id: str | None = None,
        result: dict[str, Any] | None = None,
    ) -> None:
        """
        Add the ledger row. A concurrent writer with the same key makes the
        commit fail with IntegrityError.
        """
        self.db.add(
            ProcessedEngagementEvent(
                key=key,
                user_id=user_id,
                event_type=event_type,
                record_id=record_id,
                result=result,
            )
        )
        self.db.flush()
