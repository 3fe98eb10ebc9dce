"""Gamification persistence - models and repository."""

from gamification_core.persistence.models import (
    GameStateRecord,
    GamificationBase,
    ProcessedEngagementEvent,
)
from gamification_core.persistence.repo import GameStateRepository

__all__ = [
    "GameStateRecord",
    "GameStateRepository",
    "GamificationBase",
    "ProcessedEngagementEvent",
]
