"""
Transition registry.

Maps an engagement action (``event.action``, falling back to ``event.type``)
to a function that mutates a GameState in place. New actions are added with
``@transition("name")`` without touching existing ones.
"""

import logging
from typing import Any, Callable

from messaging_core.contracts import Event, EventType

from gamification_core.state import GameState

logger = logging.getLogger(__name__)

Transition = Callable[[GameState, Event], None]

TRANSITIONS: dict[str, Transition] = {}

CHECKIN_POINTS = 10
DEFAULT_ACTIVITY_POINTS = 5


def transition(*actions: str) -> Callable[[Transition], Transition]:
    """Register a transition for one or more actions."""

    def register(func: Transition) -> Transition:
        for action in actions:
            TRANSITIONS[action] = func
        return func

    return register


def get_transition(action: str) -> Transition | None:
    return TRANSITIONS.get(action)


def _payload_int(event: Event, name: str, default: int = 0) -> int:
    payload: dict[str, Any] = event.payload or {}
    value = payload.get(name, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(
            f"Ignoring non-numeric {name} on {event.type}",
            extra={"user_id": event.user_id, "value": value},
        )
        return default


@transition(EventType.DAILY_CHECKIN.value)
def daily_checkin(state: GameState, event: Event) -> None:
    state.points += CHECKIN_POINTS
    state.streak += 1


@transition(EventType.ACTIVITY_COMPLETED.value)
def activity_completed(state: GameState, event: Event) -> None:
    state.points += _payload_int(event, "awardedPoints", DEFAULT_ACTIVITY_POINTS)


@transition(EventType.TRIVIA_COMPLETED.value, EventType.MEMORY_QUIZ_COMPLETED.value)
def game_completed(state: GameState, event: Event) -> None:
    state.points += max(_payload_int(event, "score"), 0)
