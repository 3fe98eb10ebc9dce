"""
Engagement Engine

Pure state machine: (GameState, Event) -> new GameState + badges earned.
No I/O; persistence and emission belong to the consumer.
"""

import logging
from dataclasses import dataclass, field

from messaging_core.contracts import Event

from gamification_core.badges import BadgeRule, award_badges
from gamification_core.state import GameState
from gamification_core.transitions import TRANSITIONS, Transition

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    state: GameState
    applied: bool
    new_badges: list[str] = field(default_factory=list)


class EngagementEngine:
    """Applies transitions and badge rules to game state."""

    def __init__(
        self,
        transitions: dict[str, Transition] | None = None,
        rules: list[BadgeRule] | None = None,
    ):
        self.transitions = TRANSITIONS if transitions is None else transitions
        self.rules = rules

    def apply(self, state: GameState, event: Event) -> TransitionResult:
        """
        Apply one event to a copy of ``state``.

        Unknown actions leave the state untouched.
        """
        action = event.transition_key
        handler = self.transitions.get(action)
        if handler is None:
            logger.info(
                f"No transition for action {action}",
                extra={"user_id": event.user_id, "event_type": event.type},
            )
            return TransitionResult(state=state.copy(), applied=False)

        after = state.copy()
        handler(after, event)
        new_badges = award_badges(state, after, self.rules)

        return TransitionResult(state=after, applied=True, new_badges=new_badges)
