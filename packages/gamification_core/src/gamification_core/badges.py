"""
Badge rules.

A rule awards its badge when its predicate did not hold before a transition,
holds after it, and the user does not already have the badge. Crossing the
same milestone twice never awards twice.
"""

from dataclasses import dataclass
from typing import Callable

from gamification_core.state import GameState


@dataclass(frozen=True)
class BadgeRule:
    badge: str
    predicate: Callable[[GameState], bool]


BADGE_RULES: list[BadgeRule] = [
    BadgeRule("7-day streak", lambda s: s.streak == 7),
    BadgeRule("30-day streak", lambda s: s.streak == 30),
]


def award_badges(
    before: GameState,
    after: GameState,
    rules: list[BadgeRule] | None = None,
) -> list[str]:
    """
    Add newly earned badges to ``after``.

    Returns:
        Badges added, in rule order
    """
    awarded = []
    for rule in BADGE_RULES if rules is None else rules:
        if rule.badge in after.badges:
            continue
        if rule.predicate(after) and not rule.predicate(before):
            after.badges.add(rule.badge)
            awarded.append(rule.badge)
    return awarded
