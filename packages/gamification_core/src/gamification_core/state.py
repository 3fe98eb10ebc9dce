"""GameState - per-user gamification state."""

from dataclasses import dataclass, field

POINTS_PER_LEVEL = 100


@dataclass
class GameState:
    user_id: str
    points: int = 0
    streak: int = 0
    badges: set[str] = field(default_factory=set)

    @property
    def level(self) -> int:
        return self.points // POINTS_PER_LEVEL + 1

    def copy(self) -> "GameState":
        return GameState(self.user_id, self.points, self.streak, set(self.badges))

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "points": self.points,
            "streak": self.streak,
            "level": self.level,
            "badges": sorted(self.badges),
        }
