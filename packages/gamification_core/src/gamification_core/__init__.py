"""
Gamification Core

Folds engagement events into per-user game state (points, streak, badges)
and emits derived gamification events.

- state / transitions / badges / engine: pure state machine
- persistence: GameState rows and the processed-message ledger
- consumer: log consumer with per-message idempotency
- producer / publisher: engagement and derived event emission
"""
