"""Prometheus metrics for the gamification service."""

from prometheus_client import Counter

engagement_messages_total = Counter(
    "gamification_messages_total",
    "Engagement log messages by processing status",
    ["status"],
)

badges_awarded_total = Counter(
    "gamification_badges_awarded_total",
    "Badges awarded",
    ["badge"],
)

downstream_publish_errors_total = Counter(
    "gamification_downstream_publish_errors_total",
    "Derived events that could not be emitted",
    ["event_type"],
)
