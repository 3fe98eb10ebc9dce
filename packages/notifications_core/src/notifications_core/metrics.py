"""Prometheus metrics for the notification service."""

from prometheus_client import Counter

notification_deliveries_total = Counter(
    "notification_deliveries_total",
    "Channel deliveries by outcome",
    ["channel", "outcome"],
)

notification_events_total = Counter(
    "notification_events_total",
    "Events received by the router, by status",
    ["status"],
)

bridge_calls_total = Counter(
    "notification_bridge_calls_total",
    "PublishEvent calls by result",
    ["result"],
)
