"""Prometheus metrics for the messaging core."""

from prometheus_client import Counter

correlated_requests_total = Counter(
    "correlated_requests_total",
    "Correlated requests by final outcome",
    ["outcome"],
)
