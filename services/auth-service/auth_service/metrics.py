"""Prometheus metrics for authentication outcomes."""

from __future__ import annotations

from prometheus_client import Counter

AUTH_REQUESTS = Counter(
    "auth_requests_total",
    "Authentication requests by operation and outcome",
    labelnames=["operation", "outcome"],
)


def record_outcome(operation: str, outcome: str) -> None:
    """Count one request; ``outcome`` is ``success`` or an error reason."""
    AUTH_REQUESTS.labels(operation=operation, outcome=outcome).inc()
