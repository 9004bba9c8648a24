"""Prometheus metrics for the synchronization core.

Metric Types:
    Counters (always increase):
        - view_fetches_total: Completed view refreshes by view and status
        - stale_fetches_discarded_total: Fetch results dropped because a newer fetch was applied
        - live_events_total: Insert notifications received by live listeners
        - mutations_total: Optimistic mutations by kind and outcome
        - store_operations_total: Remote store calls by operation, table and status

    Gauges (can go up or down):
        - active_live_channels: Currently open live channels
        - mounted_views: Currently mounted synchronized views

    Histograms (track distributions):
        - view_fetch_duration_seconds: Latency of a full view refresh
        - mutation_duration_seconds: Latency of the remote write behind a mutation

Usage:
    ```python
    from climasync.metrics import mutations_total

    mutations_total.labels(kind="reaction", outcome="applied").inc()
    ```

References:
    - Prometheus Python Client: https://github.com/prometheus/client_python
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Custom registry for explicit metric control
registry = CollectorRegistry()

# Latency buckets in seconds (10ms to the 10s request timeout)
DEFAULT_LATENCY_BUCKETS = (
    0.01,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
)


# ========== COUNTER METRICS ==========

view_fetches_total = Counter(
    "view_fetches_total",
    "Total number of view refreshes",
    labelnames=["view", "status"],
    registry=registry,
)
"""Labels: view (e.g. "community-feed"), status ("applied", "stale", "error")."""

stale_fetches_discarded_total = Counter(
    "stale_fetches_discarded_total",
    "Fetch results discarded because a newer fetch was already applied",
    labelnames=["view"],
    registry=registry,
)

live_events_total = Counter(
    "live_events_total",
    "Insert notifications received by live listeners",
    labelnames=["entity_type"],
    registry=registry,
)

mutations_total = Counter(
    "mutations_total",
    "Optimistic mutations by kind and outcome",
    labelnames=["kind", "outcome"],
    registry=registry,
)
"""Labels: kind (e.g. "reaction", "challenge"), outcome (see MutationOutcome)."""

store_operations_total = Counter(
    "store_operations_total",
    "Remote store calls",
    labelnames=["operation", "table", "status"],
    registry=registry,
)


# ========== GAUGE METRICS ==========

active_live_channels = Gauge(
    "active_live_channels",
    "Currently open live channels",
    registry=registry,
)

mounted_views = Gauge(
    "mounted_views",
    "Currently mounted synchronized views",
    registry=registry,
)


# ========== HISTOGRAM METRICS ==========

view_fetch_duration_seconds = Histogram(
    "view_fetch_duration_seconds",
    "Duration of a full view refresh in seconds",
    labelnames=["view"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=registry,
)

mutation_duration_seconds = Histogram(
    "mutation_duration_seconds",
    "Duration of the remote write behind an optimistic mutation",
    labelnames=["kind"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=registry,
)


def generate_metrics_output() -> bytes:
    """Generate Prometheus metrics output in text exposition format."""
    return generate_latest(registry)


__all__ = [
    "registry",
    "view_fetches_total",
    "stale_fetches_discarded_total",
    "live_events_total",
    "mutations_total",
    "store_operations_total",
    "active_live_channels",
    "mounted_views",
    "view_fetch_duration_seconds",
    "mutation_duration_seconds",
    "generate_metrics_output",
    "DEFAULT_LATENCY_BUCKETS",
]
