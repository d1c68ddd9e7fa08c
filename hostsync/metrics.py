"""Prometheus metrics for hostsync.

- Store fetches (count by outcome, duration, entities held)
- Host status polls (count by outcome, hosts with a known status)

The /metrics endpoint exposes these in Prometheus format.
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from hostsync.enums import UpdateOutcome

# --- Entity store metrics ---

fetch_total = Counter(
    "hostsync_fetch_total",
    "Entity store fetches by outcome",
    ["collection", "outcome"],
)

fetch_duration = Histogram(
    "hostsync_fetch_duration_seconds",
    "Entity store fetch duration in seconds",
    ["collection"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, float("inf")),
)

entities = Gauge(
    "hostsync_entities",
    "Entities currently held by a store",
    ["collection"],
)

# --- Status poller metrics ---

status_polls_total = Counter(
    "hostsync_status_polls_total",
    "Host status polls by outcome",
    ["outcome"],
)

host_statuses = Gauge(
    "hostsync_host_statuses",
    "Hosts with a known live status",
)


def record_fetch(collection: str, outcome: UpdateOutcome, duration_seconds: float) -> None:
    """Record one store fetch."""
    fetch_total.labels(collection=collection, outcome=outcome.value).inc()
    fetch_duration.labels(collection=collection).observe(duration_seconds)


def record_entities(collection: str, count: int) -> None:
    entities.labels(collection=collection).set(count)


def record_status_poll(outcome: UpdateOutcome, known: int | None = None) -> None:
    """Record one status poll; ``known`` is the size of the new status map."""
    status_polls_total.labels(outcome=outcome.value).inc()
    if known is not None:
        host_statuses.set(known)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics output as (body, content_type)."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
