"""Prometheus instrumentation for sync runs, reconciliation and backfill."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

SYNC_RUNS = Counter(
    "csync_runs_total",
    "Sync sessions by step and terminal status",
    labelnames=("step", "status"),
    registry=REGISTRY,
)

SYNC_DURATION = Histogram(
    "csync_run_duration_seconds",
    "Wall time of sync sessions",
    labelnames=("step",),
    registry=REGISTRY,
)

RECONCILE_CHANGES = Counter(
    "csync_reconcile_changes_total",
    "Documents created, updated or deleted by reconciliation",
    labelnames=("entity_type", "operation"),
    registry=REGISTRY,
)

EMBEDDINGS = Counter(
    "csync_embeddings_total",
    "Embedding attempts by outcome",
    labelnames=("entity_type", "outcome"),
    registry=REGISTRY,
)

SNAPSHOTS_PURGED = Counter(
    "csync_snapshots_purged_total",
    "Expired version snapshots removed",
    registry=REGISTRY,
)

RUNNER_BUSY = Gauge(
    "csync_runner_busy",
    "1 while a sync session is running",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "SYNC_RUNS",
    "SYNC_DURATION",
    "RECONCILE_CHANGES",
    "EMBEDDINGS",
    "SNAPSHOTS_PURGED",
    "RUNNER_BUSY",
    "metrics_response",
]
