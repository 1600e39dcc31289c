"""Reconciliation, embedding backfill and the streamed session runner."""

from .types import BackfillResult, RunStatus, SyncSummary
from .reconciler import Reconciler
from .backfill import EmbeddingBackfill
from .pipeline import StepContext, SyncPipeline
from .runner import SyncRunner, SyncSession, parse_status_line

__all__ = [
    "BackfillResult",
    "RunStatus",
    "SyncSummary",
    "Reconciler",
    "EmbeddingBackfill",
    "StepContext",
    "SyncPipeline",
    "SyncRunner",
    "SyncSession",
    "parse_status_line",
]
