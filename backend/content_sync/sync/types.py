"""Counters and status values shared across sync steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class SyncSummary:
    """Aggregated change counts for one reconcile call or a whole run."""

    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    processed: int = 0

    def merge(self, other: "SyncSummary") -> "SyncSummary":
        self.created += other.created
        self.updated += other.updated
        self.deleted += other.deleted
        self.skipped += other.skipped
        self.processed += other.processed
        return self

    def to_dict(self) -> dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "skipped": self.skipped,
            "processed": self.processed,
        }


@dataclass(slots=True)
class BackfillResult:
    """Outcome of one bounded backfill invocation."""

    entity_type: str
    processed: int = 0
    failed: int = 0
    failed_slugs: list[str] = field(default_factory=list)


__all__ = ["RunStatus", "SyncSummary", "BackfillResult"]
