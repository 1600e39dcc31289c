"""Exception hierarchy shared by the sync engine, editor and HTTP layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from content_sync.sync.types import SyncSummary


class ContentSyncError(Exception):
    """Base class for all content-sync errors."""


class StorageError(ContentSyncError):
    """The storage adapter failed to read or write."""


class DocumentValidationError(ContentSyncError):
    """A document does not satisfy its entity schema."""


class DocumentNotFoundError(ContentSyncError):
    def __init__(self, entity_type: str, slug: str) -> None:
        super().__init__(f"{entity_type} '{slug}' not found")
        self.entity_type = entity_type
        self.slug = slug


class SlugConflictError(ContentSyncError):
    def __init__(self, entity_type: str, slug: str) -> None:
        super().__init__(f"{entity_type} with slug '{slug}' already exists")
        self.entity_type = entity_type
        self.slug = slug


class ReconcileError(ContentSyncError):
    """Reconciliation stopped part-way; ``summary`` holds what was applied."""

    def __init__(self, message: str, summary: "SyncSummary") -> None:
        super().__init__(message)
        self.summary = summary


class SyncCancelled(ContentSyncError):
    """A cancellation token was observed between units of work."""

    def __init__(self, summary: "SyncSummary") -> None:
        super().__init__("sync cancelled")
        self.summary = summary


class ProviderError(ContentSyncError):
    """Embedding provider failure (quota, timeout, invalid input)."""


class RunnerBusyError(ContentSyncError):
    def __init__(self, active_step: str | None = None) -> None:
        super().__init__("A sync command is already running")
        self.active_step = active_step


class UnknownStepError(ContentSyncError):
    def __init__(self, step_name: str) -> None:
        super().__init__(f"Unknown sync command: {step_name}")
        self.step_name = step_name


__all__ = [
    "ContentSyncError",
    "StorageError",
    "DocumentValidationError",
    "DocumentNotFoundError",
    "SlugConflictError",
    "ReconcileError",
    "SyncCancelled",
    "ProviderError",
    "RunnerBusyError",
    "UnknownStepError",
]
