"""Named pipeline steps the session runner can execute."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable

from content_sync.core.errors import ReconcileError, SyncCancelled
from content_sync.core.logging import get_logger
from content_sync.ingest.loaders import FrontMatterSource
from content_sync.models.document import ENTITY_TYPES, PAGE, POST
from content_sync.sync.backfill import EmbeddingBackfill
from content_sync.sync.reconciler import Reconciler
from content_sync.sync.types import SyncSummary
from content_sync.versions.store import VersionStore

logger = get_logger(__name__)


@dataclass(slots=True)
class StepContext:
    """What a running step gets: an output sink, a cancel token and shared counters."""

    emit: Callable[[str], None]
    cancel: threading.Event = field(default_factory=threading.Event)
    summary: SyncSummary = field(default_factory=SyncSummary)

    def check_cancel(self) -> None:
        if self.cancel.is_set():
            raise SyncCancelled(self.summary)


Step = Callable[[StepContext], None]


class SyncPipeline:
    """Wires the front-matter source, reconciler, backfill and version store into steps."""

    def __init__(
        self,
        source: FrontMatterSource,
        reconciler: Reconciler,
        backfill: EmbeddingBackfill,
        versions: VersionStore,
    ) -> None:
        self.source = source
        self.reconciler = reconciler
        self.backfill = backfill
        self.versions = versions

    def steps(self) -> dict[str, Step]:
        return {
            "sync:posts": lambda ctx: self.sync_entity(POST, ctx),
            "sync:pages": lambda ctx: self.sync_entity(PAGE, ctx),
            "sync:all": self.sync_all,
            "embeddings:backfill": self.backfill_embeddings,
            "versions:purge": self.purge_versions,
        }

    def sync_entity(self, entity_type: str, ctx: StepContext) -> None:
        ctx.check_cancel()
        loaded = self.source.load(entity_type)
        ctx.emit(f"Loaded {len(loaded.documents)} {entity_type} file(s) from {self.source.directory_for(entity_type)}")
        for path, reason in loaded.rejected:
            ctx.emit(f"! rejected {path.name}: {reason}")
        ctx.summary.skipped += len(loaded.rejected)
        try:
            result = self.reconciler.reconcile(entity_type, loaded.documents, emit=ctx.emit, cancel=ctx.cancel)
        except (ReconcileError, SyncCancelled) as exc:
            ctx.summary.merge(exc.summary)
            raise
        ctx.summary.merge(result)
        ctx.emit(
            f"{entity_type}: {result.created} created, {result.updated} updated, "
            f"{result.deleted} deleted, {result.skipped} skipped"
        )

    def sync_all(self, ctx: StepContext) -> None:
        for entity_type in ENTITY_TYPES:
            self.sync_entity(entity_type, ctx)
        self.backfill_embeddings(ctx)

    def backfill_embeddings(self, ctx: StepContext) -> None:
        if not self.backfill.enabled:
            ctx.emit("Embedding provider not configured, skipping embedding generation")
            return
        for entity_type in ENTITY_TYPES:
            try:
                result = self.backfill.backfill_until_done(entity_type, emit=ctx.emit, cancel=ctx.cancel)
            except SyncCancelled as exc:
                ctx.summary.merge(exc.summary)
                raise
            ctx.summary.processed += result.processed
            ctx.emit(f"{entity_type}: {result.processed} embedding(s) generated, {result.failed} failed")

    def purge_versions(self, ctx: StepContext) -> None:
        ctx.check_cancel()
        purged = self.versions.purge()
        ctx.summary.processed += purged
        ctx.emit(f"Purged {purged} expired version snapshot(s)")


__all__ = ["SyncPipeline", "StepContext", "Step"]
