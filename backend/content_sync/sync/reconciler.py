"""Slug-keyed reconciliation of an incoming batch against the stored collection."""

from __future__ import annotations

import threading
from typing import Callable, Iterable

from content_sync.core.errors import ReconcileError, StorageError, SyncCancelled
from content_sync.core.logging import get_logger
from content_sync.core.metrics import RECONCILE_CHANGES
from content_sync.models.document import EMBEDDED_FIELDS, Document
from content_sync.storage.document_store import DocumentStore
from content_sync.sync.types import SyncSummary
from content_sync.utils.time import now_ms
from content_sync.versions.store import VersionStore

logger = get_logger(__name__)

ProgressCallback = Callable[[str], None]


class Reconciler:
    """Compute and apply create/update/delete sets for one entity type at a time.

    Only ``fields`` take part in the diff. A document whose stored copy has no
    ``last_synced_at`` was authored elsewhere and is never deleted here; when
    the incoming batch overwrites one, its previous state is snapshotted first.
    """

    def __init__(
        self,
        store: DocumentStore,
        versions: VersionStore | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.versions = versions
        self.clock = clock

    def reconcile(
        self,
        entity_type: str,
        incoming: Iterable[Document],
        emit: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> SyncSummary:
        summary = SyncSummary()
        say = emit or (lambda _line: None)
        try:
            batch = self._collapse(entity_type, incoming, summary)
            try:
                existing = {doc.slug: doc for doc in self.store.list_by_type(entity_type)}
            except StorageError as exc:
                raise ReconcileError(f"could not load existing {entity_type} documents: {exc}", summary) from exc

            now = self.clock()
            say(f"Reconciling {len(batch)} incoming {entity_type} document(s) against {len(existing)} stored")

            for slug, document in batch.items():
                _check_cancel(cancel, summary)
                current = existing.get(slug)
                try:
                    if current is None:
                        self.store.upsert(
                            document.with_changes(embedding=None, last_synced_at=now, source="sync", created_at=None)
                        )
                        summary.created += 1
                        say(f"+ created {entity_type} '{slug}'")
                    elif current.fields == document.fields:
                        self.store.mark_synced(entity_type, slug, now)
                    else:
                        self._apply_update(current, document, now)
                        summary.updated += 1
                        say(f"~ updated {entity_type} '{slug}'")
                except StorageError as exc:
                    logger.error("Reconcile of %s aborted at '%s': %s", entity_type, slug, exc)
                    raise ReconcileError(f"write of {entity_type} '{slug}' failed: {exc}", summary) from exc

            for slug, current in existing.items():
                if slug in batch or not current.is_sync_managed:
                    continue
                _check_cancel(cancel, summary)
                try:
                    self.store.delete(entity_type, slug)
                except StorageError as exc:
                    logger.error("Reconcile of %s aborted deleting '%s': %s", entity_type, slug, exc)
                    raise ReconcileError(f"delete of {entity_type} '{slug}' failed: {exc}", summary) from exc
                summary.deleted += 1
                say(f"- deleted {entity_type} '{slug}'")
        finally:
            _record(entity_type, summary)

        logger.info(
            "Reconciled %s: %s created, %s updated, %s deleted, %s skipped",
            entity_type,
            summary.created,
            summary.updated,
            summary.deleted,
            summary.skipped,
        )
        return summary

    def _collapse(self, entity_type: str, incoming: Iterable[Document], summary: SyncSummary) -> dict[str, Document]:
        """Index the batch by slug; the last document declared for a slug wins."""
        batch: dict[str, Document] = {}
        for document in incoming:
            if document.entity_type != entity_type or not document.slug:
                logger.warning("Skipping malformed %s document %r", entity_type, document.slug)
                summary.skipped += 1
                continue
            if document.slug in batch:
                logger.warning("Duplicate %s slug '%s' in batch; keeping the last one", entity_type, document.slug)
                summary.skipped += 1
            batch[document.slug] = document
        return batch

    def _apply_update(self, current: Document, document: Document, now: int) -> None:
        if not current.is_sync_managed and self.versions is not None:
            self.versions.snapshot(
                current.entity_type,
                current.slug,
                content=current.content,
                title=current.title,
                fields=current.fields,
            )
        embedded_changed = any(current.fields.get(name) != document.fields.get(name) for name in EMBEDDED_FIELDS)
        self.store.upsert(
            current.with_changes(
                fields=dict(document.fields),
                embedding=None if embedded_changed else current.embedding,
                last_synced_at=now,
                source="sync",
            )
        )


def _check_cancel(cancel: threading.Event | None, summary: SyncSummary) -> None:
    if cancel is not None and cancel.is_set():
        raise SyncCancelled(summary)


def _record(entity_type: str, summary: SyncSummary) -> None:
    for operation, count in (("created", summary.created), ("updated", summary.updated), ("deleted", summary.deleted)):
        if count:
            RECONCILE_CHANGES.labels(entity_type=entity_type, operation=operation).inc(count)


__all__ = ["Reconciler", "ProgressCallback"]
