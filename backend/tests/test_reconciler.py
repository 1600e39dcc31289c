"""Reconciliation tests."""

from __future__ import annotations

import threading

import pytest

from content_sync.core.errors import ReconcileError, StorageError, SyncCancelled
from content_sync.models.document import Document, build_document
from content_sync.storage.document_store import SQLiteDocumentStore
from content_sync.sync.reconciler import Reconciler


class _Clock:
    def __init__(self, start: int = 1_000) -> None:
        self.value = start

    def __call__(self) -> int:
        return self.value


class FailingStore(SQLiteDocumentStore):
    """Raises a storage error on the n-th upsert."""

    def __init__(self, db, fail_on: int) -> None:
        super().__init__(db)
        self.fail_on = fail_on
        self.writes = 0

    def upsert(self, document: Document) -> None:
        self.writes += 1
        if self.writes == self.fail_on:
            raise StorageError("disk full")
        super().upsert(document)


def _slugs(store: SQLiteDocumentStore) -> list[str]:
    return [doc.slug for doc in store.list_by_type("post")]


def test_reconcile_is_idempotent(store, make_post) -> None:
    batch = [make_post("a"), make_post("b"), make_post("c")]
    reconciler = Reconciler(store)

    first = reconciler.reconcile("post", batch)
    assert (first.created, first.updated, first.deleted) == (3, 0, 0)
    state_after_first = [(d.slug, d.fields) for d in store.list_by_type("post")]

    second = reconciler.reconcile("post", batch)
    assert (second.created, second.updated, second.deleted) == (0, 0, 0)
    assert [(d.slug, d.fields) for d in store.list_by_type("post")] == state_after_first


def test_unmanaged_documents_survive_empty_batch(store, make_post) -> None:
    authored = make_post("hand-written").with_changes(source="dashboard")
    store.upsert(authored)
    assert store.get("post", "hand-written").last_synced_at is None

    summary = Reconciler(store).reconcile("post", [])

    assert summary.deleted == 0
    assert store.get("post", "hand-written") is not None


def test_partial_batch_counting(store, make_post) -> None:
    clock = _Clock(1_000)
    reconciler = Reconciler(store, clock=clock)
    reconciler.reconcile(
        "post",
        [make_post("changed-1"), make_post("changed-2"), make_post("same"), make_post("stale")],
    )
    clock.value = 2_000

    incoming = [
        make_post("new-1"),
        make_post("new-2"),
        make_post("new-3"),
        make_post("changed-1", content="Edited."),
        make_post("changed-2", title="Another title"),
        make_post("same"),
    ]
    summary = reconciler.reconcile("post", incoming)

    assert (summary.created, summary.updated, summary.deleted) == (3, 2, 1)
    assert store.get("post", "stale") is None
    unchanged = store.get("post", "same")
    assert unchanged.last_synced_at == 2_000


def test_duplicate_slugs_last_one_wins(store, make_post) -> None:
    summary = Reconciler(store).reconcile(
        "post",
        [make_post("dup", content="first"), make_post("dup", content="second")],
    )
    assert summary.created == 1
    assert summary.skipped == 1
    assert store.get("post", "dup").content == "second"


def test_malformed_documents_are_skipped(store, make_post) -> None:
    page = build_document("page", "about", {"title": "About", "published": True})
    summary = Reconciler(store).reconcile("post", [page, make_post("ok")])
    assert summary.skipped == 1
    assert _slugs(store) == ["ok"]


def test_update_clears_embedding_only_when_text_changes(store, make_post) -> None:
    reconciler = Reconciler(store)
    reconciler.reconcile("post", [make_post("a"), make_post("b")])
    store.set_embedding("post", "a", [0.1, 0.2])
    store.set_embedding("post", "b", [0.3, 0.4])

    reconciler.reconcile(
        "post",
        [make_post("a", content="new body"), make_post("b", tags=["python"])],
    )

    assert store.get("post", "a").embedding is None
    assert store.get("post", "b").embedding == [0.3, 0.4]


def test_updating_unmanaged_document_snapshots_it_first(store, versions, make_post) -> None:
    versions.set_enabled(True)
    store.upsert(make_post("shared", content="authored in the editor").with_changes(source="dashboard"))

    summary = Reconciler(store, versions=versions).reconcile("post", [make_post("shared", content="from disk")])

    assert summary.updated == 1
    [snapshot] = versions.list_versions("post", "shared")
    assert snapshot.content == "authored in the editor"
    assert store.get("post", "shared").is_sync_managed


def test_storage_failure_aborts_with_partial_counts(db, make_post) -> None:
    store = FailingStore(db, fail_on=3)
    with pytest.raises(ReconcileError) as info:
        Reconciler(store).reconcile("post", [make_post("a"), make_post("b"), make_post("c"), make_post("d")])

    assert info.value.summary.created == 2
    assert _slugs(store) == ["a", "b"]


def test_cancellation_between_documents(store, make_post) -> None:
    cancel = threading.Event()
    seen: list[str] = []

    def emit(line: str) -> None:
        seen.append(line)
        if line.startswith("+ created"):
            cancel.set()

    with pytest.raises(SyncCancelled) as info:
        Reconciler(store).reconcile("post", [make_post("a"), make_post("b")], emit=emit, cancel=cancel)

    assert info.value.summary.created == 1
    assert _slugs(store) == ["a"]


class FailingDeleteStore(SQLiteDocumentStore):
    def __init__(self, db, fail_on: int) -> None:
        super().__init__(db)
        self.fail_on = fail_on
        self.deletes = 0

    def delete(self, entity_type: str, slug: str) -> None:
        self.deletes += 1
        if self.deletes == self.fail_on:
            raise StorageError("disk full")
        super().delete(entity_type, slug)


def test_storage_failure_while_deleting_keeps_partial_counts(db, make_post) -> None:
    store = FailingDeleteStore(db, fail_on=2)
    reconciler = Reconciler(store)
    reconciler.reconcile("post", [make_post("a"), make_post("b"), make_post("c"), make_post("d")])

    with pytest.raises(ReconcileError) as info:
        reconciler.reconcile("post", [make_post("a"), make_post("new")])

    assert (info.value.summary.created, info.value.summary.deleted) == (1, 1)
    assert _slugs(store) == ["a", "c", "d", "new"]


def test_unchanged_document_keeps_embedding_written_during_reconcile(store, make_post) -> None:
    Reconciler(store, clock=_Clock(1_000)).reconcile("post", [make_post("a")])

    def emit(line: str) -> None:
        if line.startswith("Reconciling"):
            store.set_embedding("post", "a", [0.25, 0.75])

    Reconciler(store, clock=_Clock(2_000)).reconcile("post", [make_post("a")], emit=emit)

    stored = store.get("post", "a")
    assert stored.embedding == [0.25, 0.75]
    assert stored.last_synced_at == 2_000
