"""Embedding backfill tests."""

from __future__ import annotations

import math
import threading

import pytest

from content_sync.core.errors import DocumentNotFoundError, ProviderError
from content_sync.sync.backfill import EmbeddingBackfill
from content_sync.sync.reconciler import Reconciler


class CountingProvider:
    name = "counting"
    supports_batching = False

    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.fail_for = fail_for or set()
        self.calls = 0
        self._lock = threading.Lock()

    def embed(self, text: str) -> list[float]:
        with self._lock:
            self.calls += 1
        if any(marker in text for marker in self.fail_for):
            raise ProviderError("quota exceeded")
        return [float(len(text)), 1.0, 0.5]


class BatchingProvider(CountingProvider):
    supports_batching = True

    def __init__(self, fail_batch: bool = False) -> None:
        super().__init__()
        self.fail_batch = fail_batch
        self.batch_calls = 0

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls += 1
        if self.fail_batch:
            raise ProviderError("timeout")
        return [[1.0, 2.0] for _ in texts]


def _seed(store, make_post, count: int, **extra) -> None:
    Reconciler(store).reconcile("post", [make_post(f"post-{idx:02d}", **extra) for idx in range(count)])


def test_backfill_terminates_and_covers_corpus(store, make_post) -> None:
    _seed(store, make_post, 25)
    backfill = EmbeddingBackfill(store, CountingProvider(), batch_size=10)

    processed = []
    for _ in range(10):
        result = backfill.backfill("post", batch_size=10)
        processed.append(result.processed)
        if result.processed == 0:
            break

    assert processed == [10, 10, 5, 0]
    assert len([count for count in processed if count]) <= math.ceil(25 / 10)
    assert all(doc.embedding for doc in store.list_by_type("post"))


def test_provider_failure_skips_only_that_document(store, make_post) -> None:
    Reconciler(store).reconcile(
        "post",
        [make_post("good-1"), make_post("bad", content="poison"), make_post("good-2")],
    )
    backfill = EmbeddingBackfill(store, CountingProvider(fail_for={"poison"}), batch_size=10)

    result = backfill.backfill("post")

    assert (result.processed, result.failed) == (2, 1)
    assert store.get("post", "bad").embedding is None
    assert store.get("post", "good-1").embedding is not None


def test_unpublished_documents_are_not_embedded(store, make_post) -> None:
    Reconciler(store).reconcile("post", [make_post("draft", published=False), make_post("live")])
    result = EmbeddingBackfill(store, CountingProvider()).backfill("post")
    assert result.processed == 1
    assert store.get("post", "draft").embedding is None


def test_input_is_truncated_to_provider_limit(store, make_post) -> None:
    Reconciler(store).reconcile("post", [make_post("long", content="x" * 500)])
    EmbeddingBackfill(store, CountingProvider(), max_chars=100).backfill("post")
    assert store.get("post", "long").embedding[0] == 100.0


def test_batching_provider_uses_one_call(store, make_post) -> None:
    _seed(store, make_post, 4)
    provider = BatchingProvider()
    result = EmbeddingBackfill(store, provider).backfill("post")
    assert result.processed == 4
    assert provider.batch_calls == 1
    assert provider.calls == 0


def test_failed_batch_call_falls_back_to_single_calls(store, make_post) -> None:
    _seed(store, make_post, 3)
    provider = BatchingProvider(fail_batch=True)
    result = EmbeddingBackfill(store, provider).backfill("post")
    assert result.processed == 3
    assert provider.calls == 3


def test_backfill_until_done(store, make_post) -> None:
    _seed(store, make_post, 12)
    total = EmbeddingBackfill(store, CountingProvider(), batch_size=5).backfill_until_done("post")
    assert total.processed == 12


def test_backfill_missing_without_provider(store) -> None:
    assert EmbeddingBackfill(store, None).backfill_missing() == {
        "posts_processed": 0,
        "pages_processed": 0,
        "skipped": True,
    }


def test_regenerate_replaces_existing_vector(store, make_post) -> None:
    Reconciler(store).reconcile("post", [make_post("one")])
    store.set_embedding("post", "one", [9.0])
    vector = EmbeddingBackfill(store, CountingProvider()).regenerate("post", "one")
    assert store.get("post", "one").embedding == vector

    with pytest.raises(DocumentNotFoundError):
        EmbeddingBackfill(store, CountingProvider()).regenerate("post", "missing")


def test_failures_at_head_of_order_do_not_block_later_documents(store, make_post) -> None:
    Reconciler(store).reconcile(
        "post",
        [make_post("a", content="poison"), make_post("b", content="poison"), make_post("c")],
    )
    backfill = EmbeddingBackfill(store, CountingProvider(fail_for={"poison"}), batch_size=2)

    total = backfill.backfill_until_done("post")

    assert (total.processed, total.failed) == (1, 2)
    assert sorted(total.failed_slugs) == ["a", "b"]
    assert store.get("post", "c").embedding is not None
    assert store.get("post", "a").embedding is None


def test_missing_embeddings_can_exclude_slugs(store, make_post) -> None:
    _seed(store, make_post, 3)
    listed = store.list_missing_embeddings("post", 10, exclude=["post-00", "post-02"])
    assert [doc.slug for doc in listed] == ["post-01"]
