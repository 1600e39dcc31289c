"""Lazy, bounded computation of document embeddings."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Collection, Sequence

from content_sync.core.errors import DocumentNotFoundError, ProviderError, SyncCancelled
from content_sync.core.logging import get_logger
from content_sync.core.metrics import EMBEDDINGS
from content_sync.ingest.embeddings import EmbeddingProvider
from content_sync.models.document import ENTITY_TYPES, Document
from content_sync.storage.document_store import DocumentStore
from content_sync.sync.types import BackfillResult, SyncSummary

logger = get_logger(__name__)


class EmbeddingBackfill:
    """Find published documents without a vector, embed them and store the result.

    One call does at most ``batch_size`` documents. Callers repeat until
    ``processed == 0``. A provider failure only costs the document it
    happened on; storage failures propagate.
    """

    def __init__(
        self,
        store: DocumentStore,
        provider: EmbeddingProvider | None,
        batch_size: int = 10,
        max_chars: int = 8000,
        workers: int = 4,
    ) -> None:
        self.store = store
        self.provider = provider
        self.batch_size = batch_size
        self.max_chars = max_chars
        self.workers = workers

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    def backfill(
        self,
        entity_type: str,
        batch_size: int | None = None,
        emit: Callable[[str], None] | None = None,
        exclude: Collection[str] = (),
    ) -> BackfillResult:
        result = BackfillResult(entity_type=entity_type)
        if self.provider is None:
            return result
        documents = self.store.list_missing_embeddings(entity_type, batch_size or self.batch_size, exclude=exclude)
        if not documents:
            return result

        vectors = self._embed(documents)
        for document, vector in zip(documents, vectors):
            if vector is None:
                result.failed += 1
                result.failed_slugs.append(document.slug)
                continue
            self.store.set_embedding(entity_type, document.slug, vector)
            result.processed += 1
            if emit:
                emit(f"* embedded {entity_type} '{document.slug}'")

        if result.processed:
            EMBEDDINGS.labels(entity_type=entity_type, outcome="ok").inc(result.processed)
        if result.failed:
            EMBEDDINGS.labels(entity_type=entity_type, outcome="failed").inc(result.failed)
        logger.info("Backfilled %s %s embeddings (%s failed)", result.processed, entity_type, result.failed)
        return result

    def backfill_until_done(
        self,
        entity_type: str,
        batch_size: int | None = None,
        emit: Callable[[str], None] | None = None,
        cancel: threading.Event | None = None,
    ) -> BackfillResult:
        """Repeat ``backfill`` until no candidates are left.

        Documents that failed earlier in the loop are left out of later
        batches.
        """
        total = BackfillResult(entity_type=entity_type)
        while True:
            if cancel is not None and cancel.is_set():
                raise SyncCancelled(SyncSummary(processed=total.processed))
            step = self.backfill(entity_type, batch_size=batch_size, emit=emit, exclude=total.failed_slugs)
            total.processed += step.processed
            total.failed += step.failed
            total.failed_slugs.extend(step.failed_slugs)
            if step.processed == 0 and step.failed == 0:
                return total

    def backfill_missing(self) -> dict[str, int | bool]:
        """One bounded batch per entity type."""
        if self.provider is None:
            logger.info("Embedding provider not configured, skipping embedding generation")
            return {"posts_processed": 0, "pages_processed": 0, "skipped": True}
        return {
            "posts_processed": self.backfill("post").processed,
            "pages_processed": self.backfill("page").processed,
            "skipped": False,
        }

    def regenerate(self, entity_type: str, slug: str) -> list[float]:
        """Recompute one document's vector regardless of whether it already has one."""
        if self.provider is None:
            raise ProviderError("embedding provider not configured")
        if entity_type not in ENTITY_TYPES:
            raise DocumentNotFoundError(entity_type, slug)
        document = self.store.get(entity_type, slug)
        if document is None:
            raise DocumentNotFoundError(entity_type, slug)
        vector = self.provider.embed(document.embedding_text(self.max_chars))
        self.store.set_embedding(entity_type, slug, vector)
        return vector

    def _embed(self, documents: Sequence[Document]) -> list[list[float] | None]:
        texts = [document.embedding_text(self.max_chars) for document in documents]
        if getattr(self.provider, "supports_batching", False):
            try:
                return list(self.provider.embed_batch(texts))  # type: ignore[union-attr]
            except ProviderError as exc:
                logger.warning("Batched embedding call failed (%s); retrying per document", exc)
        with ThreadPoolExecutor(max_workers=max(1, min(self.workers, len(texts)))) as pool:
            futures = [pool.submit(self._embed_one, document, text) for document, text in zip(documents, texts)]
            return [future.result() for future in futures]

    def _embed_one(self, document: Document, text: str) -> list[float] | None:
        try:
            return self.provider.embed(text)  # type: ignore[union-attr]
        except ProviderError as exc:
            logger.warning("Embedding %s '%s' failed: %s", document.entity_type, document.slug, exc)
            return None


__all__ = ["EmbeddingBackfill"]
