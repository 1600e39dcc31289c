"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from content_sync.cms.editor import ContentEditor
from content_sync.core.config import Settings, get_settings
from content_sync.db.sqlite import SQLiteDatabase
from content_sync.ingest.embeddings import build_provider
from content_sync.ingest.loaders import FrontMatterSource
from content_sync.storage.document_store import SQLiteDocumentStore
from content_sync.sync import EmbeddingBackfill, Reconciler, SyncPipeline, SyncRunner
from content_sync.versions.store import VersionStore

_DB: SQLiteDatabase | None = None
_BACKFILL: EmbeddingBackfill | None = None
_RUNNER: SyncRunner | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        db = SQLiteDatabase(get_app_settings().db_path)
        db.ensure_schema()
        _DB = db
    return _DB


def get_document_store() -> SQLiteDocumentStore:
    return SQLiteDocumentStore(get_database())


def get_version_store() -> VersionStore:
    return VersionStore(get_database(), get_app_settings())


def get_editor() -> ContentEditor:
    return ContentEditor(get_document_store(), get_version_store())


def get_backfill() -> EmbeddingBackfill:
    global _BACKFILL
    if _BACKFILL is None:
        settings = get_app_settings()
        _BACKFILL = EmbeddingBackfill(
            store=get_document_store(),
            provider=build_provider(settings),
            batch_size=settings.backfill_batch_size,
            max_chars=settings.embedding_max_chars,
            workers=settings.embedding_workers,
        )
    return _BACKFILL


def get_runner() -> SyncRunner:
    global _RUNNER
    if _RUNNER is None:
        settings = get_app_settings()
        versions = get_version_store()
        pipeline = SyncPipeline(
            source=FrontMatterSource(settings.content_dir),
            reconciler=Reconciler(get_document_store(), versions=versions),
            backfill=get_backfill(),
            versions=versions,
        )
        _RUNNER = SyncRunner(pipeline.steps(), queue_size=settings.stream_queue_size)
    return _RUNNER


__all__ = [
    "get_app_settings",
    "get_database",
    "get_document_store",
    "get_version_store",
    "get_editor",
    "get_backfill",
    "get_runner",
]
