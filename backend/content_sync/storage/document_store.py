"""Storage adapter for synchronizable documents."""

from __future__ import annotations

import sqlite3
from typing import Collection, Protocol, Sequence

import orjson

from content_sync.core.errors import StorageError
from content_sync.db.sqlite import SQLiteDatabase
from content_sync.models.document import Document
from content_sync.utils.time import now_ms

_COLUMNS = "entity_type, slug, fields_json, embedding_json, last_synced_at, source, created_at, updated_at"


class DocumentStore(Protocol):
    """Narrow storage contract consumed by the reconciler, backfill and editor.

    Each call is atomic on its own; nothing spans several documents.
    """

    def list_by_type(self, entity_type: str) -> list[Document]: ...

    def get(self, entity_type: str, slug: str) -> Document | None: ...

    def upsert(self, document: Document) -> None: ...

    def delete(self, entity_type: str, slug: str) -> None: ...

    def mark_synced(self, entity_type: str, slug: str, synced_at: int) -> None: ...

    def list_missing_embeddings(
        self, entity_type: str, limit: int, exclude: Collection[str] = ()
    ) -> list[Document]: ...

    def set_embedding(self, entity_type: str, slug: str, vector: Sequence[float]) -> None: ...


class SQLiteDocumentStore:
    """``DocumentStore`` backed by the ``documents`` table."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def list_by_type(self, entity_type: str) -> list[Document]:
        rows = self._read(
            f"SELECT {_COLUMNS} FROM documents WHERE entity_type = ? ORDER BY slug",
            [entity_type],
        )
        return [_row_to_document(row) for row in rows]

    def get(self, entity_type: str, slug: str) -> Document | None:
        rows = self._read(
            f"SELECT {_COLUMNS} FROM documents WHERE entity_type = ? AND slug = ?",
            [entity_type, slug],
        )
        return _row_to_document(rows[0]) if rows else None

    def upsert(self, document: Document) -> None:
        now = now_ms()
        embedding_json = _dump(document.embedding) if document.embedding is not None else None
        self._write(
            """
            INSERT INTO documents (
              entity_type, slug, fields_json, embedding_json, last_synced_at,
              source, published, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (entity_type, slug) DO UPDATE SET
              fields_json = excluded.fields_json,
              embedding_json = excluded.embedding_json,
              last_synced_at = excluded.last_synced_at,
              source = excluded.source,
              published = excluded.published,
              updated_at = excluded.updated_at
            """,
            [
                document.entity_type,
                document.slug,
                _dump(document.fields),
                embedding_json,
                document.last_synced_at,
                document.source,
                1 if document.published else 0,
                document.created_at or now,
                now,
            ],
        )

    def delete(self, entity_type: str, slug: str) -> None:
        self._write("DELETE FROM documents WHERE entity_type = ? AND slug = ?", [entity_type, slug])

    def mark_synced(self, entity_type: str, slug: str, synced_at: int) -> None:
        """Stamp ``last_synced_at`` and claim the document for sync; nothing else changes."""
        self._write(
            "UPDATE documents SET last_synced_at = ?, source = 'sync' WHERE entity_type = ? AND slug = ?",
            [synced_at, entity_type, slug],
        )

    def rename(self, entity_type: str, old_slug: str, new_slug: str) -> None:
        self._write(
            "UPDATE documents SET slug = ?, updated_at = ? WHERE entity_type = ? AND slug = ?",
            [new_slug, now_ms(), entity_type, old_slug],
        )

    def list_missing_embeddings(
        self, entity_type: str, limit: int, exclude: Collection[str] = ()
    ) -> list[Document]:
        """Published documents without a vector, in slug order, skipping ``exclude``."""
        skip_slugs = list(exclude)
        skip = ""
        if skip_slugs:
            skip = "AND slug NOT IN (" + ", ".join("?" * len(skip_slugs)) + ")"
        rows = self._read(
            f"""
            SELECT {_COLUMNS} FROM documents
            WHERE entity_type = ? AND published = 1 AND embedding_json IS NULL {skip}
            ORDER BY slug
            LIMIT ?
            """,
            [entity_type, *skip_slugs, limit],
        )
        return [_row_to_document(row) for row in rows]

    def set_embedding(self, entity_type: str, slug: str, vector: Sequence[float]) -> None:
        self._write(
            "UPDATE documents SET embedding_json = ? WHERE entity_type = ? AND slug = ?",
            [_dump([float(value) for value in vector]), entity_type, slug],
        )

    def _read(self, sql: str, params: list) -> list[sqlite3.Row]:
        try:
            return self.db.query(sql, params)
        except sqlite3.Error as exc:
            raise StorageError(f"read failed: {exc}") from exc

    def _write(self, sql: str, params: list) -> None:
        try:
            self.db.execute(sql, params)
        except sqlite3.Error as exc:
            raise StorageError(f"write failed: {exc}") from exc


def _dump(value: object) -> str:
    return orjson.dumps(value).decode("utf-8")


def _row_to_document(row: sqlite3.Row) -> Document:
    embedding = row["embedding_json"]
    return Document(
        entity_type=row["entity_type"],
        slug=row["slug"],
        fields=orjson.loads(row["fields_json"]),
        embedding=orjson.loads(embedding) if embedding else None,
        last_synced_at=row["last_synced_at"],
        source=row["source"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


__all__ = ["DocumentStore", "SQLiteDocumentStore"]
