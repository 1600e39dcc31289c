"""Bounded-lifetime snapshots of documents taken before they are edited."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Mapping

import orjson

from content_sync.core.config import Settings
from content_sync.core.logging import get_logger
from content_sync.core.metrics import SNAPSHOTS_PURGED
from content_sync.db.sqlite import SQLiteDatabase
from content_sync.utils.ids import new_id
from content_sync.utils.time import now_ms

logger = get_logger(__name__)

ENABLED_KEY = "versions.enabled"


@dataclass(slots=True, frozen=True)
class VersionSnapshot:
    id: str
    content_type: str
    content_id: str
    title: str
    content: str
    fields: dict[str, Any]
    created_at: int


class VersionStore:
    """Snapshot writer, expiry sweep and the process-wide retention toggle.

    ``snapshot`` is advisory: it never raises, so a failed write cannot fail
    the update it precedes.
    """

    def __init__(self, db: SQLiteDatabase, settings: Settings) -> None:
        self.db = db
        self.settings = settings

    @property
    def retention_window_ms(self) -> int:
        return self.settings.retention_window_ms

    def is_enabled(self) -> bool:
        row = self.db.query_one("SELECT value_json FROM app_settings WHERE key = ?", [ENABLED_KEY])
        if row is None:
            return self.settings.versions_enabled_default
        return bool(orjson.loads(row["value_json"]))

    def set_enabled(self, enabled: bool) -> None:
        self.db.execute(
            """
            INSERT INTO app_settings (key, value_json, updated_at) VALUES (?, ?, ?)
            ON CONFLICT (key) DO UPDATE SET value_json = excluded.value_json, updated_at = excluded.updated_at
            """,
            [ENABLED_KEY, orjson.dumps(bool(enabled)).decode("utf-8"), now_ms()],
        )
        logger.info("Version retention %s", "enabled" if enabled else "disabled")

    def snapshot(
        self,
        content_type: str,
        content_id: str,
        content: str,
        title: str,
        fields: Mapping[str, Any] | None = None,
        now: int | None = None,
    ) -> bool:
        """Store a copy of the pre-edit state. Returns False when nothing was written."""
        try:
            if not self.is_enabled():
                return False
            self.db.execute(
                """
                INSERT INTO content_versions (id, content_type, content_id, title, content, fields_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    new_id("ver"),
                    content_type,
                    content_id,
                    title,
                    content,
                    orjson.dumps(dict(fields or {})).decode("utf-8"),
                    now if now is not None else now_ms(),
                ],
            )
        except sqlite3.Error:
            logger.exception("Snapshot of %s '%s' failed; continuing without it", content_type, content_id)
            return False
        return True

    def purge(self, now: int | None = None) -> int:
        """Delete snapshots older than the retention window relative to ``now``."""
        cutoff = (now if now is not None else now_ms()) - self.retention_window_ms
        cursor = self.db.execute("DELETE FROM content_versions WHERE created_at < ?", [cutoff])
        deleted = max(cursor.rowcount, 0)
        if deleted:
            SNAPSHOTS_PURGED.inc(deleted)
            logger.info("Purged %s expired snapshots", deleted)
        return deleted

    def list_versions(self, content_type: str, content_id: str) -> list[VersionSnapshot]:
        rows = self.db.query(
            """
            SELECT id, content_type, content_id, title, content, fields_json, created_at
            FROM content_versions WHERE content_type = ? AND content_id = ?
            ORDER BY created_at DESC, rowid DESC
            """,
            [content_type, content_id],
        )
        return [_row_to_snapshot(row) for row in rows]

    def get_version(self, version_id: str) -> VersionSnapshot | None:
        row = self.db.query_one(
            "SELECT id, content_type, content_id, title, content, fields_json, created_at "
            "FROM content_versions WHERE id = ?",
            [version_id],
        )
        return _row_to_snapshot(row) if row else None

    def stats(self) -> dict[str, int | None]:
        row = self.db.query_one(
            "SELECT COUNT(*) AS total, MIN(created_at) AS oldest, MAX(created_at) AS newest FROM content_versions"
        )
        return {
            "total_versions": int(row["total"]) if row else 0,
            "oldest_version": row["oldest"] if row else None,
            "newest_version": row["newest"] if row else None,
        }


def _row_to_snapshot(row: sqlite3.Row) -> VersionSnapshot:
    return VersionSnapshot(
        id=row["id"],
        content_type=row["content_type"],
        content_id=row["content_id"],
        title=row["title"],
        content=row["content"],
        fields=orjson.loads(row["fields_json"]),
        created_at=row["created_at"],
    )


__all__ = ["VersionStore", "VersionSnapshot"]
