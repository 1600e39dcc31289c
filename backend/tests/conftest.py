"""Test fixtures for content-sync."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from content_sync.core.config import Settings, get_settings  # noqa: E402
from content_sync.db.sqlite import SQLiteDatabase  # noqa: E402
from content_sync.models.document import Document, build_document  # noqa: E402
from content_sync.storage.document_store import SQLiteDocumentStore  # noqa: E402
from content_sync.versions.store import VersionStore  # noqa: E402


def _reset_singletons() -> None:
    from content_sync.api import dependencies as deps

    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    if deps._DB is not None:
        deps._DB.close()
    deps._DB = None
    deps._BACKFILL = None
    deps._RUNNER = None


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("CSYNC_DB_PATH", str(tmp_path / "content.db"))
    monkeypatch.setenv("CSYNC_CONTENT_DIR", str(tmp_path / "content"))
    monkeypatch.setenv("CSYNC_EMBEDDING_PROVIDER", "hashed")
    monkeypatch.delenv("CSYNC_CONFIG", raising=False)
    _reset_singletons()
    yield
    _reset_singletons()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(db_path=tmp_path / "unit.db", content_dir=tmp_path / "content", embedding_provider="hashed")


@pytest.fixture
def db(settings: Settings) -> SQLiteDatabase:
    database = SQLiteDatabase(settings.db_path)
    database.ensure_schema()
    yield database
    database.close()


@pytest.fixture
def store(db: SQLiteDatabase) -> SQLiteDocumentStore:
    return SQLiteDocumentStore(db)


@pytest.fixture
def versions(db: SQLiteDatabase, settings: Settings) -> VersionStore:
    return VersionStore(db, settings)


@pytest.fixture
def make_post():
    def _make(slug: str, title: str | None = None, content: str = "Body text.", **extra) -> Document:
        fields = {
            "title": title or slug.replace("-", " ").title(),
            "description": "",
            "date": "2024-01-01",
            "published": True,
            "tags": [],
            "content": content,
            **extra,
        }
        return build_document("post", slug, fields)

    return _make


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    root = tmp_path / "content"
    (root / "blog").mkdir(parents=True)
    (root / "pages").mkdir(parents=True)
    return root
