from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from content_sync.core.config import Settings


def test_yaml_and_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "config.yaml"
    config.write_text(
        "storage:\n  db_path: ~/sync.db\n"
        "embeddings:\n  provider: openai\n  batch_size: 25\n  workers: 2\n"
        "versions:\n  retention_days: 7\n  enabled: true\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("CSYNC_EMBEDDING_WORKERS", "6")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

    settings = Settings.from_yaml(config)

    assert settings.db_path == Path("~/sync.db").expanduser()
    assert settings.backfill_batch_size == 25
    assert settings.embedding_workers == 6
    assert settings.versions_enabled_default is True
    assert settings.retention_window_ms == 7 * 24 * 60 * 60 * 1000
    assert settings.openai_api_key == "sk-env"
    assert settings.embeddings_configured is True


def test_defaults_without_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CSYNC_EMBEDDING_PROVIDER", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    settings = Settings()
    assert settings.embedding_provider == "openai"
    assert settings.embeddings_configured is False
    assert settings.retention_window_ms == 3 * 24 * 60 * 60 * 1000


def test_worker_bounds_are_validated() -> None:
    with pytest.raises(ValidationError):
        Settings(embedding_workers=0)
