"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "CSYNC_"
DEFAULT_CONFIG_PATH = Path("~/.config/content-sync/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("content", "dir"): "content_dir",
    ("embeddings", "provider"): "embedding_provider",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "api_key"): "openai_api_key",
    ("embeddings", "base_url"): "openai_base_url",
    ("embeddings", "timeout"): "embedding_timeout",
    ("embeddings", "max_chars"): "embedding_max_chars",
    ("embeddings", "workers"): "embedding_workers",
    ("embeddings", "batch_size"): "backfill_batch_size",
    ("versions", "retention_days"): "version_retention_days",
    ("versions", "enabled"): "versions_enabled_default",
    ("runner", "queue_size"): "stream_queue_size",
    ("runner", "host"): "sync_host",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".content-sync" / "content.db")
    content_dir: Path = Field(default=Path("content"))
    embedding_provider: Literal["openai", "hashed", "none"] = "openai"
    embedding_model: str = "text-embedding-ada-002"
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    embedding_timeout: float = Field(default=30.0, gt=0)
    embedding_max_chars: int = Field(default=8000, ge=1)
    embedding_workers: int = Field(default=4, ge=1, le=8)
    backfill_batch_size: int = Field(default=10, ge=1)
    version_retention_days: int = Field(default=3, ge=1)
    versions_enabled_default: bool = False
    stream_queue_size: int = Field(default=256, ge=1)
    sync_host: str = "http://127.0.0.1:3001"

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", "content_dir", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("paths must be a path or string")

    @property
    def retention_window_ms(self) -> int:
        return self.version_retention_days * 24 * 60 * 60 * 1000

    @property
    def embeddings_configured(self) -> bool:
        if self.embedding_provider == "none":
            return False
        if self.embedding_provider == "openai":
            return bool(self.openai_api_key)
        return True

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        if "openai_api_key" not in data and os.environ.get("OPENAI_API_KEY"):
            data["openai_api_key"] = os.environ["OPENAI_API_KEY"]
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with CSYNC_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
