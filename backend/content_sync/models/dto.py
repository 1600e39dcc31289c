"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

EntityType = Literal["post", "page"]


class SyncRequest(BaseModel):
    command: str = Field(description="Name of the pipeline step, e.g. 'sync:posts'")


class SyncBusyResponse(BaseModel):
    error: str
    active_step: str | None = None


class CancelResponse(BaseModel):
    cancelled: bool


class HealthResponse(BaseModel):
    ok: bool
    busy: bool
    step: str | None = None
    run_id: str | None = None
    last_run: str | None = None


class DocumentResponse(BaseModel):
    entity_type: EntityType
    slug: str
    fields: dict[str, Any]
    has_embedding: bool
    last_synced_at: datetime | None
    source: str
    created_at: datetime | None
    updated_at: datetime | None


class DocumentCreateRequest(BaseModel):
    slug: str | None = Field(default=None, description="Defaults to a slug derived from the title")
    fields: dict[str, Any]


class DocumentUpdateRequest(BaseModel):
    fields: dict[str, Any] = Field(description="Partial field changes; include 'slug' to rename")


class DeleteResponse(BaseModel):
    status: Literal["ok"]
    deleted: int


class VersionResponse(BaseModel):
    id: str
    content_type: str
    content_id: str
    title: str
    content: str
    fields: dict[str, Any]
    created_at: datetime


class VersionToggle(BaseModel):
    enabled: bool


class VersionStatsResponse(BaseModel):
    total_versions: int
    oldest_version: datetime | None
    newest_version: datetime | None


class PurgeResponse(BaseModel):
    purged: int


class RegenerateResponse(BaseModel):
    success: bool
    dim: int | None = None
    error: str | None = None


class BackfillResponse(BaseModel):
    posts_processed: int
    pages_processed: int
    skipped: bool


__all__ = [
    "EntityType",
    "SyncRequest",
    "SyncBusyResponse",
    "CancelResponse",
    "HealthResponse",
    "DocumentResponse",
    "DocumentCreateRequest",
    "DocumentUpdateRequest",
    "DeleteResponse",
    "VersionResponse",
    "VersionToggle",
    "VersionStatsResponse",
    "PurgeResponse",
    "RegenerateResponse",
    "BackfillResponse",
]
