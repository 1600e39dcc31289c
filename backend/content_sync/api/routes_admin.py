"""Administrative routes: version retention and metrics."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from content_sync.api.dependencies import get_editor, get_version_store
from content_sync.api.routes_content import document_response
from content_sync.cms.editor import ContentEditor
from content_sync.core.metrics import metrics_response
from content_sync.models.dto import DocumentResponse, PurgeResponse, VersionStatsResponse, VersionToggle
from content_sync.utils.time import ms_to_datetime
from content_sync.versions.store import VersionStore

router = APIRouter()


@router.get("/versions/enabled", response_model=VersionToggle, summary="Is version retention on")
async def get_versions_enabled(versions: VersionStore = Depends(get_version_store)) -> VersionToggle:
    return VersionToggle(enabled=versions.is_enabled())


@router.put("/versions/enabled", response_model=VersionToggle, summary="Turn version retention on or off")
async def set_versions_enabled(
    request: VersionToggle,
    versions: VersionStore = Depends(get_version_store),
) -> VersionToggle:
    versions.set_enabled(request.enabled)
    return VersionToggle(enabled=versions.is_enabled())


@router.get("/versions/stats", response_model=VersionStatsResponse, summary="Snapshot counts and age range")
async def version_stats(versions: VersionStore = Depends(get_version_store)) -> VersionStatsResponse:
    stats = versions.stats()
    return VersionStatsResponse(
        total_versions=stats["total_versions"],
        oldest_version=ms_to_datetime(stats["oldest_version"]),
        newest_version=ms_to_datetime(stats["newest_version"]),
    )


@router.post("/versions/purge", response_model=PurgeResponse, summary="Remove expired snapshots")
async def purge_versions(versions: VersionStore = Depends(get_version_store)) -> PurgeResponse:
    return PurgeResponse(purged=versions.purge())


@router.post("/versions/{version_id}/restore", response_model=DocumentResponse, summary="Restore a snapshot")
async def restore_version(version_id: str, editor: ContentEditor = Depends(get_editor)) -> DocumentResponse:
    return document_response(editor.restore_version(version_id))


@router.get("/metrics", summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()


__all__ = ["router"]
