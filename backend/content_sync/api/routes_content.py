"""Document authoring, export and embedding routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse

from content_sync.api.dependencies import get_backfill, get_document_store, get_editor, get_version_store
from content_sync.cms.editor import ContentEditor
from content_sync.core.errors import DocumentNotFoundError, ProviderError
from content_sync.models.document import Document
from content_sync.models.dto import (
    BackfillResponse,
    DeleteResponse,
    DocumentCreateRequest,
    DocumentResponse,
    DocumentUpdateRequest,
    EntityType,
    RegenerateResponse,
    VersionResponse,
)
from content_sync.storage.document_store import SQLiteDocumentStore
from content_sync.sync.backfill import EmbeddingBackfill
from content_sync.utils.ids import slugify
from content_sync.utils.time import ms_to_datetime
from content_sync.versions.store import VersionSnapshot, VersionStore

router = APIRouter()


@router.get("/documents/{entity_type}", response_model=list[DocumentResponse], summary="List stored documents")
async def list_documents(
    entity_type: EntityType,
    store: SQLiteDocumentStore = Depends(get_document_store),
) -> list[DocumentResponse]:
    return [document_response(document) for document in store.list_by_type(entity_type)]


@router.get("/documents/{entity_type}/{slug}", response_model=DocumentResponse, summary="Fetch one document")
async def get_document(
    entity_type: EntityType,
    slug: str,
    editor: ContentEditor = Depends(get_editor),
) -> DocumentResponse:
    return document_response(editor.get(entity_type, slug))


@router.post("/documents/{entity_type}", response_model=DocumentResponse, status_code=201, summary="Create a document")
async def create_document(
    entity_type: EntityType,
    request: DocumentCreateRequest,
    editor: ContentEditor = Depends(get_editor),
) -> DocumentResponse:
    slug = request.slug or slugify(str(request.fields.get("title", "")))
    if not slug:
        raise HTTPException(status_code=422, detail="A slug or a title is required")
    return document_response(editor.create(entity_type, slug, request.fields))


@router.patch("/documents/{entity_type}/{slug}", response_model=DocumentResponse, summary="Edit a document")
async def update_document(
    entity_type: EntityType,
    slug: str,
    request: DocumentUpdateRequest,
    editor: ContentEditor = Depends(get_editor),
) -> DocumentResponse:
    return document_response(editor.update(entity_type, slug, request.fields))


@router.delete("/documents/{entity_type}/{slug}", response_model=DeleteResponse, summary="Delete a document")
async def delete_document(
    entity_type: EntityType,
    slug: str,
    editor: ContentEditor = Depends(get_editor),
) -> DeleteResponse:
    editor.delete(entity_type, slug)
    return DeleteResponse(status="ok", deleted=1)


@router.get(
    "/documents/{entity_type}/{slug}/export",
    response_class=PlainTextResponse,
    summary="Export a document as markdown with front-matter",
)
async def export_document(
    entity_type: EntityType,
    slug: str,
    editor: ContentEditor = Depends(get_editor),
) -> str:
    return editor.export_markdown(entity_type, slug)


@router.get(
    "/documents/{entity_type}/{slug}/versions",
    response_model=list[VersionResponse],
    summary="List retained snapshots of a document",
)
async def list_versions(
    entity_type: EntityType,
    slug: str,
    versions: VersionStore = Depends(get_version_store),
) -> list[VersionResponse]:
    return [to_version_response(version) for version in versions.list_versions(entity_type, slug)]


@router.post(
    "/embeddings/{entity_type}/{slug}/regenerate",
    response_model=RegenerateResponse,
    summary="Recompute one document's embedding",
)
async def regenerate_embedding(
    entity_type: EntityType,
    slug: str,
    backfill: EmbeddingBackfill = Depends(get_backfill),
) -> RegenerateResponse:
    try:
        vector = backfill.regenerate(entity_type, slug)
    except DocumentNotFoundError:
        return RegenerateResponse(success=False, error="Document not found")
    except ProviderError as exc:
        return RegenerateResponse(success=False, error=str(exc))
    return RegenerateResponse(success=True, dim=len(vector))


@router.post("/embeddings/backfill", response_model=BackfillResponse, summary="Embed one batch of each type")
async def backfill_embeddings(backfill: EmbeddingBackfill = Depends(get_backfill)) -> BackfillResponse:
    return BackfillResponse(**backfill.backfill_missing())


def document_response(document: Document) -> DocumentResponse:
    return DocumentResponse(
        entity_type=document.entity_type,
        slug=document.slug,
        fields=document.fields,
        has_embedding=document.embedding is not None,
        last_synced_at=ms_to_datetime(document.last_synced_at),
        source=document.source,
        created_at=ms_to_datetime(document.created_at),
        updated_at=ms_to_datetime(document.updated_at),
    )


def to_version_response(version: VersionSnapshot) -> VersionResponse:
    return VersionResponse(
        id=version.id,
        content_type=version.content_type,
        content_id=version.content_id,
        title=version.title,
        content=version.content,
        fields=version.fields,
        created_at=ms_to_datetime(version.created_at),
    )


__all__ = ["router", "document_response", "to_version_response"]
