"""Direct authoring path: documents created and edited outside the sync pipeline."""

from __future__ import annotations

from typing import Any, Mapping

import yaml

from content_sync.core.errors import DocumentNotFoundError, SlugConflictError
from content_sync.core.logging import get_logger
from content_sync.models.document import EMBEDDED_FIELDS, Document, build_document, validate_fields
from content_sync.storage.document_store import SQLiteDocumentStore
from content_sync.versions.store import VersionSnapshot, VersionStore

logger = get_logger(__name__)

# Front-matter keys emitted first, in this order, by ``export_markdown``.
_LEADING_KEYS = ("title", "description", "date", "slug", "published", "tags")


class ContentEditor:
    """Create, edit, delete and export documents on behalf of the dashboard.

    Documents created here carry no ``last_synced_at`` so reconciliation never
    deletes them. Every edit is preceded by a version snapshot.
    """

    def __init__(self, store: SQLiteDocumentStore, versions: VersionStore) -> None:
        self.store = store
        self.versions = versions

    def get(self, entity_type: str, slug: str) -> Document:
        document = self.store.get(entity_type, slug)
        if document is None:
            raise DocumentNotFoundError(entity_type, slug)
        return document

    def create(self, entity_type: str, slug: str, fields: Mapping[str, Any]) -> Document:
        if self.store.get(entity_type, slug) is not None:
            raise SlugConflictError(entity_type, slug)
        document = build_document(entity_type, slug, fields, source="dashboard")
        self.store.upsert(document)
        logger.info("Created %s '%s' from the editor", entity_type, slug)
        return self.get(entity_type, slug)

    def update(self, entity_type: str, slug: str, changes: Mapping[str, Any]) -> Document:
        """Patch ``changes`` onto a document; a ``slug`` key renames it."""
        current = self.get(entity_type, slug)
        patch = dict(changes)
        new_slug = str(patch.pop("slug", None) or slug)
        if new_slug != slug and self.store.get(entity_type, new_slug) is not None:
            raise SlugConflictError(entity_type, new_slug)

        fields = validate_fields(entity_type, {**current.fields, **patch})
        self.versions.snapshot(
            entity_type,
            slug,
            content=current.content,
            title=current.title,
            fields=current.fields,
        )
        if new_slug != slug:
            self.store.rename(entity_type, slug, new_slug)
        embedded_changed = any(current.fields.get(name) != fields.get(name) for name in EMBEDDED_FIELDS)
        self.store.upsert(
            current.with_changes(
                slug=new_slug,
                fields=fields,
                embedding=None if embedded_changed else current.embedding,
            )
        )
        return self.get(entity_type, new_slug)

    def delete(self, entity_type: str, slug: str) -> None:
        self.get(entity_type, slug)
        self.store.delete(entity_type, slug)
        logger.info("Deleted %s '%s' from the editor", entity_type, slug)

    def restore_version(self, version_id: str) -> Document:
        """Bring a document back to a snapshot; the state being replaced is snapshotted too."""
        version = self._version(version_id)
        restored = {**version.fields, "title": version.title, "content": version.content}
        return self.update(version.content_type, version.content_id, restored)

    def export_markdown(self, entity_type: str, slug: str) -> str:
        document = self.get(entity_type, slug)
        front_matter: dict[str, Any] = {}
        for key in _LEADING_KEYS:
            if key == "slug":
                front_matter["slug"] = document.slug
            elif key in document.fields:
                front_matter[key] = document.fields[key]
        for key, value in document.fields.items():
            if key != "content" and key not in front_matter and value is not None:
                front_matter[key] = value
        header = yaml.safe_dump(front_matter, sort_keys=False, allow_unicode=True).strip()
        return f"---\n{header}\n---\n\n{document.content}"

    def _version(self, version_id: str) -> VersionSnapshot:
        version = self.versions.get_version(version_id)
        if version is None:
            raise DocumentNotFoundError("version", version_id)
        return version


__all__ = ["ContentEditor"]
