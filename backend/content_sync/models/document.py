"""Synchronizable document model and per-entity field schemas."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from content_sync.core.errors import DocumentValidationError

FieldValue = Union[str, int, float, bool, list[str], None]

POST = "post"
PAGE = "page"
ENTITY_TYPES: tuple[str, ...] = (POST, PAGE)

# Fields concatenated into the embedding input; a change to any of them
# invalidates a stored vector.
EMBEDDED_FIELDS: tuple[str, ...] = ("title", "content")


@dataclass(slots=True)
class Document:
    entity_type: str
    slug: str
    fields: dict[str, FieldValue]
    embedding: list[float] | None = None
    last_synced_at: int | None = None
    source: str = "sync"
    created_at: int | None = None
    updated_at: int | None = None

    @property
    def is_sync_managed(self) -> bool:
        return self.last_synced_at is not None

    @property
    def title(self) -> str:
        return str(self.fields.get("title") or "")

    @property
    def content(self) -> str:
        return str(self.fields.get("content") or "")

    @property
    def published(self) -> bool:
        return bool(self.fields.get("published"))

    def embedding_text(self, max_chars: int) -> str:
        return f"{self.title}\n\n{self.content}"[:max_chars]

    def with_changes(self, **changes: Any) -> "Document":
        return replace(self, **changes)


class _EntityFields(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str
    content: str = ""
    published: bool = False
    excerpt: str | None = None
    image: str | None = None
    showImageAtTop: bool | None = None
    featured: bool | None = None
    featuredOrder: int | None = None
    authorName: str | None = None
    authorImage: str | None = None
    layout: str | None = None


class PostFields(_EntityFields):
    description: str = ""
    date: str
    tags: list[str] = []
    readTime: str | None = None
    unlisted: bool | None = None


class PageFields(_EntityFields):
    order: int | None = None
    showInNav: bool | None = None
    textAlign: str | None = None


SCHEMAS: dict[str, type[_EntityFields]] = {POST: PostFields, PAGE: PageFields}


def validate_fields(entity_type: str, raw: Mapping[str, Any]) -> dict[str, FieldValue]:
    """Check ``raw`` against the entity schema and return a normalized field bag.

    Unset optional fields are dropped so that stored documents only carry what
    the author wrote. Unknown keys pass through untouched.
    """
    schema = SCHEMAS.get(entity_type)
    if schema is None:
        raise DocumentValidationError(f"Unknown entity type: {entity_type}")
    try:
        model = schema.model_validate(dict(raw))
    except ValidationError as exc:
        raise DocumentValidationError(f"Invalid {entity_type}: {exc}") from exc
    return {key: _coerce_value(value) for key, value in model.model_dump(exclude_none=True).items()}


def build_document(entity_type: str, slug: str, raw: Mapping[str, Any], **kwargs: Any) -> Document:
    if not slug or not slug.strip():
        raise DocumentValidationError(f"{entity_type} is missing a slug")
    return Document(entity_type=entity_type, slug=slug.strip(), fields=validate_fields(entity_type, raw), **kwargs)


def _coerce_value(value: Any) -> FieldValue:
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return str(value)


__all__ = [
    "Document",
    "FieldValue",
    "POST",
    "PAGE",
    "ENTITY_TYPES",
    "EMBEDDED_FIELDS",
    "PostFields",
    "PageFields",
    "validate_fields",
    "build_document",
]
