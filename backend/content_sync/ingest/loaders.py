"""Front-matter source: turns a content directory into incoming document batches."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml
from markdown_it import MarkdownIt

from content_sync.core.errors import DocumentValidationError
from content_sync.core.logging import get_logger
from content_sync.models.document import PAGE, POST, Document, build_document

logger = get_logger(__name__)

_MD = MarkdownIt()

WORDS_PER_MINUTE = 200

# Sub-directory of the content root holding each entity type.
ENTITY_DIRS: dict[str, str] = {POST: "blog", PAGE: "pages"}
SUFFIXES = (".md", ".markdown", ".mdx")


@dataclass(slots=True)
class LoadResult:
    entity_type: str
    documents: list[Document] = field(default_factory=list)
    rejected: list[tuple[Path, str]] = field(default_factory=list)


class FrontMatterSource:
    """Reads ``<content_dir>/blog`` and ``<content_dir>/pages`` markdown files.

    Files are validated against the entity schema here, at the boundary.
    Files that fail are reported in ``LoadResult.rejected`` and left out of the
    batch; they never abort a load.
    """

    def __init__(self, content_dir: Path) -> None:
        self.content_dir = content_dir.expanduser()

    def directory_for(self, entity_type: str) -> Path:
        try:
            return self.content_dir / ENTITY_DIRS[entity_type]
        except KeyError:
            raise DocumentValidationError(f"Unknown entity type: {entity_type}") from None

    def load(self, entity_type: str) -> LoadResult:
        result = LoadResult(entity_type=entity_type)
        directory = self.directory_for(entity_type)
        if not directory.is_dir():
            logger.warning("Content directory %s does not exist", directory)
            return result
        for path in sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in SUFFIXES):
            try:
                result.documents.append(self.load_file(entity_type, path))
            except (DocumentValidationError, UnicodeDecodeError, yaml.YAMLError) as exc:
                logger.warning("Rejected %s: %s", path, exc)
                result.rejected.append((path, str(exc)))
        return result

    def load_file(self, entity_type: str, path: Path) -> Document:
        text = path.read_text(encoding="utf-8")
        front_matter, body = split_front_matter(text)
        raw: dict[str, Any] = {key: _plain_value(value) for key, value in front_matter.items()}
        raw["content"] = body.strip()
        slug = str(raw.pop("slug", "") or path.stem)
        if entity_type == POST and not raw.get("readTime"):
            raw["readTime"] = read_time(body)
        return build_document(entity_type, slug, raw)


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Split a leading ``---`` YAML block from the markdown body."""
    if text.startswith("---"):
        parts = text.split("---", 2)
        if len(parts) >= 3:
            front_matter = yaml.safe_load(parts[1]) or {}
            if not isinstance(front_matter, dict):
                raise DocumentValidationError("front-matter must be a mapping")
            return front_matter, parts[2]
    return {}, text


def read_time(markdown: str) -> str:
    words = len(_markdown_to_text(markdown).split())
    minutes = max(1, math.ceil(words / WORDS_PER_MINUTE))
    return f"{minutes} min read"


def _markdown_to_text(text: str) -> str:
    parts = [token.content.strip() for token in _MD.parse(text) if token.content.strip()]
    return "\n".join(parts) if parts else text


def _plain_value(value: Any) -> Any:
    # YAML turns unquoted dates into date objects; the schema stores strings.
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


__all__ = ["FrontMatterSource", "LoadResult", "split_front_matter", "read_time"]
