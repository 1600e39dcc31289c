"""ID and slug helpers."""

from __future__ import annotations

import re
import uuid

_NON_SLUG_RE = re.compile(r"[^a-z0-9\s-]")
_DASHES_RE = re.compile(r"[\s-]+")


def new_id(prefix: str | None = None) -> str:
    base = uuid.uuid4().hex
    return f"{prefix}_{base}" if prefix else base


def slugify(title: str, max_length: int = 60) -> str:
    """Lowercase, strip punctuation and join words with single dashes."""
    slug = _NON_SLUG_RE.sub("", title.lower())
    slug = _DASHES_RE.sub("-", slug).strip("-")
    return slug[:max_length].rstrip("-")
