from __future__ import annotations

from pathlib import Path

import pytest

from content_sync.core.errors import DocumentValidationError
from content_sync.ingest.loaders import FrontMatterSource, read_time, split_front_matter


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_split_front_matter() -> None:
    meta, body = split_front_matter("---\ntitle: Hi\ntags: [a, b]\n---\nHello\n")
    assert meta == {"title": "Hi", "tags": ["a", "b"]}
    assert body.strip() == "Hello"

    meta, body = split_front_matter("no front matter here")
    assert meta == {}
    assert body == "no front matter here"


def test_front_matter_must_be_a_mapping() -> None:
    with pytest.raises(DocumentValidationError):
        split_front_matter("---\n- just\n- a list\n---\nbody")


def test_read_time_has_a_floor() -> None:
    assert read_time("short") == "1 min read"
    assert read_time(" ".join(["word"] * 450)) == "3 min read"


def test_load_posts(content_dir: Path) -> None:
    _write(
        content_dir / "blog" / "first-post.md",
        "---\ntitle: First\ndate: 2024-02-03\npublished: true\n---\n\n# Heading\n\nSome words.\n",
    )
    _write(
        content_dir / "blog" / "other.markdown",
        "---\ntitle: Other\ndate: '2024-03-01'\nslug: custom-slug\nreadTime: 9 min read\n---\nBody\n",
    )
    _write(content_dir / "blog" / "notes.txt", "ignored")

    result = FrontMatterSource(content_dir).load("post")

    assert result.rejected == []
    by_slug = {doc.slug: doc for doc in result.documents}
    assert sorted(by_slug) == ["custom-slug", "first-post"]

    first = by_slug["first-post"]
    assert first.fields["date"] == "2024-02-03"
    assert first.fields["readTime"] == "1 min read"
    assert first.published is True
    assert first.content.startswith("# Heading")
    assert "slug" not in first.fields

    assert by_slug["custom-slug"].fields["readTime"] == "9 min read"
    assert by_slug["custom-slug"].published is False


def test_invalid_files_are_rejected_not_fatal(content_dir: Path) -> None:
    _write(content_dir / "pages" / "good.md", "---\ntitle: Good\n---\nok\n")
    bad = _write(content_dir / "pages" / "bad.md", "---\ntitle: [unclosed\n---\nbody\n")
    _write(content_dir / "pages" / "untitled.md", "---\norder: 2\n---\nbody\n")

    result = FrontMatterSource(content_dir).load("page")

    assert [doc.slug for doc in result.documents] == ["good"]
    rejected = {path.name for path, _ in result.rejected}
    assert rejected == {bad.name, "untitled.md"}
    assert "readTime" not in result.documents[0].fields


def test_missing_directory_yields_empty_batch(tmp_path: Path) -> None:
    result = FrontMatterSource(tmp_path / "nowhere").load("post")
    assert result.documents == []
    assert result.rejected == []


def test_unknown_entity_type(content_dir: Path) -> None:
    with pytest.raises(DocumentValidationError):
        FrontMatterSource(content_dir).load("video")
