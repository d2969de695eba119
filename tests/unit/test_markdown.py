"""Tests for the Markdown renderer."""

from __future__ import annotations

import pytest

from mosaic.errors import MalformedDirectiveError
from mosaic.markdown import render, split_frontmatter


def test_render_without_frontmatter() -> None:
    doc = render("# Hello\n\nFirst paragraph.\n")
    assert "<h1" in doc.html and "Hello</h1>" in doc.html
    assert doc.frontmatter == {}
    assert doc.title == "Hello"
    assert doc.excerpt == "First paragraph."


def test_frontmatter_is_parsed_and_stripped() -> None:
    doc = render("---\ntitle: Post\ntags: [a, b]\nlayout: post\n---\nBody text.\n")
    assert doc.frontmatter == {"title": "Post", "tags": ["a", "b"], "layout": "post"}
    assert doc.title == "Post"
    assert "---" not in doc.html
    assert "<p>Body text.</p>" in doc.html


def test_frontmatter_key_order_is_preserved() -> None:
    frontmatter, _ = split_frontmatter("---\nzeta: 1\nalpha: 2\nmid: 3\n---\n")
    assert list(frontmatter) == ["zeta", "alpha", "mid"]


def test_description_is_used_as_excerpt() -> None:
    doc = render("---\ndescription: Short summary\n---\nLong body paragraph.\n")
    assert doc.excerpt == "Short summary"


def test_long_excerpt_is_truncated() -> None:
    doc = render("word " * 100)
    assert len(doc.excerpt) <= 160
    assert doc.excerpt.endswith("…")


def test_invalid_frontmatter_is_malformed_directive() -> None:
    with pytest.raises(MalformedDirectiveError, match="front matter"):
        render("---\ntitle: [unclosed\n---\nBody\n", "post.md")


def test_non_mapping_frontmatter_is_malformed_directive() -> None:
    with pytest.raises(MalformedDirectiveError, match="mapping"):
        split_frontmatter("---\n- a\n- b\n---\nBody\n")


def test_text_without_fence_is_all_body() -> None:
    frontmatter, body = split_frontmatter("title: no fence\n")
    assert frontmatter == {}
    assert body == "title: no fence\n"


def test_extra_extensions_enabled() -> None:
    doc = render("| a | b |\n|---|---|\n| 1 | 2 |\n")
    assert "<table>" in doc.html
