"""Tests for head element keys and head merging."""

from __future__ import annotations

import pytest

from mosaic.compose.head import dedupe_key, head_children, merge_heads, write_head
from mosaic.compose.html import parse, render


def _tags(markup: str):
    return head_children(parse(f"<head>{markup}</head>").head)


def _merge(layout: str, page: str) -> list[str]:
    return [render(tag) for tag in merge_heads(_tags(layout), _tags(page))]


@pytest.mark.parametrize(
    "markup, key",
    [
        ("<title>x</title>", ("title",)),
        ('<base href="/">', ("base",)),
        ('<meta charset="utf-8">', ("meta", "charset")),
        ('<meta name="Description" content="x">', ("meta", "name", "description")),
        ('<meta property="og:title" content="x">', ("meta", "property", "og:title")),
        ('<meta http-equiv="refresh" content="5">', ("meta", "http-equiv", "refresh")),
        ('<link rel="canonical" href="/a">', ("link", "canonical")),
        ('<link rel="stylesheet" href="/a.css">', ("link", "stylesheet", "/a.css")),
        ('<script src="/app.js"></script>', ("script", "/app.js")),
        ("<script>inline()</script>", None),
        ("<style>p{}</style>", None),
        ("<noscript>x</noscript>", None),
    ],
)
def test_dedupe_key(markup: str, key) -> None:
    assert dedupe_key(_tags(markup)[0]) == key


def test_head_merge_determinism() -> None:
    merged = _merge(
        '<title>L</title><meta name="a" content="1">',
        '<title>P</title><meta name="a" content="2"><meta name="b" content="3">',
    )
    assert merged == [
        "<title>P</title>",
        '<meta name="a" content="2">',
        '<meta name="b" content="3">',
    ]


def test_page_wins_at_layout_position() -> None:
    merged = _merge(
        '<meta charset="utf-8"><title>Layout</title><link rel="stylesheet" href="/site.css">',
        '<link rel="stylesheet" href="/page.css"><title>Page</title>',
    )
    assert merged == [
        '<meta charset="utf-8">',
        "<title>Page</title>",
        '<link rel="stylesheet" href="/site.css">',
        '<link rel="stylesheet" href="/page.css">',
    ]


def test_unkeyed_elements_are_never_collapsed() -> None:
    merged = _merge("<style>a{}</style><script>one()</script>", "<style>a{}</style><script>one()</script>")
    assert merged == ["<style>a{}</style>", "<script>one()</script>", "<style>a{}</style>", "<script>one()</script>"]


def test_same_script_src_is_deduplicated() -> None:
    merged = _merge('<script src="/app.js"></script>', '<script src="/app.js" defer></script>')
    assert len(merged) == 1
    assert "defer" in merged[0]


def test_head_children_skips_text_and_layout_links() -> None:
    tags = _tags('\n<link rel="layout" href="base.html">\n<title>t</title>\n<!-- c -->\n')
    assert [tag.name for tag in tags] == ["title"]


def test_write_head_replaces_contents() -> None:
    soup = parse("<head><title>old</title></head>")
    new = _tags("<title>new</title><meta name=a content=b>")
    write_head(soup.head, new)
    assert render(soup.head).startswith("<head>\n<title>new</title>\n<meta")
    assert "old" not in render(soup)
