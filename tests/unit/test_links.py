"""Tests for output naming, link rewriting, and the sitemap."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

import pytest

from mosaic.links import build_sitemap, output_relpath, page_url, rewrite_page_links


@pytest.mark.parametrize(
    ("source", "pretty", "expected"),
    [
        ("index.html", False, "index.html"),
        ("about.html", False, "about.html"),
        ("blog/post.md", False, "blog/post.html"),
        ("about.html", True, "about/index.html"),
        ("blog/post.md", True, "blog/post/index.html"),
        ("docs/index.html", True, "docs/index.html"),
        ("legacy.htm", True, "legacy/index.html"),
    ],
)
def test_output_relpath(source: str, pretty: bool, expected: str) -> None:
    assert output_relpath(PurePosixPath(source), pretty_urls=pretty) == PurePosixPath(expected)


def test_markdown_links_point_at_html() -> None:
    html = '<a href="guide.md#setup">Guide</a>'
    assert rewrite_page_links(html) == '<a href="guide.html#setup">Guide</a>'


def test_pretty_links() -> None:
    html = (
        '<a href="about.html">A</a>'
        '<a href="/index.html">H</a>'
        '<a href="blog/post.md?ref=nav">P</a>'
    )
    out = rewrite_page_links(html, pretty_urls=True)
    assert 'href="about/"' in out
    assert 'href="/"' in out
    assert 'href="blog/post/?ref=nav"' in out


def test_external_and_fragment_links_are_untouched() -> None:
    html = '<a href="https://example.com/x.html">x</a><a href="#top">top</a><a href="mailto:a@b.c">m</a>'
    assert rewrite_page_links(html, pretty_urls=True) is html


def test_unchanged_html_is_returned_as_is() -> None:
    html = '<a href="page.html">p</a>'
    assert rewrite_page_links(html) is html


def test_page_url() -> None:
    assert page_url(PurePosixPath("index.html"), "https://site.test/") == "https://site.test/"
    assert page_url(PurePosixPath("blog/index.html"), "https://site.test") == "https://site.test/blog/"
    assert page_url(PurePosixPath("a.html"), "https://site.test") == "https://site.test/a.html"


def test_build_sitemap_lists_html_only(tmp_path: Path) -> None:
    outputs = [tmp_path / "b.html", tmp_path / "a&b.html", tmp_path / "img" / "x.png"]
    xml = build_sitemap(outputs, tmp_path, "https://site.test")
    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "<loc>https://site.test/a&amp;b.html</loc>" in xml
    assert "<loc>https://site.test/b.html</loc>" in xml
    assert "x.png" not in xml
    assert xml.index("a&amp;b.html") < xml.index("/b.html")
