"""Tests for full builds: composition, asset copying, caching, and output naming."""

from __future__ import annotations

from pathlib import Path

import pytest

from mosaic.builder import SITEMAP_NAME, Builder
from mosaic.errors import BuildError


def _snapshot(root: Path) -> dict[str, bytes]:
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def test_page_with_shared_nav(site) -> None:
    nav = site.write("_nav.html", "<nav>Home</nav>")
    index = site.write("index.html", '<!--#include file="_nav.html" --><p>Hello</p>')

    builder = site.builder()
    result = builder.build()

    assert result.success
    assert result.processed == 1
    html = site.read_output("index.html")
    assert "<nav>Home</nav>" in html
    assert "<p>Hello</p>" in html
    assert "<!--#include" not in html
    assert builder.graph.get_affected_pages(nav) == [index]
    assert not site.out("_nav.html").exists()


def test_component_header_with_nested_nav(site) -> None:
    site.write("index.html", '<!--#include virtual="/.components/header.html" --><main>body</main>')
    site.write(".components/header.html", '<header><!--#include file="nav.html" --></header>')
    nav = site.write(".components/nav.html", '<ul><li><a href="/">Home</a></li></ul>')

    builder = site.builder()
    builder.build()

    html = site.read_output("index.html")
    assert '<header><ul><li><a href="/">Home</a></li></ul></header>' in html
    assert "<!--#include" not in html
    assert builder.graph.get_affected_pages(nav) == [site.path("index.html")]
    assert not site.out(".components").exists()


def test_page_errors_are_collected(site) -> None:
    site.write("_a.html", '<!--#include file="_b.html" -->')
    site.write("_b.html", '<!--#include file="_a.html" -->')
    site.write("loop.html", '<!--#include file="_a.html" -->')
    site.write("fine.html", "<p>fine</p>")

    result = site.builder().build()

    assert not result.success
    assert [issue.kind for issue in result.errors] == ["CircularDependency"]
    assert "→" in result.errors[0].message
    assert site.out("fine.html").exists()
    assert not site.out("loop.html").exists()
    assert not (site.cache_dir / "build-cache.json").exists()


def test_fail_on_error_stops_at_first_page_error(site) -> None:
    site.write("_a.html", '<!--#include file="_a.html" -->')
    site.write("loop.html", '<!--#include file="_a.html" -->')

    with pytest.raises(BuildError):
        site.builder(fail_on="error").build()


def test_missing_include_is_a_warning_by_default(site) -> None:
    site.write("index.html", '<!--#include file="_gone.html" --><p>x</p>')

    result = site.builder().build()

    assert result.success
    assert [issue.kind for issue in result.warnings] == ["IncludeNotFound"]
    assert "Include not found: _gone.html" in site.read_output("index.html")


def test_fail_on_warning_promotes_missing_include(site) -> None:
    site.write("index.html", '<!--#include file="_gone.html" --><p>x</p>')

    with pytest.raises(BuildError):
        site.builder(fail_on="warning").build()


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


def test_only_referenced_assets_are_copied(site) -> None:
    site.write("index.html", '<img src="img/used.png"><p>x</p>')
    site.write("img/used.png", b"\x89PNG used")
    site.write("img/unused.png", b"\x89PNG unused")

    result = site.builder().build()

    assert result.copied == 1
    assert site.out("img/used.png").read_bytes() == b"\x89PNG used"
    assert not site.out("img/unused.png").exists()


def test_stylesheet_references_are_followed(site) -> None:
    site.write("index.html", '<link rel="stylesheet" href="/css/site.css"><p>x</p>')
    site.write("css/site.css", '@import "base.css"; body { background: url(../img/bg.png); }')
    site.write("css/base.css", "@font-face { font-family: x; src: url(../fonts/x.woff2); }")
    site.write("img/bg.png", b"bg")
    site.write("fonts/x.woff2", b"font")

    site.builder().build()

    for rel in ("css/site.css", "css/base.css", "img/bg.png", "fonts/x.woff2"):
        assert site.out(rel).exists(), rel


def test_always_copy_and_copy_globs(site) -> None:
    site.write("index.html", "<p>x</p>")
    site.write("static/robots.txt", "User-agent: *")
    site.write("downloads/manual.pdf", b"%PDF")
    site.write("img/orphan.png", b"png")

    site.builder(always_copy=("static",), copy=("*.pdf",)).build()

    assert site.out("static/robots.txt").exists()
    assert site.out("downloads/manual.pdf").exists()
    assert not site.out("img/orphan.png").exists()


def test_asset_copy_is_removed_once_unreferenced(site) -> None:
    site.write("index.html", '<img src="img/a.png">')
    site.write("img/a.png", b"png")
    site.builder().build()
    assert site.out("img/a.png").exists()

    site.write("index.html", "<p>no image any more</p>")
    result = site.builder().build()

    assert not site.out("img/a.png").exists()
    assert site.out("img/a.png") in result.removed


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


def test_second_build_is_a_no_op(site) -> None:
    site.write("_nav.html", "<nav>Home</nav>")
    site.write("index.html", '<!--#include file="_nav.html" --><img src="logo.png">')
    site.write("about.md", "# About\n\nText.")
    site.write("logo.png", b"logo")

    first = site.builder().build()
    before = _snapshot(site.output)
    second = site.builder().build()

    assert first.processed == 2
    assert second.processed == 0
    assert second.copied == 0
    assert second.skipped == 3
    assert _snapshot(site.output) == before


def test_changed_partial_rebuilds_only_its_pages(site) -> None:
    site.write("_nav.html", "<nav>Home</nav>")
    site.write("a.html", '<!--#include file="_nav.html" -->')
    site.write("b.html", "<p>alone</p>")
    site.builder().build()

    site.write("_nav.html", "<nav>Home and more</nav>")
    result = site.builder().build()

    assert result.processed == 1
    assert result.outputs == [site.out("a.html")]
    assert "Home and more" in site.read_output("a.html")


def test_deleted_page_output_is_removed(site) -> None:
    site.write("index.html", "<p>x</p>")
    site.write("old.html", "<p>old</p>")
    site.builder().build()
    assert site.out("old.html").exists()

    site.path("old.html").unlink()
    result = site.builder().build()

    assert not site.out("old.html").exists()
    assert site.out("old.html") in result.removed


def test_failed_build_leaves_saved_cache_untouched(site) -> None:
    site.write("index.html", "<p>x</p>")
    assert site.builder().build().success
    cache_file = site.cache_dir / "build-cache.json"
    saved = cache_file.read_bytes()

    site.write("_a.html", '<!--#include file="_a.html" -->')
    site.write("loop.html", '<!--#include file="_a.html" -->')
    site.write("index.html", "<p>changed</p>")
    result = site.builder().build()

    assert not result.success
    assert cache_file.read_bytes() == saved


def test_new_folder_layout_invalidates_cached_page(site) -> None:
    site.write("blog/post.html", "<p>x</p>")
    site.builder().build()
    assert 'class="blog"' not in site.read_output("blog/post.html")

    site.write("blog/_layout.html", '<div class="blog"><slot></slot></div>')
    result = site.builder().build()

    assert result.processed == 1
    assert 'class="blog"' in site.read_output("blog/post.html")


def test_toggling_pretty_urls_moves_outputs(site) -> None:
    site.write("index.html", "<p>x</p>")
    site.write("about.html", "<p>about</p>")
    site.builder().build()
    assert site.out("about.html").exists()

    result = site.builder(pretty_urls=True).build()

    assert result.processed == 2
    assert site.out("about/index.html").exists()
    assert not site.out("about.html").exists()
    assert site.out("about.html") in result.removed


def test_toggling_minify_rebuilds_pages(site) -> None:
    site.write("index.html", "<div>\n  <p>a   b</p>\n</div>")
    site.builder().build()
    assert "<p>a   b</p>" in site.read_output("index.html")

    result = site.builder(minify=True).build()

    assert result.processed == 1
    assert "<p>a b</p>" in site.read_output("index.html")
    assert site.builder(minify=True).build().processed == 0


def test_no_cache_rebuilds_everything(site) -> None:
    site.write("index.html", "<p>x</p>")
    site.builder().build()

    result = site.builder(cache=False).build()

    assert result.processed == 1


# ---------------------------------------------------------------------------
# Output shape
# ---------------------------------------------------------------------------


def test_markdown_page_and_link_rewriting(site) -> None:
    site.write("index.html", '<a href="post.md">Post</a>')
    site.write("post.md", "---\ntitle: First\n---\n# First\n\nBody.")

    site.builder().build()

    assert '<a href="post.html">Post</a>' in site.read_output("index.html")
    post = site.read_output("post.html")
    assert "<title>First</title>" in post
    assert "Body." in post


def test_pretty_urls(site) -> None:
    site.write("index.html", '<a href="about.html">About</a> <a href="docs/index.html">Docs</a>')
    site.write("about.html", "<p>about</p>")
    site.write("docs/index.html", "<p>docs</p>")

    site.builder(pretty_urls=True).build()

    index = site.read_output("index.html")
    assert '<a href="about/">About</a>' in index
    assert '<a href="docs/">Docs</a>' in index
    assert site.out("about/index.html").exists()
    assert site.out("docs/index.html").exists()
    assert not site.out("about.html").exists()


def test_sitemap(site) -> None:
    site.write("index.html", "<p>x</p>")
    site.write("about.html", "<p>about</p>")

    site.builder(sitemap=True, base_url="https://site.test/").build()

    sitemap = site.read_output(SITEMAP_NAME)
    assert "<loc>https://site.test/</loc>" in sitemap
    assert "<loc>https://site.test/about.html</loc>" in sitemap


def test_minify_keeps_preformatted_text(site) -> None:
    site.write("index.html", "<!-- note -->\n<div>\n  <p>a   b</p>\n</div>\n<pre>  keep\n   this</pre>")

    site.builder(minify=True).build()

    html = site.read_output("index.html")
    assert "note" not in html
    assert "<p>a b</p>" in html
    assert "<pre>  keep\n   this</pre>" in html


def test_parallel_build_matches_serial_build(site) -> None:
    site.write("_nav.html", "<nav>n</nav>")
    for n in range(8):
        site.write(f"page{n}.html", f'<!--#include file="_nav.html" --><img src="img/{n % 3}.png">')
    for n in range(3):
        site.write(f"img/{n}.png", bytes([n]))

    serial = Builder(site.config(output=site.root / "serial", cache=False))
    parallel = Builder(site.config(output=site.root / "parallel", cache=False, workers=4))
    serial_result = serial.build()
    parallel_result = parallel.build()

    assert serial_result.processed == parallel_result.processed == 8
    assert _snapshot(site.root / "serial") == _snapshot(site.root / "parallel")
    assert sorted(parallel.graph.pages) == sorted(serial.graph.pages)


# ---------------------------------------------------------------------------
# Cleaning
# ---------------------------------------------------------------------------


def test_clean_removes_output_and_cache(site) -> None:
    site.write("index.html", "<p>x</p>")
    builder = site.builder()
    builder.build()
    assert (site.cache_dir / "build-cache.json").exists()

    builder.clean()

    assert not site.output.exists()
    assert not (site.cache_dir / "build-cache.json").exists()


def test_clean_option_wipes_stray_output(site) -> None:
    site.write("index.html", "<p>x</p>")
    site.output.mkdir()
    (site.output / "stray.txt").write_text("left over", encoding="utf-8")

    site.builder(clean=True).build()

    assert not (site.output / "stray.txt").exists()
    assert site.out("index.html").exists()
