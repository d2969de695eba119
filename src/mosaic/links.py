"""Output naming, page-link rewriting, and sitemap generation."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from xml.sax.saxutils import escape

from mosaic.compose.html import parse, render

_SCHEME_PREFIXES = ("http:", "https:", "//", "mailto:", "tel:", "data:", "javascript:", "#")


def output_relpath(source_rel: PurePosixPath, *, pretty_urls: bool = False) -> PurePosixPath:
    """Map a page's source-relative path to its output-relative path.

    ``post.md`` → ``post.html``; with *pretty_urls* ``about.html`` →
    ``about/index.html``. Index pages keep their name.
    """
    rel = source_rel
    if rel.suffix.lower() == ".md":
        rel = rel.with_suffix(".html")
    if pretty_urls and rel.suffix.lower() in (".html", ".htm") and rel.stem.lower() != "index":
        rel = rel.with_suffix("") / "index.html"
    return rel


def _rewrite_href(href: str, pretty_urls: bool) -> str:
    base, marker, rest = _split_suffix(href)
    lower = base.lower()
    if lower.endswith(".md"):
        base = base[:-3] + ".html"
        lower = base.lower()
    if pretty_urls and lower.endswith(".html"):
        if lower == "index.html" or lower.endswith("/index.html"):
            base = base[: -len("index.html")] or "./"
        else:
            base = base[: -len(".html")] + "/"
    return base + marker + rest


def _split_suffix(href: str) -> tuple[str, str, str]:
    cut = min((i for i in (href.find("?"), href.find("#")) if i >= 0), default=-1)
    if cut < 0:
        return href, "", ""
    return href[:cut], href[cut], href[cut + 1 :]


def rewrite_page_links(html: str, *, pretty_urls: bool = False) -> str:
    """Point ``<a href>`` links at emitted pages.

    Links to ``.md`` sources become ``.html``; with *pretty_urls* links to
    ``x.html`` become ``x/`` and ``index.html`` becomes its directory.
    Returns *html* unchanged (same object) when no link needs rewriting.
    """
    soup = parse(html)
    changed = False
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if not isinstance(href, str) or href.lower().startswith(_SCHEME_PREFIXES):
            continue
        rewritten = _rewrite_href(href, pretty_urls)
        if rewritten != href:
            anchor["href"] = rewritten
            changed = True
    return render(soup) if changed else html


def page_url(output_rel: PurePosixPath, base_url: str) -> str:
    """Absolute URL for an output file; ``x/index.html`` maps to ``x/``."""
    path = output_rel.as_posix()
    if output_rel.name == "index.html":
        path = path[: -len("index.html")]
    return base_url.rstrip("/") + "/" + path


def build_sitemap(outputs: list[Path], output_root: Path, base_url: str) -> str:
    """Return ``sitemap.xml`` content listing every HTML file in *outputs*."""
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for output in sorted(outputs):
        rel = PurePosixPath(Path(output).relative_to(output_root).as_posix())
        if rel.suffix.lower() not in (".html", ".htm"):
            continue
        lines.append("  <url>")
        lines.append(f"    <loc>{escape(page_url(rel, base_url))}</loc>")
        lines.append("  </url>")
    lines.append("</urlset>")
    return "\n".join(lines) + "\n"
