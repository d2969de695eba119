"""Markdown renderer — front matter + Markdown body → HTML.

A pure function: no file I/O. Front matter is a leading block fenced by
``---`` lines and parsed with yaml.safe_load(); key order is preserved.

Usage:
    doc = render("---\\ntitle: Hello\\n---\\n# Hi\\n")
    doc.html          # '<h1 id="hi">Hi</h1>'
    doc.frontmatter   # {'title': 'Hello'}
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import markdown as md_lib
import yaml
from bs4 import BeautifulSoup

from mosaic.errors import MalformedDirectiveError

_FRONTMATTER_RE = re.compile(r"\A\ufeff?---[ \t]*\r?\n(.*?)\r?\n(?:---|\.\.\.)[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_EXTENSIONS = ["extra", "sane_lists", "toc"]
_EXCERPT_CHARS = 160


@dataclass(frozen=True)
class MarkdownDocument:
    html: str
    frontmatter: dict[str, Any] = field(default_factory=dict)
    title: str | None = None
    excerpt: str = ""


def split_frontmatter(text: str, path: str = "<markdown>") -> tuple[dict[str, Any], str]:
    """Return ``(frontmatter, body)`` for *text*.

    Raises:
        MalformedDirectiveError: If the front-matter block is not valid YAML or
            is not a mapping.
    """
    match = _FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as exc:
        raise MalformedDirectiveError("front matter", path, str(exc).splitlines()[0]) from exc
    if not isinstance(data, dict):
        raise MalformedDirectiveError("front matter", path, "expected a key: value mapping")
    return data, text[match.end():]


def render(text: str, path: str = "<markdown>") -> MarkdownDocument:
    """Render Markdown *text* (with optional front matter) to HTML."""
    frontmatter, body = split_frontmatter(text, path)
    html = md_lib.markdown(body, extensions=_EXTENSIONS, output_format="html")

    soup = BeautifulSoup(html, "html.parser")
    title = frontmatter.get("title")
    if title is None:
        h1 = soup.find("h1")
        if h1 is not None:
            title = h1.get_text(" ", strip=True)

    excerpt = frontmatter.get("excerpt") or frontmatter.get("description")
    if not excerpt:
        first = soup.find("p")
        excerpt = first.get_text(" ", strip=True) if first is not None else ""
        if len(excerpt) > _EXCERPT_CHARS:
            excerpt = excerpt[: _EXCERPT_CHARS - 1].rstrip() + "…"

    return MarkdownDocument(
        html=html,
        frontmatter=frontmatter,
        title=str(title) if title is not None else None,
        excerpt=str(excerpt),
    )
