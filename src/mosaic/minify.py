"""Conservative HTML minifier: comments and redundant whitespace only.

Content of ``<pre>``, ``<textarea>``, ``<script>`` and ``<style>`` is left
untouched. Conditional comments (``<!--[if ...]>``) are kept. Runs of
whitespace collapse to one space, and whitespace between two tags that
contains a line break is removed.
"""

from __future__ import annotations

import re

_PRESERVED_RE = re.compile(
    r"(<(pre|textarea|script|style)\b[^>]*>.*?</\2\s*>)",
    re.IGNORECASE | re.DOTALL,
)
_COMMENT_RE = re.compile(r"<!--(?!\[if|<!|>).*?-->", re.DOTALL)
_BETWEEN_TAGS_RE = re.compile(r">\s*\n\s*<")
_WHITESPACE_RE = re.compile(r"\s+")


def _minify_segment(text: str) -> str:
    text = _COMMENT_RE.sub("", text)
    text = _BETWEEN_TAGS_RE.sub("><", text)
    return _WHITESPACE_RE.sub(" ", text)


def minify_html(html: str) -> str:
    """Return *html* with comments and insignificant whitespace removed."""
    parts: list[str] = []
    position = 0
    for match in _PRESERVED_RE.finditer(html):
        parts.append(_minify_segment(html[position : match.start()]))
        parts.append(match.group(1))
        position = match.end()
    parts.append(_minify_segment(html[position:]))
    return "".join(parts).strip()
