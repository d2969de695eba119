"""Head merging: combine layout and page ``<head>`` elements without duplicates.

Each element gets a dedupe key:

  title                         ("title",)
  meta charset                  ("meta", "charset")
  meta name / property / http-equiv
                                ("meta", attr, value)
  link rel=canonical            ("link", "canonical")
  other link                    ("link", rel, href)
  script src                    ("script", src)
  base                          ("base",)

Everything else (inline style, inline script, noscript, ...) is unkeyed and
always kept. When the same key appears in both inputs the page element wins
but takes the position the layout gave it; page elements with new keys are
appended in page order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from bs4 import NavigableString, Tag

from mosaic.compose.html import is_layout_link, rel_values

HeadKey = Optional[tuple[str, ...]]


@dataclass
class HeadElement:
    """A head child paired with its dedupe key."""

    node: Tag
    key: HeadKey

    @classmethod
    def of(cls, node: Tag) -> "HeadElement":
        return cls(node, dedupe_key(node))


def _attr(tag: Tag, name: str) -> str | None:
    value = tag.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        value = " ".join(value)
    return value.strip()


def dedupe_key(tag: Tag) -> HeadKey:
    """Return the dedupe key for head element *tag*, or None if unkeyed."""
    name = tag.name
    if name == "title":
        return ("title",)
    if name == "base":
        return ("base",)
    if name == "meta":
        if tag.has_attr("charset"):
            return ("meta", "charset")
        for attr in ("name", "property", "http-equiv"):
            value = _attr(tag, attr)
            if value:
                return ("meta", attr, value.lower())
        return None
    if name == "link":
        rel = " ".join(rel_values(tag))
        if rel == "canonical":
            return ("link", "canonical")
        href = _attr(tag, "href")
        if rel and href:
            return ("link", rel, href)
        return None
    if name == "script":
        src = _attr(tag, "src")
        return ("script", src) if src else None
    return None


def head_children(head: Tag | None) -> list[Tag]:
    """Return the element children of *head* (text and comments dropped)."""
    if head is None:
        return []
    return [child for child in head.contents if isinstance(child, Tag) and not is_layout_link(child)]


def merge_heads(layout: Iterable[Tag], page: Iterable[Tag]) -> list[Tag]:
    """Merge two ordered head element lists; see the module docstring."""
    merged: list[HeadElement] = []
    positions: dict[tuple[str, ...], int] = {}

    for node in layout:
        element = HeadElement.of(node)
        if element.key is not None:
            if element.key in positions:
                merged[positions[element.key]] = element
                continue
            positions[element.key] = len(merged)
        merged.append(element)

    for node in page:
        element = HeadElement.of(node)
        if element.key is not None and element.key in positions:
            merged[positions[element.key]] = element
            continue
        if element.key is not None:
            positions[element.key] = len(merged)
        merged.append(element)

    return [element.node for element in merged]


def write_head(head: Tag, elements: list[Tag]) -> None:
    """Replace the contents of *head* with *elements*, one per line."""
    for child in list(head.contents):
        child.extract()
    for element in elements:
        element.extract()
        head.append(NavigableString("\n"))
        head.append(element)
    head.append(NavigableString("\n"))
