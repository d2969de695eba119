"""Document-tree helpers shared by the composition modules.

Documents are BeautifulSoup trees built with the stdlib ``html.parser``
builder: it keeps fragments as fragments (no implied ``<html>``/``<body>``),
preserves whitespace, and keeps comments as ``Comment`` nodes so SSI markers
can be found by node type.
"""

from __future__ import annotations

import copy

from bs4 import BeautifulSoup, Comment, Doctype, NavigableString, Tag
from bs4.dammit import EntitySubstitution
from bs4.element import PageElement
from bs4.formatter import HTMLFormatter

SLOT_ATTR = "data-slot"
LAYOUT_ATTR = "data-layout"
DEFAULT_SLOT = ""

# Minimal escaping, HTML5 void elements without a trailing slash, boolean
# attributes without ="".
FORMATTER = HTMLFormatter(
    entity_substitution=EntitySubstitution.substitute_xml,
    void_element_close_prefix=None,
    empty_attributes_are_booleans=True,
)


def parse(text: str) -> BeautifulSoup:
    return BeautifulSoup(text, "html.parser")


def render(node: PageElement) -> str:
    """Serialise *node* (a soup, tag, or string) back to HTML."""
    if isinstance(node, Tag):
        return node.decode(formatter=FORMATTER)
    if isinstance(node, Comment):
        return f"<!--{node}-->"
    return EntitySubstitution.substitute_xml(str(node))


def clone(node: PageElement) -> PageElement:
    return copy.copy(node)


def is_blank(node: PageElement) -> bool:
    """True for whitespace-only text nodes."""
    return isinstance(node, NavigableString) and not isinstance(node, Comment) and not node.strip()


def attached(node: PageElement, root: Tag) -> bool:
    """True if *node* still hangs off *root* (it was not extracted)."""
    return node is root or any(parent is root for parent in node.parents)


def move_children(source: Tag) -> list[PageElement]:
    """Detach and return every child of *source*, in order."""
    return [child.extract() for child in list(source.contents)]


def replace_with_nodes(node: PageElement, nodes: list[PageElement]) -> None:
    """Replace *node* in its tree with *nodes* (possibly none)."""
    if not nodes:
        node.extract()
        return
    anchor = node
    for new in nodes:
        anchor.insert_after(new)
        anchor = new
    node.extract()


def top_level_tags(soup: Tag, name: str | None = None) -> list[Tag]:
    return [
        child
        for child in soup.contents
        if isinstance(child, Tag) and (name is None or child.name == name)
    ]


def is_full_document(soup: Tag) -> bool:
    """True if the tree has a top-level ``<html>`` element."""
    return bool(top_level_tags(soup, "html"))


def is_layout_link(tag: Tag) -> bool:
    return tag.name == "link" and "layout" in _rel(tag)


def _rel(tag: Tag) -> list[str]:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [r.lower() for r in rel]


def rel_values(tag: Tag) -> list[str]:
    """Return the ``rel`` tokens of *tag*, lower-cased."""
    return _rel(tag)


def ensure_child(parent: Tag, name: str, soup: BeautifulSoup, *, first: bool = False) -> Tag:
    """Return the direct child ``<name>`` of *parent*, creating it if missing."""
    existing = parent.find(name, recursive=False)
    if isinstance(existing, Tag):
        return existing
    tag = soup.new_tag(name)
    if first:
        parent.insert(0, tag)
    else:
        parent.append(tag)
    return tag


def strip_template_markers(soup: Tag) -> None:
    """Remove every trace of the templating vocabulary from *soup*.

    Drops ``data-slot`` and ``data-layout`` attributes and ``<link
    rel="layout">`` elements, and unwraps leftover ``<slot>`` and
    ``<template data-slot>`` elements, keeping their children.
    """
    for link in soup.find_all("link"):
        if is_layout_link(link):
            link.decompose()
    for slot in soup.find_all("slot"):
        slot.unwrap()
    for template in soup.find_all("template", attrs={SLOT_ATTR: True}):
        template.unwrap()
    for tag in soup.find_all(attrs={SLOT_ATTR: True}):
        del tag[SLOT_ATTR]
    for tag in soup.find_all(attrs={LAYOUT_ATTR: True}):
        del tag[LAYOUT_ATTR]


def tidy_doctype(soup: Tag) -> None:
    """Drop whitespace right after a doctype; bs4 already ends it with a newline."""
    for node in list(soup.contents):
        if isinstance(node, Doctype):
            following = node.next_sibling
            if following is not None and is_blank(following):
                following.extract()
            return
