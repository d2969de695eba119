"""Named slots: how caller content flows into a component or layout.

Capture (caller side), from the children of an ``<include>`` element or
from a page body:
  - an element with ``data-slot="name"`` contributes itself to slot *name*
  - a ``<template data-slot="name">`` contributes its children
  - every other non-blank node goes to the default slot

Projection (target side), for each placeholder in document order:
  - ``<slot name="x">fallback</slot>`` is replaced by the content of slot x
  - ``<el data-slot="x">fallback</el>`` is replaced wholesale when the caller
    supplied slot x as element(s); otherwise its children are replaced
  - a placeholder with no matching caller content keeps its fallback

``data-slot="default"`` and an unnamed ``<slot>`` both mean the default slot.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from bs4 import Tag
from bs4.element import PageElement

from mosaic.compose.html import (
    DEFAULT_SLOT,
    SLOT_ATTR,
    attached,
    clone,
    is_blank,
    move_children,
    replace_with_nodes,
)


@dataclass
class SlotContent:
    """Caller-supplied content for one slot.

    Attributes:
        nodes: Detached nodes, in caller order.
        replaces: True if the caller gave whole elements, which then stand in
            for the placeholder element itself.
    """

    nodes: list[PageElement] = field(default_factory=list)
    replaces: bool = True

    def add(self, nodes: list[PageElement], *, replaces: bool) -> None:
        self.nodes.extend(nodes)
        self.replaces = self.replaces and replaces

    @property
    def has_content(self) -> bool:
        return any(not is_blank(n) for n in self.nodes)


def slot_name(value: object) -> str:
    """Normalise a slot attribute value; ``default`` and empty mean the default slot."""
    if isinstance(value, list):
        value = " ".join(value)
    name = str(value or "").strip()
    return DEFAULT_SLOT if name in ("", "default") else name


def capture_slots(nodes: list[PageElement]) -> dict[str, SlotContent]:
    """Detach *nodes* and sort them into slots.

    Blank text between named elements is dropped. The default slot is only
    present when it holds at least one element or non-blank text.
    """
    slots: dict[str, SlotContent] = {}
    loose: list[PageElement] = []

    for node in nodes:
        node.extract()
        if isinstance(node, Tag) and node.has_attr(SLOT_ATTR):
            name = slot_name(node[SLOT_ATTR])
            if node.name == "template":
                content, replaces = move_children(node), False
            else:
                del node[SLOT_ATTR]
                content, replaces = [node], True
            slots.setdefault(name, SlotContent()).add(content, replaces=replaces)
        else:
            loose.append(node)

    if any(not is_blank(n) for n in loose):
        slots.setdefault(DEFAULT_SLOT, SlotContent()).add(_trim(loose), replaces=False)
    return slots


def _trim(nodes: list[PageElement]) -> list[PageElement]:
    start, end = 0, len(nodes)
    while start < end and is_blank(nodes[start]):
        start += 1
    while end > start and is_blank(nodes[end - 1]):
        end -= 1
    return nodes[start:end]


def find_placeholders(root: Tag) -> list[tuple[Tag, str]]:
    """Return ``(element, slot name)`` for every placeholder under *root*."""
    found: list[tuple[Tag, str]] = []
    for tag in root.find_all(True):
        if tag.name == "slot":
            found.append((tag, slot_name(tag.get("name"))))
        elif tag.has_attr(SLOT_ATTR) and tag.name != "template":
            found.append((tag, slot_name(tag[SLOT_ATTR])))
    return found


def project_slots(root: Tag, slots: dict[str, SlotContent]) -> set[str]:
    """Fill the placeholders under *root* with *slots*.

    Placeholders are collected before anything is inserted, so caller content
    is never treated as a placeholder itself. A slot used by more than one
    placeholder is copied into each.

    Returns:
        Names of the slots that were consumed.
    """
    consumed: set[str] = set()
    for placeholder, name in find_placeholders(root):
        if not attached(placeholder, root):
            continue
        content = slots.get(name)
        if content is None or not content.has_content:
            _keep_fallback(placeholder)
            continue
        nodes = [clone(n) for n in content.nodes]
        consumed.add(name)
        if placeholder.name == "slot" or content.replaces:
            replace_with_nodes(placeholder, nodes)
        else:
            placeholder.clear()
            for node in nodes:
                placeholder.append(node)
            del placeholder[SLOT_ATTR]
    return consumed


def _keep_fallback(placeholder: Tag) -> None:
    if placeholder.name == "slot":
        placeholder.unwrap()
    else:
        del placeholder[SLOT_ATTR]
