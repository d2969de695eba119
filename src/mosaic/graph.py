"""Dependency graph between source files.

Edges point from a dependant (page, partial, or layout) to what it needs
(an included file, a layout, an asset). The graph keeps both directions:

  forward   node → {target: kind}     "what does this file pull in?"
  reverse   target → {node}           "who pulls this file in?"

Reverse queries walk the reverse adjacency breadth-first with a visited set,
so an authoring cycle cannot hang them.
"""

from __future__ import annotations

import enum
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable


class EdgeKind(str, enum.Enum):
    INCLUDE = "include"
    LAYOUT = "layout"
    ASSET = "asset"


@dataclass(frozen=True)
class DependencyEdge:
    source: Path
    target: Path
    kind: EdgeKind

    def to_dict(self) -> dict[str, str]:
        return {"source": str(self.source), "target": str(self.target), "kind": self.kind.value}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "DependencyEdge":
        return cls(Path(data["source"]), Path(data["target"]), EdgeKind(data["kind"]))


class DependencyGraph:
    """Forward and reverse adjacency over source paths."""

    def __init__(self) -> None:
        self._forward: dict[Path, dict[Path, EdgeKind]] = {}
        self._reverse: dict[Path, set[Path]] = {}
        self._pages: set[Path] = set()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def clear(self) -> None:
        self._forward.clear()
        self._reverse.clear()
        self._pages.clear()

    def add_page(self, page: Path) -> None:
        self._pages.add(page)

    def add_edge(self, source: Path, target: Path, kind: EdgeKind = EdgeKind.INCLUDE) -> None:
        """Record that *source* depends on *target*. Re-adding an edge is a no-op."""
        self._forward.setdefault(source, {}).setdefault(target, kind)
        self._reverse.setdefault(target, set()).add(source)

    def add_edges(self, edges: Iterable[DependencyEdge]) -> None:
        for edge in edges:
            self.add_edge(edge.source, edge.target, edge.kind)

    def clear_edges(self, node: Path) -> None:
        """Drop every forward edge of *node*; edges pointing at it stay."""
        for target in self._forward.pop(node, {}):
            dependants = self._reverse.get(target)
            if dependants is not None:
                dependants.discard(node)
                if not dependants:
                    del self._reverse[target]

    def replace_edges(self, node: Path, edges: Iterable[DependencyEdge]) -> None:
        """Swap the forward edges of *node* for those in *edges* whose source is *node*."""
        self.clear_edges(node)
        for edge in edges:
            if edge.source == node:
                self.add_edge(edge.source, edge.target, edge.kind)

    def remove_node(self, node: Path) -> None:
        """Forget a deleted file.

        Its forward edges are dropped. Edges other files hold *to* it are
        kept, so recreating the file still reaches its dependants.
        """
        self.clear_edges(node)
        self._pages.discard(node)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def pages(self) -> set[Path]:
        return set(self._pages)

    def is_page(self, path: Path) -> bool:
        return path in self._pages

    def edges_from(self, node: Path) -> list[DependencyEdge]:
        return [DependencyEdge(node, target, kind) for target, kind in self._forward.get(node, {}).items()]

    def dependants(self, node: Path) -> set[Path]:
        """Direct reverse neighbours of *node*."""
        return set(self._reverse.get(node, ()))

    def get_dependencies(self, node: Path) -> list[Path]:
        """Return everything *node* depends on, transitively, in discovery order."""
        seen: dict[Path, None] = {}
        queue = deque(self._forward.get(node, {}))
        while queue:
            current = queue.popleft()
            if current in seen or current == node:
                continue
            seen[current] = None
            queue.extend(self._forward.get(current, {}))
        return list(seen)

    def get_affected_pages(self, changed: Path) -> list[Path]:
        """Return every registered page that reaches *changed* through forward edges.

        *changed* itself is included when it is a page. The result is sorted.
        """
        visited: set[Path] = {changed}
        queue = deque([changed])
        while queue:
            current = queue.popleft()
            for dependant in self._reverse.get(current, ()):
                if dependant not in visited:
                    visited.add(dependant)
                    queue.append(dependant)
        return sorted(p for p in visited if p in self._pages)

    def __len__(self) -> int:
        return sum(len(targets) for targets in self._forward.values())
