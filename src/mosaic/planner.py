"""Incremental rebuild planner — changed file(s) → minimal set of work.

Rules per changed file:
  page             → the page, plus any page that includes it
  partial / layout → every page that depends on it (transitively)
  new layout       → additionally every page under the layout's directory,
                     since folder layouts are found by convention
  new asset        → every page (any of them may now reference it)
  known asset      → the asset, plus every page that depends on it
  deleted file     → the file is dropped from the records and its dependants
                     are re-rendered; the Builder removes its output

With no changed path, every source file's (mtime, size) signal is compared
with the signal recorded at the previous plan or build.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from mosaic.cache.build_cache import BuildCache
from mosaic.cache.store import KeyValueStore, MemoryStore
from mosaic.classify import DocumentKind, FileAction, FileClassifier
from mosaic.graph import DependencyGraph
from mosaic.io import ResourceIO, is_within, normalize
from mosaic.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RebuildPlan:
    """The outcome of one planning step.

    Attributes:
        pages: Pages to recompose.
        assets: Assets whose copy decision must be re-evaluated.
        deleted: Source files that no longer exist.
    """

    pages: set[Path] = field(default_factory=set)
    assets: set[Path] = field(default_factory=set)
    deleted: set[Path] = field(default_factory=set)

    def merge(self, other: "RebuildPlan") -> None:
        self.pages |= other.pages
        self.assets |= other.assets
        self.deleted |= other.deleted

    def __bool__(self) -> bool:
        return bool(self.pages or self.assets or self.deleted)


class IncrementalPlanner:
    """Compute rebuild sets from change signals, the graph, and the cache.

    Args:
        classifier: Decides page / partial / layout / asset per path.
        graph: Dependency graph from the previous build.
        cache: Build cache (used to recognise known files).
        io: Resource reader, for listing and stat signals.
        signals: Store of ``path → [mtime_ns, size]``; ephemeral by default.
    """

    def __init__(
        self,
        classifier: FileClassifier,
        graph: DependencyGraph,
        cache: BuildCache,
        io: ResourceIO,
        signals: KeyValueStore | None = None,
    ) -> None:
        self.classifier = classifier
        self.graph = graph
        self.cache = cache
        self.io = io
        self.signals = signals if signals is not None else MemoryStore()

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def snapshot(self, files: Iterable[Path]) -> None:
        """Record the current signal of every file in *files*, replacing the old record."""
        self.signals.clear()
        for path in files:
            self._record_signal(path)

    def _record_signal(self, path: Path) -> bool:
        signature = self.io.stat_signature(path)
        if signature is None:
            return False
        self.signals.set(str(path), list(signature))
        return True

    def is_known(self, path: Path) -> bool:
        """True if *path* was seen by a previous plan or build."""
        return str(path) in self.signals or self.cache.is_tracked(path)

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(self, changed: Path | None = None) -> RebuildPlan:
        """Return what must be rebuilt after *changed* (or after any change)."""
        if changed is None:
            return self._plan_all()
        path = normalize(changed)
        plan = RebuildPlan()
        if not is_within(path, self.io.source_root):
            return plan
        if self.io.exists(path):
            known = self.is_known(path)
            self._record_signal(path)
            self._plan_file(path, plan, new=not known)
        else:
            self._plan_deleted(path, plan)
        logger.debug("Plan for %s: %d page(s), %d asset(s)", path, len(plan.pages), len(plan.assets))
        return plan

    def _plan_all(self) -> RebuildPlan:
        plan = RebuildPlan()
        seen: set[str] = set()
        for path in self.io.list(self.io.source_root):
            key = str(path)
            seen.add(key)
            previous = self.signals.get(key)
            signature = self.io.stat_signature(path)
            if signature is None or (previous is not None and tuple(previous) == signature):
                continue
            self.signals.set(key, list(signature))
            self._plan_file(path, plan, new=previous is None)
        for key in self.signals.keys():
            if key not in seen:
                self._plan_deleted(Path(key), plan)
        return plan

    def _plan_file(self, path: Path, plan: RebuildPlan, *, new: bool) -> None:
        action = self.classifier.classify(path)
        if action is FileAction.IGNORE:
            return
        if action is FileAction.COPY:
            plan.assets.add(path)
            if new and not self.graph.dependants(path):
                plan.pages |= self.graph.pages
            else:
                plan.pages |= set(self.graph.get_affected_pages(path))
            return

        kind = self.classifier.kind(path)
        if kind is DocumentKind.PAGE:
            self.graph.add_page(path)
            plan.pages.add(path)
            plan.pages |= set(self.graph.get_affected_pages(path))
            return

        plan.pages |= set(self.graph.get_affected_pages(path))
        if kind is DocumentKind.LAYOUT and new:
            plan.pages |= {page for page in self.graph.pages if is_within(page, path.parent)}

    def _plan_deleted(self, path: Path, plan: RebuildPlan) -> None:
        self.signals.delete(str(path))
        plan.deleted.add(path)
        plan.pages |= {page for page in self.graph.get_affected_pages(path) if page != path}
