"""Build driver for full and incremental builds.

Every build runs in two strictly ordered phases:

  Phase 1  render-and-track: compose each page, scan its output for asset
           references, write it, and fold edges/references/cache entries
           into the shared state on the driver thread.
  Phase 2  asset copy: only once phase 1 has finished for every page, copy
           each asset that is referenced somewhere (or always copied) and
           remove copies that no page needs any more.

Composition may run on a thread pool (``workers > 1``); its results are
merged in sorted page order, so output never depends on scheduling.

Error policy:
  - Page errors are caught at the page boundary and recorded.
  - With ``fail_on`` set, the first page error raises BuildError.
  - The cache is persisted only when the build recorded no errors.
"""

from __future__ import annotations

import json
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable

from mosaic.assets import AssetReference, AssetTracker
from mosaic.cache import BuildCache, JsonFileStore, MemoryStore, hash_content
from mosaic.classify import FileAction, FileClassifier
from mosaic.compose import Composer, CompositionResult
from mosaic.config import BuildConfig
from mosaic.errors import BuildError, MosaicError
from mosaic.graph import DependencyEdge, DependencyGraph, EdgeKind
from mosaic.io import ResourceIO
from mosaic.links import build_sitemap, output_relpath, rewrite_page_links
from mosaic.logging import get_logger
from mosaic.minify import minify_html
from mosaic.planner import IncrementalPlanner

logger = get_logger(__name__)

SITEMAP_NAME = "sitemap.xml"

# Settings that change what a page renders to or where it is written.
_OUTPUT_SETTINGS = ("pretty_urls", "minify", "layouts_dir", "default_layout", "max_depth", "components_dir")


def settings_fingerprint(config: BuildConfig) -> str:
    """Return a hash of the output-affecting settings in *config*."""
    values = {name: getattr(config, name) for name in _OUTPUT_SETTINGS}
    return hash_content(json.dumps(values, sort_keys=True))


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class BuildIssue:
    """A structured error or warning for reporting."""

    kind: str
    message: str
    path: Path | None = None
    suggestions: list[str] = field(default_factory=list)
    recoverable: bool = False

    @classmethod
    def from_error(cls, exc: MosaicError) -> "BuildIssue":
        return cls(
            kind=exc.kind,
            message=exc.message,
            path=exc.path,
            suggestions=list(exc.suggestions),
            recoverable=exc.recoverable,
        )

    def __str__(self) -> str:
        return f"{self.message} in {self.path}" if self.path is not None else self.message


@dataclass
class BuildResult:
    """Outcome of one build invocation.

    Attributes:
        processed: Pages composed and written.
        copied: Assets copied.
        skipped: Pages and assets left untouched because they were up to date.
        errors: Page errors.
        warnings: Recoverable problems.
        outputs: Files written, in write order.
        removed: Output files deleted.
        duration: Wall-clock seconds.
    """

    processed: int = 0
    copied: int = 0
    skipped: int = 0
    errors: list[BuildIssue] = field(default_factory=list)
    warnings: list[BuildIssue] = field(default_factory=list)
    outputs: list[Path] = field(default_factory=list)
    removed: list[Path] = field(default_factory=list)
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class _PageOutcome:
    page: Path
    composition: CompositionResult | None = None
    html: str = ""
    references: set[AssetReference] = field(default_factory=set)
    error: MosaicError | None = None


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class Builder:
    """Owns the graph, tracker, cache, and planner for one source tree.

    Args:
        config: Build configuration.
        io: Resource reader/writer; defaults to one for the config roots.
        on_rebuild_complete: Called with the written paths after each
            incremental rebuild.
    """

    def __init__(
        self,
        config: BuildConfig,
        *,
        io: ResourceIO | None = None,
        on_rebuild_complete: Callable[[list[Path]], None] | None = None,
    ) -> None:
        self.config = config
        self.io = io or ResourceIO(config.source_root, config.output_root)
        self.source_root = self.io.source_root
        self.output_root = config.output_root
        self.classifier = FileClassifier(config)
        self.composer = Composer(config, self.io)
        self.graph = DependencyGraph()
        self.tracker = AssetTracker(self.io)
        store = JsonFileStore(config.cache_file) if config.cache else MemoryStore()
        self.cache = BuildCache(store, self.io, settings=settings_fingerprint(config))
        self.planner = IncrementalPlanner(self.classifier, self.graph, self.cache, self.io)
        self.on_rebuild_complete = on_rebuild_complete
        self._lock = threading.Lock()
        self._built = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def output_path(self, page: Path) -> Path:
        rel = PurePosixPath(Path(page).relative_to(self.source_root).as_posix())
        return self.output_root / output_relpath(rel, pretty_urls=self.config.pretty_urls)

    def asset_output_path(self, asset: Path) -> Path:
        return self.output_root / Path(asset).relative_to(self.source_root)

    def build(self) -> BuildResult:
        """Run a full build of the source tree.

        Raises:
            BuildError: Under ``fail_on`` when a page fails.
            FileSystemError: If output cannot be written.
        """
        with self._lock:
            return self._full_build()

    def rebuild(self, changed: Path | None = None) -> BuildResult:
        """Rebuild what *changed* affects (or whatever changed, if None).

        The first call on a fresh Builder falls back to a full build.
        """
        with self._lock:
            if not self._built:
                result = self._full_build()
            else:
                result = self._incremental_build(changed)
        if self.on_rebuild_complete is not None:
            self.on_rebuild_complete(list(result.outputs))
        return result

    def clean(self) -> None:
        """Delete the output directory and the persisted cache."""
        with self._lock:
            self.io.remove_tree(self.output_root)
            self.cache.clear()
            self._built = False

    # ------------------------------------------------------------------
    # Full build
    # ------------------------------------------------------------------

    def _full_build(self) -> BuildResult:
        start = time.perf_counter()
        result = BuildResult()
        if self.config.clean:
            logger.info("Cleaning %s", self.output_root)
            self.io.remove_tree(self.output_root)

        self.cache.load()
        self.cache.begin_build()
        self.graph.clear()
        self.tracker = AssetTracker(self.io)

        files = list(self.io.list(self.source_root))
        pages: list[Path] = []
        assets: list[Path] = []
        for path in files:
            action = self.classifier.classify(path)
            if action is FileAction.EMIT:
                pages.append(path)
                self.graph.add_page(path)
            elif action is FileAction.COPY:
                assets.append(path)
        logger.debug("Found %d page(s) and %d asset(s) in %s", len(pages), len(assets), self.source_root)

        self._render(pages, result, use_cache=self.config.cache)
        self._copy_assets(assets, result)
        self._remove_stale_pages(set(pages), result)
        self._finish(result, pages)
        self.planner.snapshot(files)
        self._built = True
        result.duration = time.perf_counter() - start
        return result

    # ------------------------------------------------------------------
    # Incremental build
    # ------------------------------------------------------------------

    def _incremental_build(self, changed: Path | None) -> BuildResult:
        start = time.perf_counter()
        result = BuildResult()
        self.cache.begin_build()
        if changed is not None:
            self.tracker.invalidate(Path(changed))

        plan = self.planner.plan(changed)
        for path in plan.assets | plan.deleted:
            self.tracker.invalidate(path)
        if not plan:
            result.duration = time.perf_counter() - start
            return result
        logger.info(
            "Rebuilding %d page(s)%s",
            len(plan.pages),
            f" after change to {changed}" if changed is not None else "",
        )

        released: set[Path] = set()
        for path in sorted(plan.deleted):
            released |= self._remove_deleted(path, result)

        pages = sorted(p for p in plan.pages if self.io.exists(p))
        previous = {ref.asset for page in pages for ref in self.tracker.references_for(page)}
        self._render(pages, result, use_cache=False)

        current = {ref.asset for page in pages for ref in self.tracker.references_for(page)}
        candidates = {
            asset
            for asset in plan.assets | released | previous | current
            if self.io.exists(asset) and self.classifier.classify(asset) is FileAction.COPY
        }
        self._copy_assets(sorted(candidates), result)
        self._finish(result, sorted(self.graph.pages))
        result.duration = time.perf_counter() - start
        return result

    def _remove_deleted(self, path: Path, result: BuildResult) -> set[Path]:
        """Delete the outputs of a vanished source file.

        Returns the assets the file referenced, whose copies may now be orphaned.
        """
        entry = self.cache.entry(path)
        targets = [Path(entry.output)] if entry is not None and entry.output else []
        released = {ref.asset for ref in self.tracker.references_for(path)}
        if self.graph.is_page(path):
            targets.append(self.output_path(path))
            self.tracker.remove_page(path)
        elif self.classifier.classify(path) is FileAction.COPY:
            targets.append(self.asset_output_path(path))
        for target in dict.fromkeys(targets):
            if self.io.remove(target):
                logger.info("Removed %s", target)
                result.removed.append(target)
        self.graph.remove_node(path)
        self.tracker.invalidate(path)
        self.cache.forget(path)
        return released

    # ------------------------------------------------------------------
    # Phase 1: render and track
    # ------------------------------------------------------------------

    def _render(self, pages: Iterable[Path], result: BuildResult, *, use_cache: bool) -> None:
        todo: list[Path] = []
        for page in sorted(pages):
            if use_cache and self.cache.is_up_to_date(page, self.output_path(page)):
                self._restore(page)
                result.skipped += 1
                logger.debug("Up to date: %s", page)
            else:
                todo.append(page)

        if self.config.workers > 1 and len(todo) > 1:
            pool = ThreadPoolExecutor(max_workers=self.config.workers)
            try:
                futures = [pool.submit(self._render_page, page) for page in todo]
                for future in futures:
                    self._merge(future.result(), result)
            finally:
                pool.shutdown(wait=True, cancel_futures=True)
        else:
            for page in todo:
                self._merge(self._render_page(page), result)

    def _render_page(self, page: Path) -> _PageOutcome:
        """Compose and scan one page. Touches no shared state."""
        try:
            document = self.composer.load(page, self.classifier.kind(page))
            composition = self.composer.compose(document)
        except FileNotFoundError as exc:
            logger.debug("Page vanished before it was read: %s (%s)", page, exc)
            return _PageOutcome(page)
        except MosaicError as exc:
            return _PageOutcome(page, error=exc)

        references = self.tracker.track_references(composition.html, page)
        html = rewrite_page_links(composition.html, pretty_urls=self.config.pretty_urls)
        if self.config.minify:
            html = minify_html(html)
        return _PageOutcome(page, composition, html, references)

    def _merge(self, outcome: _PageOutcome, result: BuildResult) -> None:
        page = outcome.page
        if outcome.error is not None:
            issue = BuildIssue.from_error(outcome.error)
            result.errors.append(issue)
            logger.error("%s", issue)
            self.cache.forget(page)
            if self.config.fail_fast:
                raise BuildError(issue.message, [outcome.error]) from outcome.error
            return

        composition = outcome.composition
        if composition is None:
            return
        for warning in composition.warnings:
            result.warnings.append(BuildIssue.from_error(warning))

        asset_edges = [DependencyEdge(page, ref.asset, EdgeKind.ASSET) for ref in sorted(outcome.references)]
        edges = list(dict.fromkeys([*composition.edges, *asset_edges]))
        for node in composition.visited:
            self.graph.replace_edges(node, edges)
        self.graph.add_page(page)
        self.tracker.record(page, outcome.references)

        output = self.output_path(page)
        self.io.write(output, outcome.html)
        result.outputs.append(output)
        result.processed += 1
        logger.debug("Wrote %s", output)

        previous = self.cache.entry(page)
        if previous is not None and previous.output and Path(previous.output) != output:
            if self.io.remove(Path(previous.output)):
                logger.info("Removed %s", previous.output)
                result.removed.append(Path(previous.output))

        stylesheets = {ref.asset for ref in outcome.references if ref.asset.suffix.lower() == ".css"}
        self.cache.record_page(
            page,
            dependencies=sorted(set(composition.dependencies) | set(composition.lookups) | stylesheets),
            edges=edges,
            assets=outcome.references,
            output=output,
        )

    def _restore(self, page: Path) -> None:
        """Feed a skipped page's cached edges and references back into the build."""
        entry = self.cache.entry(page)
        if entry is None:
            return
        self.graph.add_page(page)
        self.graph.add_edges(entry.edges)
        self.tracker.record(page, entry.assets)

    # ------------------------------------------------------------------
    # Phase 2: assets
    # ------------------------------------------------------------------

    def _should_copy(self, asset: Path) -> bool:
        return self.tracker.is_referenced(asset) or self.classifier.is_always_copied(asset)

    def _copy_assets(self, assets: Iterable[Path], result: BuildResult) -> None:
        for asset in sorted(assets):
            target = self.asset_output_path(asset)
            if not self._should_copy(asset):
                if self.io.remove(target):
                    logger.debug("Removed unreferenced asset %s", target)
                    result.removed.append(target)
                self.cache.forget(asset)
                continue
            if self.config.cache and target.is_file() and not self.cache.has_changed(asset):
                result.skipped += 1
                continue
            self.io.copy(asset, target)
            self.cache.record_hash(asset)
            result.copied += 1
            result.outputs.append(target)
            logger.debug("Copied %s", target)

    # ------------------------------------------------------------------
    # Finishing
    # ------------------------------------------------------------------

    def _remove_stale_pages(self, pages: set[Path], result: BuildResult) -> None:
        """Delete outputs of cached pages whose sources are gone."""
        for page in self.cache.pages:
            if page not in pages:
                self._remove_deleted(page, result)

    def _finish(self, result: BuildResult, pages: Iterable[Path]) -> None:
        if self.config.sitemap:
            outputs = [self.output_path(page) for page in pages]
            sitemap = self.output_root / SITEMAP_NAME
            self.io.write(sitemap, build_sitemap(outputs, self.output_root, self.config.base_url))
            result.outputs.append(sitemap)
        if result.errors:
            logger.info("Build finished with %d error(s); cache not saved", len(result.errors))
            return
        if self.config.cache:
            self.cache.persist()
