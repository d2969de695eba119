"""Filesystem watcher that feeds source changes to ``Builder.rebuild``.

watchdog delivers events on its own thread. Each event is debounced per
path (editors often write a file several times in a row) and handed to the
builder, whose lock guarantees only one rebuild runs at a time.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Iterable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from mosaic.builder import Builder
from mosaic.errors import MosaicError
from mosaic.io import is_within, normalize
from mosaic.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DEBOUNCE = 0.2


class SourceChangeHandler(FileSystemEventHandler):
    """Translate watchdog events into incremental rebuilds.

    Args:
        builder: The builder to drive.
        debounce: Seconds during which repeated events for one path are dropped.
        exclude: Directories whose events are ignored (output, cache).
    """

    def __init__(
        self,
        builder: Builder,
        *,
        debounce: float = DEFAULT_DEBOUNCE,
        exclude: Iterable[Path] = (),
    ) -> None:
        self.builder = builder
        self.debounce = debounce
        self.exclude = [normalize(p) for p in exclude]
        self._last_handled: dict[Path, float] = {}

    def handle(self, src_path: str, is_directory: bool, *, deleted: bool = False) -> bool:
        """Rebuild for one changed path. Returns True if a rebuild ran."""
        if is_directory:
            return False
        path = normalize(src_path)
        if any(is_within(path, root) for root in self.exclude):
            return False
        if not is_within(path, self.builder.source_root):
            return False

        now = time.monotonic()
        if not deleted and now - self._last_handled.get(path, 0.0) < self.debounce:
            return False
        self._last_handled[path] = now

        logger.info("Change detected: %s", path)
        try:
            result = self.builder.rebuild(path)
        except MosaicError as exc:
            logger.error("Rebuild failed: %s", exc)
            return True
        for issue in result.errors:
            logger.error("%s", issue)
        if result.processed or result.copied or result.removed:
            logger.info(
                "Rebuilt %d page(s), copied %d asset(s) in %.2fs",
                result.processed,
                result.copied,
                result.duration,
            )
        return True

    def on_modified(self, event: FileSystemEvent) -> None:
        self.handle(event.src_path, event.is_directory)

    def on_created(self, event: FileSystemEvent) -> None:
        self.handle(event.src_path, event.is_directory)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self.handle(event.src_path, event.is_directory, deleted=True)

    def on_moved(self, event: FileSystemEvent) -> None:
        self.handle(event.src_path, event.is_directory, deleted=True)
        self.handle(event.dest_path, event.is_directory)


def start_watching(builder: Builder, *, debounce: float = DEFAULT_DEBOUNCE) -> Observer:
    """Start a recursive observer on the builder's source root and return it.

    The caller owns the observer and must ``stop()`` and ``join()`` it.
    """
    config = builder.config
    handler = SourceChangeHandler(
        builder,
        debounce=debounce,
        exclude=[config.output_root, config.cache_dir],
    )
    observer = Observer()
    observer.schedule(handler, str(builder.source_root), recursive=True)
    observer.start()
    logger.info("Watching %s", builder.source_root)
    return observer
