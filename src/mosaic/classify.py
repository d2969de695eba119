"""File classifier — labels each source path as emit / copy / ignore / skip.

Precedence (first match wins):
  1. Explicit allow  — ``copy`` globs and ``always_copy`` paths → COPY
  2. Explicit deny   — ``ignore`` globs, the config file, VCS/OS noise → IGNORE
  3. Naming convention — any path part starting with ``_`` or ``.`` marks a
     non-emitting file: HTML/Markdown there → SKIP (partials, layouts);
     other files → COPY (assets, copied only when referenced)
  4. Default — ``.html``/``.htm``/``.md`` → EMIT (pages); everything else → COPY

The rest of mosaic consumes only the resulting ``FileAction`` and
``DocumentKind`` per path, never the glob logic.
"""

from __future__ import annotations

import enum
from fnmatch import fnmatch
from pathlib import Path, PurePosixPath

from mosaic.config import PROJECT_CONFIG_NAME, BuildConfig

PAGE_EXTENSIONS: frozenset[str] = frozenset([".html", ".htm", ".md"])
HTML_EXTENSIONS: frozenset[str] = frozenset([".html", ".htm"])

_ALWAYS_IGNORED: tuple[str, ...] = (
    PROJECT_CONFIG_NAME,
    ".DS_Store",
    "Thumbs.db",
    "*.swp",
    "*~",
    ".git/**",
    ".hg/**",
    ".svn/**",
    "node_modules/**",
)


class FileAction(str, enum.Enum):
    EMIT = "emit"
    COPY = "copy"
    IGNORE = "ignore"
    SKIP = "skip"


class DocumentKind(str, enum.Enum):
    PAGE = "page"
    PARTIAL = "partial"
    LAYOUT = "layout"
    ASSET = "asset"


def is_layout_name(name: str) -> bool:
    """True for ``_layout.html`` and ``_<anything>layout.htm(l)`` file names."""
    lower = name.lower()
    return lower.startswith("_") and (lower.endswith("layout.html") or lower.endswith("layout.htm"))


def _match(rel: PurePosixPath, pattern: str) -> bool:
    text = rel.as_posix()
    pattern = pattern.lstrip("/")
    if pattern.endswith("/**"):
        prefix = pattern[:-3]
        return text == prefix or text.startswith(prefix + "/") or any(
            part == prefix for part in rel.parts[:-1]
        )
    if "/" not in pattern:
        return fnmatch(rel.name, pattern) or fnmatch(text, pattern)
    return fnmatch(text, pattern)


class FileClassifier:
    """Classify paths under ``config.source_root``."""

    def __init__(self, config: BuildConfig) -> None:
        self.config = config
        self.source_root = config.source_root
        self._layouts_dir = PurePosixPath(config.layouts_dir.strip("/")) if config.layouts_dir else None
        self._default_layout = PurePosixPath(config.default_layout.strip("/")) if config.default_layout else None
        self._components_dir = PurePosixPath(config.components_dir.strip("/")) if config.components_dir else None

    def relative(self, path: Path) -> PurePosixPath:
        return PurePosixPath(Path(path).relative_to(self.source_root).as_posix())

    def is_always_copied(self, path: Path) -> bool:
        """True if *path* lives under an ``always_copy`` path or matches a ``copy`` glob."""
        rel = self.relative(path)
        text = rel.as_posix()
        for entry in self.config.always_copy:
            entry = entry.strip("/")
            if text == entry or text.startswith(entry + "/"):
                return True
        return any(_match(rel, pattern) for pattern in self.config.copy)

    def classify(self, path: Path) -> FileAction:
        rel = self.relative(path)

        # 1. Explicit allow
        if self.is_always_copied(path):
            return FileAction.COPY

        # 2. Explicit deny
        if any(_match(rel, p) for p in (*_ALWAYS_IGNORED, *self.config.ignore)):
            return FileAction.IGNORE

        suffix = rel.suffix.lower()

        # 3. Naming convention, then the component directory
        if any(part.startswith(("_", ".")) for part in rel.parts):
            return FileAction.SKIP if suffix in PAGE_EXTENSIONS else FileAction.COPY
        if self._components_dir is not None and self._components_dir in rel.parents:
            return FileAction.SKIP if suffix in PAGE_EXTENSIONS else FileAction.COPY

        # 4. Default
        return FileAction.EMIT if suffix in PAGE_EXTENSIONS else FileAction.COPY

    def kind(self, path: Path) -> DocumentKind:
        rel = self.relative(path)
        suffix = rel.suffix.lower()
        if suffix not in PAGE_EXTENSIONS:
            return DocumentKind.ASSET
        if suffix in HTML_EXTENSIONS and (
            is_layout_name(rel.name)
            or rel == self._default_layout
            or (self._layouts_dir is not None and self._layouts_dir in rel.parents and rel.name.startswith("_"))
        ):
            return DocumentKind.LAYOUT
        if self.classify(path) is FileAction.EMIT:
            return DocumentKind.PAGE
        return DocumentKind.PARTIAL
