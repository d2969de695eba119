"""Persisted content-hash cache used to skip unchanged pages.

A page is up to date iff:
  - its own SHA-256 matches the recorded one,
  - every dependency recorded for it (includes, layouts, stylesheets) still
    hashes to the value it had when the page was last built, and
  - its output file still exists at the path the current settings give it,
    and
  - the output-affecting settings match the ones the cache was written with.

A cache written under other settings keeps only the page output paths, so
the builder can remove outputs that moved. The cache is loaded once per build, mutated in memory, and persisted only
by the caller after a build without errors. Current file hashes are memoised
for the duration of one build; call ``begin_build()`` to reset them.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from mosaic.assets import AssetReference
from mosaic.cache.store import KeyValueStore
from mosaic.graph import DependencyEdge
from mosaic.io import ResourceIO
from mosaic.logging import get_logger

logger = get_logger(__name__)

_MISSING = ""


def hash_content(content: bytes | str) -> str:
    """Return the SHA-256 hex digest of *content*."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()


@dataclass
class CacheEntry:
    """What the cache remembers about one successfully built page.

    Attributes:
        content_hash: Hash of the page source.
        dependencies: Dependency path → its hash at build time (``""`` if it
            was missing then).
        edges: Graph edges found while composing the page.
        assets: Asset references found in the page output.
        output: Output file written for the page.
    """

    content_hash: str
    dependencies: dict[str, str] = field(default_factory=dict)
    edges: list[DependencyEdge] = field(default_factory=list)
    assets: list[AssetReference] = field(default_factory=list)
    output: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "content_hash": self.content_hash,
            "dependencies": dict(sorted(self.dependencies.items())),
            "edges": [edge.to_dict() for edge in self.edges],
            "assets": [{"asset": str(ref.asset), "depth": ref.depth} for ref in sorted(self.assets)],
            "output": self.output,
        }

    @classmethod
    def from_dict(cls, page: Path, data: Any) -> "CacheEntry | None":
        """Rebuild an entry from JSON; None if *data* is not a valid entry."""
        if not isinstance(data, dict) or not isinstance(data.get("content_hash"), str):
            return None
        try:
            return cls(
                content_hash=data["content_hash"],
                dependencies={str(k): str(v) for k, v in (data.get("dependencies") or {}).items()},
                edges=[DependencyEdge.from_dict(e) for e in data.get("edges") or []],
                assets=[
                    AssetReference(page, Path(a["asset"]), int(a.get("depth", 0)))
                    for a in data.get("assets") or []
                ],
                output=data.get("output"),
            )
        except (KeyError, TypeError, ValueError, AttributeError):
            return None


class BuildCache:
    """Content hashes and per-page entries, backed by a KeyValueStore.

    Args:
        store: Where the cache lives between builds.
        io: Reader used to hash current file contents.
        settings: Fingerprint of the settings that shape page output.
    """

    def __init__(self, store: KeyValueStore, io: ResourceIO, settings: str = "") -> None:
        self.store = store
        self.io = io
        self.settings = settings
        self._hashes: dict[str, str] = {}
        self._entries: dict[str, CacheEntry] = {}
        self._current: dict[Path, str] = {}
        self._stale = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Load the store; anything malformed is dropped, never raised."""
        self.store.load()
        hashes = self.store.get("hashes", {})
        entries = self.store.get("entries", {})
        self._hashes = (
            {str(k): v for k, v in hashes.items() if isinstance(v, str)} if isinstance(hashes, dict) else {}
        )
        self._entries = {}
        if isinstance(entries, dict):
            for key, raw in entries.items():
                entry = CacheEntry.from_dict(Path(key), raw)
                if entry is not None:
                    self._entries[key] = entry
        self._current.clear()
        self._stale = bool(self._entries or self._hashes) and self.store.get("settings") != self.settings
        if self._stale:
            logger.info("Build settings changed; rebuilding everything")
            self._hashes.clear()
        logger.debug("Loaded build cache: %d hash(es), %d page(s)", len(self._hashes), len(self._entries))

    def persist(self) -> None:
        self.store.set("settings", self.settings)
        self.store.set("hashes", dict(sorted(self._hashes.items())))
        self.store.set("entries", {key: self._entries[key].to_dict() for key in sorted(self._entries)})
        self.store.persist()
        self._stale = False

    def clear(self) -> None:
        """Forget everything, in memory and on disk."""
        self._hashes.clear()
        self._entries.clear()
        self._current.clear()
        self._stale = False
        self.store.clear()

    def begin_build(self) -> None:
        """Drop memoised file hashes so the next build sees fresh contents."""
        self._current.clear()

    def invalidate(self, path: Path) -> None:
        self._current.pop(Path(path), None)

    # ------------------------------------------------------------------
    # Hashes
    # ------------------------------------------------------------------

    def current_hash(self, path: Path) -> str:
        """Return the hash of *path* as it is on disk now (``""`` if missing)."""
        path = Path(path)
        cached = self._current.get(path)
        if cached is not None:
            return cached
        try:
            digest = hash_content(self.io.read(path))
        except FileNotFoundError:
            digest = _MISSING
        self._current[path] = digest
        return digest

    def has_changed(self, path: Path, content: bytes | str | None = None) -> bool:
        """True if *path* (or the given *content*) differs from the recorded hash."""
        digest = hash_content(content) if content is not None else self.current_hash(path)
        return self._hashes.get(str(path)) != digest

    def is_tracked(self, path: Path) -> bool:
        return str(path) in self._hashes

    def record_hash(self, path: Path, content: bytes | str | None = None) -> None:
        digest = hash_content(content) if content is not None else self.current_hash(path)
        self._hashes[str(path)] = digest

    def forget(self, path: Path) -> None:
        """Remove every trace of *path* (it was deleted)."""
        self._hashes.pop(str(path), None)
        self._entries.pop(str(path), None)
        self._current.pop(Path(path), None)

    # ------------------------------------------------------------------
    # Page entries
    # ------------------------------------------------------------------

    def entry(self, page: Path) -> CacheEntry | None:
        return self._entries.get(str(page))

    @property
    def pages(self) -> list[Path]:
        return sorted(Path(key) for key in self._entries)

    def record_page(
        self,
        page: Path,
        dependencies: Iterable[Path],
        edges: Iterable[DependencyEdge],
        assets: Iterable[AssetReference],
        output: Path | None,
    ) -> CacheEntry:
        """Store the entry for a freshly built *page* and record its hash."""
        entry = CacheEntry(
            content_hash=self.current_hash(page),
            dependencies={str(dep): self.current_hash(dep) for dep in dependencies},
            edges=list(edges),
            assets=list(assets),
            output=str(output) if output is not None else None,
        )
        self._entries[str(page)] = entry
        self._hashes[str(page)] = entry.content_hash
        return entry

    def is_up_to_date(self, page: Path, output: Path | None = None) -> bool:
        """True if *page* can be skipped.

        Args:
            page: The source page.
            output: Where the page would be written now. When given, the
                recorded output must be this same file.
        """
        entry = self.entry(page)
        if self._stale or entry is None or entry.content_hash != self.current_hash(page):
            return False
        if output is not None and entry.output != str(output):
            return False
        for dep, digest in entry.dependencies.items():
            if self.current_hash(Path(dep)) != digest:
                return False
        return entry.output is None or Path(entry.output).is_file()

    def __len__(self) -> int:
        return len(self._entries)
