"""Asset reference tracker.

Finds the local static files a rendered page needs:

  - resource-bearing attributes (``img[src|srcset]``, ``script[src]``,
    ``link[href]``, ``a[href]``, media elements, ``object[data]``, ...)
  - ``url(...)`` inside ``style`` attributes and inline ``<style>`` blocks
  - transitively, ``url(...)``, ``@font-face`` ``src`` lists and ``@import``
    chains inside every referenced stylesheet

Remote URLs, ``data:``/``mailto:``/``tel:``/``javascript:`` URLs, fragment-only
links, page links (``.html``/``.htm``/``.md``) and extensionless paths are
ignored. A reference that resolves outside the source root is dropped.

An asset is copied to the output only if some page references it (directly or
through CSS), so the tracker's index must be complete for the whole build
before any copy decision is made.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable

from bs4 import BeautifulSoup

from mosaic.classify import PAGE_EXTENSIONS
from mosaic.io import ResourceIO
from mosaic.logging import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

RESOURCE_ATTRIBUTES: dict[str, tuple[str, ...]] = {
    "img": ("src", "srcset"),
    "script": ("src",),
    "link": ("href",),
    "source": ("src", "srcset"),
    "video": ("src", "poster"),
    "audio": ("src",),
    "track": ("src",),
    "embed": ("src",),
    "object": ("data",),
    "input": ("src",),
    "a": ("href",),
}

_NON_LOCAL_PREFIXES: tuple[str, ...] = (
    "http:",
    "https:",
    "//",
    "mailto:",
    "tel:",
    "data:",
    "javascript:",
    "#",
)

CSS_URL_RE = re.compile(r"""url\(\s*["']?([^"')]+?)["']?\s*\)""", re.IGNORECASE)
FONT_FACE_SRC_RE = re.compile(r"@font-face[^}]*?\bsrc\s*:\s*([^;}]*)", re.IGNORECASE)
CSS_IMPORT_RE = re.compile(r"""@import\s+(?:url\(\s*)?["']?([^"')\s;]+)["']?\s*\)?""", re.IGNORECASE)


@dataclass(frozen=True, order=True)
class AssetReference:
    """One discovered dependency of *page* on *asset*.

    ``depth`` is 0 for references written in the page's HTML and n > 0 for
    references found n stylesheets deep.
    """

    page: Path
    asset: Path
    depth: int = 0


def is_local_reference(url: str) -> bool:
    """True if *url* may point at a file in the source tree."""
    url = url.strip()
    if not url:
        return False
    lower = url.lower()
    return not lower.startswith(_NON_LOCAL_PREFIXES)


def _strip_query(url: str) -> str:
    return url.split("#", 1)[0].split("?", 1)[0]


def _is_asset_path(url: str) -> bool:
    suffix = PurePosixPath(_strip_query(url)).suffix.lower()
    return bool(suffix) and suffix not in PAGE_EXTENSIONS


def srcset_urls(value: str) -> list[str]:
    """Return the URLs of a ``srcset`` value, descriptors dropped."""
    urls = []
    for candidate in value.split(","):
        parts = candidate.strip().split()
        if parts:
            urls.append(parts[0])
    return urls


def css_urls(css: str) -> list[tuple[str, bool]]:
    """Return ``(url, is_import)`` pairs for every reference in *css*, in order.

    ``@font-face`` ``src`` lists are covered by the general ``url()`` scan;
    duplicates are reported once.
    """
    found: dict[str, bool] = {}
    for match in CSS_IMPORT_RE.finditer(css):
        found[match.group(1).strip()] = True
    for match in CSS_URL_RE.finditer(css):
        found.setdefault(match.group(1).strip(), False)
    for block in FONT_FACE_SRC_RE.finditer(css):
        for match in CSS_URL_RE.finditer(block.group(1)):
            found.setdefault(match.group(1).strip(), False)
    return list(found.items())


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------


class AssetTracker:
    """Discovers asset references and indexes them by page and by asset.

    ``track_references`` only reads; ``record``/``remove_page`` mutate the
    index and must be called from a single thread.
    """

    def __init__(self, io: ResourceIO) -> None:
        self.io = io
        self.source_root = io.source_root
        self._by_page: dict[Path, set[AssetReference]] = {}
        self._by_asset: dict[Path, set[Path]] = {}
        self._css_cache: dict[Path, list[tuple[str, bool]]] = {}
        self._css_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def resolve(self, url: str, relative_to: Path) -> Path | None:
        """Resolve *url* written in *relative_to*; None if it escapes the source root."""
        clean = _strip_query(url.strip())
        if clean.startswith("/"):
            resolved = self.io.confine(self.source_root / clean.lstrip("/"))
        else:
            resolved = self.io.confine(Path(relative_to).parent / clean)
        if resolved is None:
            logger.debug("Ignoring asset outside the source root: %s (from %s)", url, relative_to)
        return resolved

    def track_references(self, html: str, page: Path) -> set[AssetReference]:
        """Return every asset reference in rendered *html* for *page*."""
        soup = BeautifulSoup(html, "html.parser")
        references: set[AssetReference] = set()
        stylesheets: list[Path] = []

        def add(url: str, relative_to: Path, depth: int) -> Path | None:
            if not is_local_reference(url) or not _is_asset_path(url):
                return None
            asset = self.resolve(url, relative_to)
            if asset is not None:
                references.add(AssetReference(page, asset, depth))
            return asset

        for tag in soup.find_all(list(RESOURCE_ATTRIBUTES)):
            for attr in RESOURCE_ATTRIBUTES[tag.name]:
                value = tag.get(attr)
                if not value:
                    continue
                value = " ".join(value) if isinstance(value, list) else value
                urls = srcset_urls(value) if attr == "srcset" else [value]
                for url in urls:
                    asset = add(url, page, 0)
                    if asset is not None and asset.suffix.lower() == ".css":
                        stylesheets.append(asset)

        inline_css = [tag.get("style", "") for tag in soup.find_all(attrs={"style": True})]
        inline_css += [style.get_text() for style in soup.find_all("style")]
        for css in inline_css:
            for url, _ in css_urls(css if isinstance(css, str) else " ".join(css)):
                asset = add(url, page, 0)
                if asset is not None and asset.suffix.lower() == ".css":
                    stylesheets.append(asset)

        seen: set[Path] = set()
        for stylesheet in stylesheets:
            self._follow_css(stylesheet, 1, seen, add)
        return references

    def _follow_css(
        self,
        stylesheet: Path,
        depth: int,
        seen: set[Path],
        add: Callable[[str, Path, int], Path | None],
    ) -> None:
        if stylesheet in seen:
            return
        seen.add(stylesheet)
        for url, is_import in self._stylesheet_urls(stylesheet):
            asset = add(url, stylesheet, depth)
            if asset is not None and (is_import or asset.suffix.lower() == ".css"):
                self._follow_css(asset, depth + 1, seen, add)

    def _stylesheet_urls(self, stylesheet: Path) -> list[tuple[str, bool]]:
        with self._css_lock:
            cached = self._css_cache.get(stylesheet)
        if cached is not None:
            return cached
        try:
            css = self.io.read_text(stylesheet)
        except FileNotFoundError:
            logger.debug("Referenced stylesheet does not exist: %s", stylesheet)
            return []
        urls = css_urls(css)
        with self._css_lock:
            self._css_cache[stylesheet] = urls
        return urls

    def invalidate(self, path: Path) -> None:
        """Forget the parsed contents of stylesheet *path* after it changed."""
        with self._css_lock:
            self._css_cache.pop(path, None)

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    def record(self, page: Path, references: Iterable[AssetReference]) -> None:
        """Replace the references held for *page*."""
        self.remove_page(page)
        refs = set(references)
        self._by_page[page] = refs
        for ref in refs:
            self._by_asset.setdefault(ref.asset, set()).add(page)

    def remove_page(self, page: Path) -> None:
        for ref in self._by_page.pop(page, set()):
            pages = self._by_asset.get(ref.asset)
            if pages is not None:
                pages.discard(page)
                if not pages:
                    del self._by_asset[ref.asset]

    def references_for(self, page: Path) -> set[AssetReference]:
        return set(self._by_page.get(page, ()))

    def pages_referencing(self, asset: Path) -> set[Path]:
        return set(self._by_asset.get(asset, ()))

    def is_referenced(self, asset: Path) -> bool:
        return bool(self._by_asset.get(asset))

    def referenced_assets(self) -> set[Path]:
        return set(self._by_asset)
