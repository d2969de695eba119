"""Layout discovery, layout chains, and template variables.

A page's layout is chosen in this order:
  1. Explicit override: ``layout:`` front matter, ``<link rel="layout"
     href>``, or a ``data-layout`` attribute. ``false``/``none`` disables
     layouts for the page.
  2. Folder convention: the nearest ``_layout.html`` (or ``_*layout.html``)
     walking upward from the page's directory to the source root.
  3. ``default_layout`` from the configuration.
  4. None, in which case the engine uses a minimal built-in skeleton.

A layout may itself declare a layout, forming a chain that is applied
inner to outer.
"""

from __future__ import annotations

import html
import re
from pathlib import Path
from typing import Any, Callable

from bs4 import Tag

from mosaic.classify import is_layout_name
from mosaic.compose.html import LAYOUT_ATTR, is_layout_link, parse
from mosaic.config import BuildConfig
from mosaic.errors import (
    CircularDependencyError,
    LayoutNotFoundError,
    MaxDepthExceededError,
    PathTraversalError,
)
from mosaic.io import ResourceIO, is_within, normalize

_VARIABLE_RE = re.compile(r"\{\{\s*([A-Za-z_][\w.-]*)\s*\}\}")
_DISABLED = {"false", "none", "off", "no"}

SKELETON = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
{title}{description}</head>
<body>
<main><slot></slot></main>
</body>
</html>
"""


def skeleton(title: str = "", description: str = "") -> str:
    """Return the built-in fallback layout with *title* and *description* filled in."""
    title_tag = f"<title>{html.escape(title, quote=False)}</title>\n" if title else ""
    meta = f'<meta name="description" content="{html.escape(description)}">\n' if description else ""
    return SKELETON.format(title=title_tag, description=meta)


def is_disabled(value: Any) -> bool:
    """True if a ``layout`` value turns layouts off for the page."""
    return value is False or (isinstance(value, str) and value.strip().lower() in _DISABLED)


def declared_layout(root: Tag) -> str | None:
    """Return the layout a document declares via link or attribute, if any."""
    for link in root.find_all("link"):
        if is_layout_link(link) and link.get("href"):
            return str(link["href"]).strip()
    tag = root.find(attrs={LAYOUT_ATTR: True})
    if tag is not None:
        value = str(tag[LAYOUT_ATTR]).strip()
        return value or None
    return None


def substitute_variables(text: str, variables: dict[str, Any]) -> str:
    """Replace ``{{ name }}`` markers in a layout.

    ``{{ content }}`` becomes the default slot; other known names are
    HTML-escaped; unknown names are left as written.
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name == "content":
            return "<slot></slot>"
        if name in variables and variables[name] is not None:
            return html.escape(str(variables[name]))
        return match.group(0)

    return _VARIABLE_RE.sub(_replace, text)


class LayoutResolver:
    """Find layout files for pages and follow layout chains."""

    def __init__(self, config: BuildConfig, io: ResourceIO) -> None:
        self.config = config
        self.io = io
        self.source_root = io.source_root

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def candidates(self, name: str, relative_to: Path) -> list[Path]:
        """Return the paths tried, in order, for explicit layout *name*."""
        names = [name] if Path(name).suffix else [name + ".html", name]
        paths: list[Path] = []
        for candidate in names:
            if candidate.startswith("/"):
                paths.append(normalize(self.source_root / candidate.lstrip("/")))
                continue
            if self.config.layouts_dir:
                paths.append(normalize(self.source_root / self.config.layouts_dir / candidate))
            paths.append(normalize(self.source_root / candidate))
            paths.append(normalize(Path(relative_to).parent / candidate))
        return list(dict.fromkeys(paths))

    def resolve(self, name: str, relative_to: Path) -> Path:
        """Resolve an explicit layout *name* declared in *relative_to*.

        Raises:
            PathTraversalError: If *name* points outside the source root.
            LayoutNotFoundError: If no candidate exists.
        """
        tried = self.candidates(name, relative_to)
        for path in tried:
            if not is_within(path, self.source_root):
                raise PathTraversalError(name, relative_to, self.source_root)
            if self.io.exists(path):
                return path
        raise LayoutNotFoundError(name, relative_to, tried)

    def discover(self, page: Path, checked: list[Path] | None = None) -> Path | None:
        """Return the nearest folder layout for *page*, or None.

        Args:
            page: The page being laid out.
            checked: If given, receives ``<folder>/_layout.html`` for every
                folder looked at, whether or not the file exists.
        """
        directory = Path(page).parent
        while is_within(directory, self.source_root):
            if checked is not None:
                checked.append(normalize(directory / "_layout.html"))
            layouts = sorted(
                p for p in self._files(directory) if is_layout_name(p.name)
            )
            # Prefer the plain name when several conventions coexist.
            for path in layouts:
                if path.name.lower() == "_layout.html":
                    return path
            if layouts:
                return layouts[0]
            if directory == self.source_root:
                break
            directory = directory.parent
        return None

    def _files(self, directory: Path) -> list[Path]:
        try:
            return [normalize(p) for p in directory.iterdir() if p.is_file()]
        except OSError:
            return []

    def default(self, checked: list[Path] | None = None) -> Path | None:
        if not self.config.default_layout:
            return None
        path = normalize(self.source_root / self.config.default_layout.lstrip("/"))
        if checked is not None:
            checked.append(path)
        return path if self.io.exists(path) else None

    # ------------------------------------------------------------------
    # Chains
    # ------------------------------------------------------------------

    def chain(
        self,
        first: Path,
        page: Path,
        on_warning: Callable[[Exception], None] | None = None,
    ) -> list[Path]:
        """Return the layout chain starting at *first*, inner to outer.

        A parent layout that cannot be found ends the chain (with a warning);
        a chain deeper than ``max_depth`` is cut at that depth.

        Raises:
            CircularDependencyError: If a layout re-enters the chain.
        """
        chain = [first]
        current = first
        while True:
            name = declared_layout(parse(self.io.read_text(current)))
            if name is None or is_disabled(name):
                return chain
            try:
                parent = self.resolve(name, current)
            except (LayoutNotFoundError, PathTraversalError) as exc:
                if on_warning is None:
                    raise
                on_warning(exc)
                return chain
            if parent in chain or parent == page:
                raise CircularDependencyError([page, *chain, parent])
            if len(chain) >= self.config.max_depth:
                exc = MaxDepthExceededError(parent, len(chain) + 1, self.config.max_depth)
                if on_warning is None:
                    raise exc
                on_warning(exc)
                return chain
            chain.append(parent)
            current = parent
