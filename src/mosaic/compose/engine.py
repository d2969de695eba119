"""Composition engine: one source page in, one finished HTML document out.

Pipeline per page:
  1. Markdown pages are rendered to HTML; front matter becomes metadata.
  2. Includes are expanded recursively (``_expand``), innermost first, with
     the inclusion stack and depth checked before every descent.
  3. A layout chain is resolved and applied inner to outer; the page body
     fills each layout's default slot and named slots.
  4. Heads are merged (outer layout, inner layouts, page, hoisted styles)
     and hoisted inline scripts are appended to ``<body>``.
  5. Templating markers are stripped and the tree is serialised.

Recoverable problems become warnings plus an HTML comment placeholder;
everything else propagates to the caller, which owns the page boundary.
The composer keeps no per-page state on ``self``, so one instance can be
shared by worker threads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bs4 import BeautifulSoup, Comment, Tag

from mosaic import markdown
from mosaic.classify import DocumentKind
from mosaic.compose.directives import (
    IncludeDirective,
    find_directive_nodes,
    parse_directive,
    resolve_target,
)
from mosaic.compose.head import head_children, merge_heads, write_head
from mosaic.compose.html import (
    DEFAULT_SLOT,
    ensure_child,
    is_full_document,
    is_layout_link,
    move_children,
    parse,
    render,
    replace_with_nodes,
    strip_template_markers,
    tidy_doctype,
    top_level_tags,
)
from mosaic.compose.layouts import (
    LayoutResolver,
    declared_layout,
    is_disabled,
    skeleton,
    substitute_variables,
)
from mosaic.compose.slots import SlotContent, capture_slots, project_slots
from mosaic.config import BuildConfig
from mosaic.errors import (
    CircularDependencyError,
    FileSystemError,
    IncludeNotFoundError,
    LayoutNotFoundError,
    MaxDepthExceededError,
    MosaicError,
    PathTraversalError,
)
from mosaic.graph import DependencyEdge, EdgeKind
from mosaic.io import ResourceIO
from mosaic.logging import get_logger

logger = get_logger(__name__)

# Fragment elements that belong in <head> when a page has no <head> of its own.
_HEAD_TAGS = frozenset(["title", "meta", "link", "base"])


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceDocument:
    """One source file as read at the start of a render pass."""

    path: Path
    kind: DocumentKind
    raw: bytes
    frontmatter: dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.raw.decode("utf-8", errors="replace")

    @property
    def is_markdown(self) -> bool:
        return self.path.suffix.lower() == ".md"


@dataclass
class CompositionResult:
    """Everything ``Composer.compose`` learned about one page.

    Attributes:
        page: The page that was composed.
        html: The finished document.
        head: Rendered ``<head>`` children, in output order.
        edges: Include and layout edges, in discovery order.
        warnings: Recoverable problems that left a placeholder.
        visited: Every file expanded for this page. Their outgoing edges in
            ``edges`` are complete.
        layouts: The layout chain applied, inner to outer.
        lookups: Layout files looked for while choosing the layout, present
            or not. A file appearing there can change the result.
        metadata: Front matter plus the resolved ``title``.
    """

    page: Path
    html: str
    head: list[str] = field(default_factory=list)
    edges: list[DependencyEdge] = field(default_factory=list)
    warnings: list[MosaicError] = field(default_factory=list)
    visited: tuple[Path, ...] = ()
    layouts: tuple[Path, ...] = ()
    lookups: tuple[Path, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def dependencies(self) -> list[Path]:
        """Every file this page was built from, except the page itself."""
        return sorted({edge.target for edge in self.edges} - {self.page})


@dataclass
class _Context:
    page: Path
    edges: dict[DependencyEdge, None] = field(default_factory=dict)
    warnings: list[MosaicError] = field(default_factory=list)
    visited: dict[Path, None] = field(default_factory=dict)
    lookups: list[Path] = field(default_factory=list)

    def add_edge(self, source: Path, target: Path, kind: EdgeKind) -> None:
        self.edges.setdefault(DependencyEdge(source, target, kind), None)


@dataclass
class _Fragment:
    soup: BeautifulSoup
    styles: list[Tag] = field(default_factory=list)
    scripts: list[Tag] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Composer
# ---------------------------------------------------------------------------


class Composer:
    """Compose pages for one source tree.

    Args:
        config: Build configuration (``max_depth``, ``fail_on``, layouts).
        io: Resource reader; defaults to one rooted at ``config.source_root``.
    """

    def __init__(self, config: BuildConfig, io: ResourceIO | None = None) -> None:
        self.config = config
        self.io = io or ResourceIO(config.source_root, config.output_root)
        self.source_root = self.io.source_root
        self.layouts = LayoutResolver(config, self.io)

    def load(self, path: Path, kind: DocumentKind = DocumentKind.PAGE) -> SourceDocument:
        """Read *path* into a SourceDocument, parsing Markdown front matter."""
        raw = self.io.read(path)
        frontmatter: dict[str, Any] = {}
        if Path(path).suffix.lower() == ".md":
            frontmatter, _ = markdown.split_frontmatter(raw.decode("utf-8", errors="replace"), str(path))
        return SourceDocument(Path(path), kind, raw, frontmatter)

    def compose(self, document: SourceDocument) -> CompositionResult:
        """Compose *document* into a finished HTML document.

        Raises:
            MosaicError: Any non-recoverable problem, or a recoverable one
                when ``fail_on`` is ``"warning"``.
        """
        ctx = _Context(document.path)
        body, metadata = self._page_source(document)
        fragment = self._expand(ctx, body, document.path, 0, (document.path,))
        soup, chain, variables = self._apply_layout(ctx, document, fragment, metadata)
        strip_template_markers(soup)
        tidy_doctype(soup)

        head = soup.find("head")
        logger.debug("Composed %s (%d edge(s), %d warning(s))", document.path, len(ctx.edges), len(ctx.warnings))
        return CompositionResult(
            page=document.path,
            html=render(soup),
            head=[render(tag) for tag in head_children(head if isinstance(head, Tag) else None)],
            edges=list(ctx.edges),
            warnings=list(ctx.warnings),
            visited=tuple(ctx.visited),
            layouts=tuple(chain),
            lookups=tuple(dict.fromkeys(ctx.lookups)),
            metadata=variables,
        )

    # ------------------------------------------------------------------
    # Error policy
    # ------------------------------------------------------------------

    def _recover(self, ctx: _Context, exc: MosaicError) -> None:
        """Record a recoverable problem, or raise it under ``fail_on: warning``."""
        if not exc.recoverable or self.config.warnings_are_errors:
            raise exc
        ctx.warnings.append(exc)
        logger.warning("%s", exc)

    # ------------------------------------------------------------------
    # Includes
    # ------------------------------------------------------------------

    def _page_source(self, document: SourceDocument) -> tuple[str, dict[str, Any]]:
        if not document.is_markdown:
            return document.text, {}
        rendered = markdown.render(document.text, str(document.path))
        metadata = dict(rendered.frontmatter)
        if rendered.title is not None:
            metadata.setdefault("title", rendered.title)
        metadata.setdefault("excerpt", rendered.excerpt)
        return rendered.html, metadata

    def _read_include(self, target_text: str, target: Path, parent: Path) -> str:
        try:
            text = self.io.read_text(target)
        except FileNotFoundError:
            raise IncludeNotFoundError(target_text, parent, [target]) from None
        if target.suffix.lower() == ".md":
            text = markdown.render(text, str(target)).html
        return text

    def _expand(
        self,
        ctx: _Context,
        text: str,
        path: Path,
        depth: int,
        stack: tuple[Path, ...],
    ) -> _Fragment:
        """Parse *text* (the contents of *path*) and expand every include in it.

        Directives are handled last to first so an ``<include>``'s own
        children (caller slot content) are expanded, in the caller's
        context, before the include itself captures them.
        """
        soup = parse(text)
        ctx.visited.setdefault(path, None)
        nodes = find_directive_nodes(soup)
        hoisted: list[tuple[list[Tag], list[Tag]]] = [([], []) for _ in nodes]

        for index in range(len(nodes) - 1, -1, -1):
            node = nodes[index]
            try:
                directive = parse_directive(node, path)
                hoisted[index] = self._include(ctx, directive, path, depth, stack)
            except MosaicError as exc:
                self._recover(ctx, exc)
                replace_with_nodes(node, [Comment(exc.placeholder())])

        return _Fragment(
            soup,
            styles=[tag for styles, _ in hoisted for tag in styles],
            scripts=[tag for _, scripts in hoisted for tag in scripts],
        )

    def _include(
        self,
        ctx: _Context,
        directive: IncludeDirective,
        path: Path,
        depth: int,
        stack: tuple[Path, ...],
    ) -> tuple[list[Tag], list[Tag]]:
        """Expand one directive in place; return the styles and scripts it hoists."""
        target = resolve_target(directive, path, self.source_root)
        ctx.add_edge(path, target, EdgeKind.INCLUDE)
        if target in stack:
            raise CircularDependencyError([*stack, target])
        if depth + 1 > self.config.max_depth:
            raise MaxDepthExceededError(target, depth + 1, self.config.max_depth)

        slots = capture_slots(list(directive.node.contents)) if directive.is_component else {}
        text = self._read_include(directive.target, target, path)
        fragment = self._expand(ctx, text, target, depth + 1, (*stack, target))

        if directive.is_component:
            styles = [tag.extract() for tag in fragment.soup.find_all("style")]
            scripts = [tag.extract() for tag in fragment.soup.find_all("script") if not tag.has_attr("src")]
            project_slots(fragment.soup, slots)
            styles += fragment.styles
            scripts += fragment.scripts
        else:
            styles, scripts = fragment.styles, fragment.scripts

        replace_with_nodes(directive.node, move_children(fragment.soup))
        return styles, scripts

    # ------------------------------------------------------------------
    # Layouts
    # ------------------------------------------------------------------

    def _apply_layout(
        self,
        ctx: _Context,
        document: SourceDocument,
        fragment: _Fragment,
        metadata: dict[str, Any],
    ) -> tuple[BeautifulSoup, list[Path], dict[str, Any]]:
        soup = fragment.soup
        explicit = metadata["layout"] if "layout" in metadata else declared_layout(soup)
        full = is_full_document(soup)

        if is_disabled(explicit) or (full and explicit is None):
            _place_hoisted(soup, fragment.styles, fragment.scripts)
            return soup, [], _variables(metadata, soup.find("title"))

        page_head, content = _split_page(soup, full)
        if document.is_markdown:
            page_head = _frontmatter_head(metadata) + page_head
        title_tag = next((tag for tag in page_head if tag.name == "title"), None)
        variables = _variables(metadata, title_tag)

        layout = self._find_layout(ctx, document.path, explicit)
        chain = (
            self.layouts.chain(layout, document.path, on_warning=lambda exc: self._recover(ctx, exc))
            if layout is not None
            else []
        )

        slots = capture_slots(content)
        layout_heads: list[list[Tag]] = []
        layout_styles: list[list[Tag]] = []
        layout_scripts: list[list[Tag]] = []
        outer: BeautifulSoup | None = None
        source = document.path

        for position, layout_path in enumerate(chain):
            ctx.add_edge(source, layout_path, EdgeKind.LAYOUT)
            source = layout_path
            try:
                text = self.io.read_text(layout_path)
            except FileNotFoundError as exc:
                raise FileSystemError("read", layout_path, exc) from exc
            text = substitute_variables(text, variables)
            expanded = self._expand(ctx, text, layout_path, 0, (document.path, layout_path))
            layout_styles.append(expanded.styles)
            layout_scripts.append(expanded.scripts)

            consumed = project_slots(expanded.soup, slots)
            slots = {name: value for name, value in slots.items() if name not in consumed}
            if position == len(chain) - 1:
                outer = expanded.soup
            else:
                head, nodes = _split_layout(expanded.soup)
                layout_heads.append(head)
                slots[DEFAULT_SLOT] = SlotContent(nodes, replaces=False)

        if outer is None or not is_full_document(outer):
            shell = parse(skeleton(str(variables.get("title") or ""), str(variables.get("description") or "")))
            if outer is not None:
                head, nodes = _split_layout(outer)
                layout_heads.append(head)
                slots = {DEFAULT_SLOT: SlotContent(nodes, replaces=False)}
            project_slots(shell, slots)
            outer = shell

        # Outer layouts first, then each inner layout, then the page.
        html_tag = outer.find("html")
        head_tag = ensure_child(html_tag, "head", outer, first=True)
        block = head_children(head_tag)
        for inner in reversed(layout_heads):
            block = merge_heads(block, inner)
        merged = merge_heads(block, page_head)

        styles = [tag for group in reversed(layout_styles) for tag in group] + fragment.styles
        scripts = [tag for group in reversed(layout_scripts) for tag in group] + fragment.scripts
        write_head(head_tag, merged + styles)
        body = ensure_child(html_tag, "body", outer)
        for script in scripts:
            body.append(script)
        return outer, chain, variables

    def _find_layout(self, ctx: _Context, page: Path, explicit: Any) -> Path | None:
        if explicit:
            try:
                return self.layouts.resolve(str(explicit), page)
            except (LayoutNotFoundError, PathTraversalError) as exc:
                self._recover(ctx, exc)
        return self.layouts.discover(page, ctx.lookups) or self.layouts.default(ctx.lookups)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _split_page(soup: BeautifulSoup, full: bool) -> tuple[list[Tag], list]:
    """Split a composed page into ``(head elements, body content nodes)``."""
    if full:
        html_tag = soup.find("html")
        head = html_tag.find("head")
        page_head = head_children(head)
        body = html_tag.find("body")
        if body is not None:
            return page_head, move_children(body)
        if head is not None:
            head.extract()
        return page_head, move_children(html_tag)

    page_head: list[Tag] = []
    for head in top_level_tags(soup, "head"):
        page_head.extend(head_children(head))
        head.extract()
    for tag in top_level_tags(soup):
        if tag.name in _HEAD_TAGS and not is_layout_link(tag):
            page_head.append(tag.extract())
    return page_head, move_children(soup)


def _split_layout(soup: BeautifulSoup) -> tuple[list[Tag], list]:
    """Split an inner layout into ``(head elements, body content nodes)``."""
    return _split_page(soup, is_full_document(soup))


def _variables(metadata: dict[str, Any], title_tag: Tag | None) -> dict[str, Any]:
    variables = {
        key: value
        for key, value in metadata.items()
        if isinstance(value, (str, int, float)) and not isinstance(value, bool)
    }
    if "title" not in variables and title_tag is not None:
        variables["title"] = title_tag.get_text(strip=True)
    return variables


def _frontmatter_head(metadata: dict[str, Any]) -> list[Tag]:
    """Build head elements from Markdown front matter.

    ``title`` and ``description`` map to ``<title>`` and a description meta;
    a ``head:`` mapping may list ``meta``, ``link`` and ``script`` attribute
    maps and ``style`` blocks.
    """
    soup = BeautifulSoup("", "html.parser")
    tags: list[Tag] = []
    if metadata.get("title"):
        title = soup.new_tag("title")
        title.string = str(metadata["title"])
        tags.append(title)
    if metadata.get("description"):
        tags.append(soup.new_tag("meta", attrs={"name": "description", "content": str(metadata["description"])}))

    extra = metadata.get("head")
    if not isinstance(extra, dict):
        return tags
    for name in ("meta", "link"):
        for attrs in _as_list(extra.get(name)):
            if isinstance(attrs, dict):
                tags.append(soup.new_tag(name, attrs={k: str(v) for k, v in attrs.items()}))
    for item in _as_list(extra.get("script")):
        if isinstance(item, str):
            tags.append(soup.new_tag("script", attrs={"src": item}))
        elif isinstance(item, dict):
            body = item.get("content")
            script = soup.new_tag("script", attrs={k: str(v) for k, v in item.items() if k != "content"})
            if body:
                script.string = str(body)
            tags.append(script)
    for css in _as_list(extra.get("style")):
        style = soup.new_tag("style")
        style.string = str(css)
        tags.append(style)
    return tags


def _as_list(value: Any) -> list:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _place_hoisted(soup: BeautifulSoup, styles: list[Tag], scripts: list[Tag]) -> None:
    """Put hoisted styles and scripts into a page that gets no layout."""
    head = soup.find("head")
    if isinstance(head, Tag):
        for style in styles:
            head.append(style)
    else:
        for style in reversed(styles):
            soup.insert(0, style)
    body = soup.find("body")
    target = body if isinstance(body, Tag) else soup.find("html") or soup
    for script in scripts:
        target.append(script)
