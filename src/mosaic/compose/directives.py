"""Include directives: recognition, parsing, and path resolution.

Two syntaxes are recognised in any HTML document:

  SSI   ``<!--#include virtual="/partials/nav.html" -->``
        ``<!--#include file="footer.html" -->``
  DOM   ``<include src="/components/card.html">...slot content...</include>``

Resolution rules:
  - ``virtual`` and any path starting with ``/`` resolve against the source root.
  - ``file`` and DOM ``src`` without a leading ``/`` resolve against the
    directory of the file that contains the directive.
  - A resolved path outside the source root raises PathTraversalError.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from pathlib import Path

from bs4 import Comment, Tag
from bs4.element import PageElement

from mosaic.errors import MalformedDirectiveError, PathTraversalError
from mosaic.io import is_within, normalize

_SSI_RE = re.compile(r"""^\s*#include\s+(virtual|file)\s*=\s*(["'])(.*?)\2\s*$""", re.DOTALL)
_SSI_PREFIX = "#include"


class DirectiveSyntax(str, enum.Enum):
    SSI_VIRTUAL = "virtual"
    SSI_FILE = "file"
    DOM = "dom"


@dataclass
class IncludeDirective:
    """One include site found in a document.

    Attributes:
        syntax: Which directive form was used.
        target: The raw path string as written by the author.
        node: The Comment or ``<include>`` Tag to be replaced.
    """

    syntax: DirectiveSyntax
    target: str
    node: PageElement

    @property
    def is_component(self) -> bool:
        return self.syntax is DirectiveSyntax.DOM


def is_directive_node(node: PageElement) -> bool:
    if isinstance(node, Comment):
        return node.lstrip().startswith(_SSI_PREFIX)
    return isinstance(node, Tag) and node.name == "include"


def find_directive_nodes(root: Tag) -> list[PageElement]:
    """Return every directive node under *root*, in document order."""
    return [node for node in root.descendants if is_directive_node(node)]


def parse_directive(node: PageElement, path: Path) -> IncludeDirective:
    """Turn a directive node into an IncludeDirective.

    Raises:
        MalformedDirectiveError: If the SSI comment does not match the grammar
            or the ``<include>`` element has no ``src``.
    """
    if isinstance(node, Comment):
        match = _SSI_RE.match(str(node))
        if match is None:
            raise MalformedDirectiveError(f"<!--{node}-->", path, "expected virtual=\"...\" or file=\"...\"")
        kind, _, target = match.groups()
        if not target.strip():
            raise MalformedDirectiveError(f"<!--{node}-->", path, "empty include path")
        return IncludeDirective(DirectiveSyntax(kind), target.strip(), node)

    src = node.get("src")
    if isinstance(src, list):
        src = " ".join(src)
    if not src or not src.strip():
        raise MalformedDirectiveError(f"<include {_attrs(node)}>", path, "missing src attribute")
    return IncludeDirective(DirectiveSyntax.DOM, src.strip(), node)


def _attrs(tag: Tag) -> str:
    return " ".join(f'{k}="{v}"' for k, v in tag.attrs.items())


def resolve_target(directive: IncludeDirective, including_file: Path, source_root: Path) -> Path:
    """Resolve *directive* to an absolute, normalised path inside *source_root*.

    Raises:
        PathTraversalError: If the result escapes *source_root*.
    """
    return resolve_reference(
        directive.target,
        including_file,
        source_root,
        root_relative=directive.syntax is DirectiveSyntax.SSI_VIRTUAL,
    )


def resolve_reference(target: str, including_file: Path, source_root: Path, *, root_relative: bool = False) -> Path:
    """Resolve a path string written inside *including_file*.

    Args:
        target: Path as written; query strings and fragments are dropped.
        including_file: The file containing the reference.
        source_root: Directory the result must stay inside.
        root_relative: Treat *target* as relative to *source_root* even
            without a leading ``/``.

    Raises:
        PathTraversalError: If the result escapes *source_root*.
    """
    clean = target.split("#", 1)[0].split("?", 1)[0]
    if root_relative or clean.startswith("/"):
        resolved = normalize(source_root / clean.lstrip("/"))
    else:
        resolved = normalize(Path(including_file).parent / clean)
    if not is_within(resolved, source_root):
        raise PathTraversalError(target, including_file, source_root)
    return resolved
