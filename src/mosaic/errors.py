"""Error taxonomy for mosaic builds.

Three tiers:
  1. Usage errors     — bad configuration or arguments; always fatal (exit 2).
  2. Page errors      — raised while composing one page; caught at the page
                        boundary and recorded in ``BuildResult.errors``.
  3. Build errors     — aggregate raised when a build must stop (exit 1).

Page errors are either *recoverable* (the page degrades to a warning and a
placeholder) or not (the page's composition is aborted). ``fail_on`` in
``BuildConfig`` promotes recoverable kinds to failures.

Every error carries ``suggestions``: short, actionable remediation lines shown
by the CLI next to the grouped error summary.
"""

from __future__ import annotations

from pathlib import Path


class MosaicError(Exception):
    """Base class for every error mosaic raises on purpose.

    Attributes:
        kind: Stable, machine-readable error kind (e.g. ``IncludeNotFound``).
        path: File the error is about, if any.
        suggestions: Remediation hints for the user.
        recoverable: True if composition may continue with a placeholder.
    """

    kind: str = "Error"
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        path: Path | str | None = None,
        suggestions: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = Path(path) if path is not None else None
        self.suggestions = list(suggestions or [])

    def __str__(self) -> str:
        if self.path is not None:
            return f"{self.message} in {self.path}"
        return self.message

    def placeholder(self) -> str:
        """Return the HTML comment left in place of a failed directive."""
        return f" WARNING: {self.message} "


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------


class UsageError(MosaicError):
    """Bad configuration, missing source root, or invalid CLI arguments."""

    kind = "UsageError"


class ConfigError(UsageError):
    """Raised when mosaic.yaml or an override contains an invalid value."""

    kind = "ConfigError"


# ---------------------------------------------------------------------------
# Recoverable page errors
# ---------------------------------------------------------------------------


class IncludeNotFoundError(MosaicError):
    """An include directive points at a file that does not exist."""

    kind = "IncludeNotFound"
    recoverable = True

    def __init__(self, target: str, parent: Path | str, searched: list[Path] | None = None) -> None:
        searched = searched or []
        suggestions = [
            f"Create the missing file: {target}",
            "Check for typos in the include path",
            'Paths in file="..." are relative to the including file; '
            'virtual="..." and "/..." paths are relative to the source root',
        ]
        if searched:
            suggestions.append("Searched: " + ", ".join(str(p) for p in searched))
        super().__init__(f"Include not found: {target}", parent, suggestions)
        self.target = target

    def placeholder(self) -> str:
        return f" Include not found: {self.target} "


class LayoutNotFoundError(MosaicError):
    """An explicit layout override could not be resolved."""

    kind = "LayoutNotFound"
    recoverable = True

    def __init__(self, layout: str, page: Path | str, searched: list[Path] | None = None) -> None:
        suggestions = [
            f"Create the layout file: {layout}",
            "Check the layouts_dir setting in mosaic.yaml",
        ]
        if searched:
            suggestions.append("Searched: " + ", ".join(str(p) for p in searched))
        super().__init__(f"Layout not found: {layout}", page, suggestions)
        self.layout = layout


class PathTraversalError(MosaicError):
    """A directive resolved to a path outside the source root."""

    kind = "PathTraversalAttempt"
    recoverable = True

    def __init__(self, target: str, parent: Path | str, source_root: Path) -> None:
        super().__init__(
            f"Path traversal attempt blocked: {target}",
            parent,
            [
                "Avoid '../' segments that climb out of the source directory",
                f"Keep every included file within: {source_root}",
            ],
        )
        self.target = target


class MaxDepthExceededError(MosaicError):
    """Include or layout nesting went deeper than ``max_depth``."""

    kind = "MaxDepthExceeded"
    recoverable = True

    def __init__(self, path: Path | str, depth: int, max_depth: int) -> None:
        super().__init__(
            f"Maximum include depth ({max_depth}) exceeded at depth {depth}",
            path,
            [
                f"Reduce nesting to {max_depth} levels or fewer",
                "Check for an include structure that keeps nesting itself",
            ],
        )
        self.depth = depth
        self.max_depth = max_depth


# ---------------------------------------------------------------------------
# Non-recoverable page errors
# ---------------------------------------------------------------------------


class CircularDependencyError(MosaicError):
    """A file re-entered itself through includes or a layout chain."""

    kind = "CircularDependency"

    def __init__(self, chain: list[Path]) -> None:
        self.chain = list(chain)
        rendered = " → ".join(p.name for p in self.chain)
        super().__init__(
            f"Circular dependency detected: {rendered}",
            self.chain[0] if self.chain else None,
            [
                "Remove one of the include statements to break the cycle",
                "Restructure shared markup into a separate partial",
            ],
        )


class MalformedDirectiveError(MosaicError):
    """An include directive or front-matter block could not be parsed."""

    kind = "MalformedDirective"

    def __init__(self, directive: str, path: Path | str, reason: str = "") -> None:
        message = f"Malformed directive: {directive.strip()}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            message,
            path,
            [
                'Use <!--#include file="path.html" --> or <!--#include virtual="/path.html" -->',
                'Use <include src="/path.html"></include> for components',
            ],
        )
        self.directive = directive


class FileSystemError(MosaicError):
    """Wraps an OSError raised while reading or writing a file."""

    kind = "FileSystemError"

    def __init__(self, operation: str, path: Path | str, cause: BaseException) -> None:
        super().__init__(
            f"File system error during {operation}: {cause}",
            path,
            ["Check that the path exists and is accessible"],
        )
        self.operation = operation
        self.cause = cause


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


class BuildError(MosaicError):
    """Raised when a build stops because of one or more page failures."""

    kind = "BuildError"

    def __init__(self, message: str, errors: list[MosaicError] | None = None) -> None:
        self.errors = list(errors or [])
        suggestions = []
        if self.errors:
            suggestions.append(f"Fix the {len(self.errors)} error(s) listed above")
        super().__init__(f"Build failed: {message}", None, suggestions)
