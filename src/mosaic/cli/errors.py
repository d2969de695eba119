"""mosaic rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from mosaic.cli.errors import err_usage
    console.print(err_usage(exc))
    raise typer.Exit(2)
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from mosaic.errors import MosaicError

if TYPE_CHECKING:
    from mosaic.builder import BuildIssue


def err_usage(exc: MosaicError) -> str:
    """Bad configuration or arguments (exit code 2).

    Example:
        Error: Source directory not found: src
          Try:  Pass --source pointing at your site sources
    """
    lines = [f"[red]Error:[/] {exc.message}"]
    lines.extend(f"  Try:  {hint}" for hint in exc.suggestions)
    if not exc.suggestions:
        lines.append("  Run:  mosaic build --help")
    return "\n".join(lines)


def err_build_failed(exc: MosaicError) -> str:
    """The build stopped early under --fail-on."""
    return (
        f"[red]Error:[/] {exc.message}\n"
        "  Fix the problem above, or drop --fail-on to keep building past page errors."
    )


def err_output_unwritable(exc: MosaicError) -> str:
    """Output or cache could not be written."""
    return (
        f"[red]Error:[/] {exc}\n"
        "  Check that the output directory is writable and not open in another program."
    )


def err_port_in_use(host: str, port: int, cause: OSError) -> str:
    """The dev server could not bind its address."""
    return (
        f"[red]Error:[/] Cannot serve on {host}:{port} ({cause.strerror or cause}).\n"
        f"  Run:  mosaic serve --port {port + 1}"
    )


def format_issues(issues: list[BuildIssue], *, label: str = "Error", style: str = "red") -> str:
    """Group *issues* by kind with a count; recoverable kinds get their suggestions.

    Returns an empty string when there is nothing to report.
    """
    if not issues:
        return ""
    groups: dict[str, list[BuildIssue]] = defaultdict(list)
    for issue in issues:
        groups[issue.kind].append(issue)

    blocks: list[str] = []
    for kind in sorted(groups):
        group = groups[kind]
        lines = [f"[{style}]{label}:[/] {kind} ({len(group)})"]
        lines.extend(f"  - {issue}" for issue in group)
        if group[0].recoverable:
            hints = dict.fromkeys(hint for issue in group for hint in issue.suggestions)
            lines.extend(f"    [dim]Fix:[/]  {hint}" for hint in hints)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)
