"""mosaic build: compose every page under the source root into the output root.

Also hosts the options and helpers shared by ``watch``, ``serve`` and ``clean``.

Usage:
  mosaic build
  mosaic build --source site --output public --pretty-urls
  mosaic build --fail-on warning --no-cache
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console

from mosaic.builder import Builder, BuildIssue, BuildResult
from mosaic.cli.errors import err_build_failed, err_output_unwritable, err_usage, format_issues
from mosaic.config import BuildConfig, load_config
from mosaic.errors import BuildError, MosaicError, UsageError
from mosaic.logging import configure_logging

console = Console()

# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------

SourceOption = Annotated[
    Path | None,
    typer.Option("--source", "-s", help="Source directory (default: src, or 'source' in mosaic.yaml)."),
]
OutputOption = Annotated[
    Path | None,
    typer.Option("--output", "-o", help="Output directory (default: dist)."),
]
PrettyUrlsOption = Annotated[
    bool,
    typer.Option("--pretty-urls", help="Emit about.html as about/index.html and rewrite links to match."),
]
FailOnOption = Annotated[
    str | None,
    typer.Option("--fail-on", help="Stop the build on the first 'warning' or 'error'."),
]
NoCacheOption = Annotated[
    bool,
    typer.Option("--no-cache", help="Recompose every page, ignoring the build cache."),
]
MinifyOption = Annotated[
    bool,
    typer.Option("--minify", help="Strip comments and collapse whitespace in emitted HTML."),
]
WorkersOption = Annotated[
    int | None,
    typer.Option("--workers", min=1, help="Compose pages on this many threads."),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Log per-file detail."),
]


def collect_overrides(
    *,
    source: Path | None = None,
    output: Path | None = None,
    pretty_urls: bool = False,
    fail_on: str | None = None,
    no_cache: bool = False,
    minify: bool = False,
    workers: int | None = None,
    clean: bool = False,
) -> dict[str, Any]:
    """Turn CLI flags into load_config() overrides; unset flags map to None."""
    return {
        "source": source,
        "output": output,
        "pretty_urls": True if pretty_urls else None,
        "fail_on": fail_on,
        "cache": False if no_cache else None,
        "minify": True if minify else None,
        "workers": workers,
        "clean": True if clean else None,
    }


def load_or_exit(overrides: dict[str, Any]) -> BuildConfig:
    """Load the merged config or print a usage error and exit with code 2."""
    try:
        return load_config(overrides=overrides)
    except UsageError as exc:
        console.print(err_usage(exc))
        raise typer.Exit(2) from exc


def run_build(builder: Builder) -> BuildResult | None:
    """Run a full build and print its report.

    Returns None when the build was stopped by ``--fail-on`` or could not
    write its output; the reason has already been printed.
    """
    try:
        result = builder.build()
    except BuildError as exc:
        summary = format_issues([BuildIssue.from_error(e) for e in exc.errors])
        if summary:
            console.print(summary)
        console.print(err_build_failed(exc))
        return None
    except MosaicError as exc:
        console.print(err_output_unwritable(exc))
        return None
    print_result(result, builder.output_root)
    return result


def print_result(result: BuildResult, output_root: Path) -> None:
    """Print warnings, errors, and a one-line summary of *result*."""
    warnings = format_issues(result.warnings, label="Warning", style="yellow")
    if warnings:
        console.print(warnings)
    errors = format_issues(result.errors)
    if errors:
        console.print(errors)

    counts = (
        f"{result.processed} page(s) built, {result.copied} asset(s) copied, "
        f"{result.skipped} up to date"
    )
    if result.removed:
        counts += f", {len(result.removed)} removed"
    if result.success:
        console.print(f"[bold green]✓[/] {counts} in {result.duration:.2f}s → [bold]{output_root}[/]")
    else:
        console.print(
            f"[bold red]✗[/] {counts}; [red]{len(result.errors)} error(s)[/]. Cache not saved."
        )


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def build_cmd(
    source: SourceOption = None,
    output: OutputOption = None,
    pretty_urls: PrettyUrlsOption = False,
    fail_on: FailOnOption = None,
    no_cache: NoCacheOption = False,
    minify: MinifyOption = False,
    workers: WorkersOption = None,
    clean: Annotated[
        bool,
        typer.Option("--clean", help="Delete the output directory before building."),
    ] = False,
    verbose: VerboseOption = False,
) -> None:
    """Build the site: resolve includes, apply layouts, copy referenced assets.

    Pages whose sources and dependencies are unchanged since the last build
    are skipped. Exit code 1 if any page failed, 2 on a usage error.
    """
    configure_logging(verbose=verbose)

    # ---- Config ----
    cfg = load_or_exit(
        collect_overrides(
            source=source,
            output=output,
            pretty_urls=pretty_urls,
            fail_on=fail_on,
            no_cache=no_cache,
            minify=minify,
            workers=workers,
            clean=clean,
        )
    )

    # ---- Build ----
    result = run_build(Builder(cfg))
    if result is None or not result.success:
        raise typer.Exit(1)
