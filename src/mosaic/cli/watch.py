"""mosaic watch: build once, then rebuild incrementally on every source change."""

from __future__ import annotations

import time

import typer
from rich.console import Console

from mosaic.builder import Builder
from mosaic.cli.build import (
    FailOnOption,
    MinifyOption,
    NoCacheOption,
    OutputOption,
    PrettyUrlsOption,
    SourceOption,
    VerboseOption,
    WorkersOption,
    collect_overrides,
    load_or_exit,
    run_build,
)
from mosaic.logging import configure_logging
from mosaic.watch import start_watching

console = Console()


def watch_cmd(
    source: SourceOption = None,
    output: OutputOption = None,
    pretty_urls: PrettyUrlsOption = False,
    fail_on: FailOnOption = None,
    no_cache: NoCacheOption = False,
    minify: MinifyOption = False,
    workers: WorkersOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Build the site, then watch the source directory and rebuild what changes.

    Only pages that depend on a changed file are recomposed. Press Ctrl+C to stop.
    """
    configure_logging(verbose=verbose)
    cfg = load_or_exit(
        collect_overrides(
            source=source,
            output=output,
            pretty_urls=pretty_urls,
            fail_on=fail_on,
            no_cache=no_cache,
            minify=minify,
            workers=workers,
        )
    )

    builder = Builder(cfg)
    run_build(builder)

    observer = start_watching(builder)
    console.print(f"[bold]Watching[/] {cfg.source_root}  [dim](Ctrl+C to stop)[/]")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/]")
    finally:
        observer.stop()
        observer.join()
