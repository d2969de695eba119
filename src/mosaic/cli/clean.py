"""mosaic clean: remove the output directory and the build cache."""

from __future__ import annotations

import typer
from rich.console import Console

from mosaic.builder import Builder
from mosaic.cli.build import OutputOption, SourceOption, VerboseOption, collect_overrides, load_or_exit
from mosaic.cli.errors import err_output_unwritable
from mosaic.errors import MosaicError
from mosaic.logging import configure_logging

console = Console()


def clean_cmd(
    source: SourceOption = None,
    output: OutputOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Delete the output directory and the persisted build cache."""
    configure_logging(verbose=verbose)
    cfg = load_or_exit(collect_overrides(source=source, output=output))
    try:
        Builder(cfg).clean()
    except MosaicError as exc:
        console.print(err_output_unwritable(exc))
        raise typer.Exit(1) from exc
    console.print(f"[bold green]✓[/] Removed [bold]{cfg.output_root}[/] and the build cache")
