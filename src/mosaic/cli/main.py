"""mosaic CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from mosaic.cli.build import build_cmd
from mosaic.cli.clean import clean_cmd
from mosaic.cli.serve import serve_cmd
from mosaic.cli.watch import watch_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("mosaic")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"mosaic {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="mosaic",
    help=(
        "mosaic — incremental static site composer.\n\n"
        "  mosaic build   Compose pages, apply layouts, copy referenced assets.\n"
        "  mosaic watch   Rebuild only what a source change affects.\n"
        "  mosaic serve   Watch and serve the output directory locally."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """mosaic — incremental static site composer."""


app.command("build")(build_cmd)
app.command("watch")(watch_cmd)
app.command("serve")(serve_cmd)
app.command("clean")(clean_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed mosaic version."""
    typer.echo(f"mosaic {_installed_version()}")


if __name__ == "__main__":
    app()
