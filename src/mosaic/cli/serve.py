"""mosaic serve: build, watch, and serve the output directory over HTTP."""

from __future__ import annotations

import time
from typing import Annotated

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
from mosaic.cli.errors import err_port_in_use
from mosaic.logging import configure_logging
from mosaic.server import make_server, serve_in_background
from mosaic.watch import start_watching

console = Console()

_DEFAULT_PORT = 8000
_DEFAULT_HOST = "127.0.0.1"


def serve_cmd(
    port: Annotated[
        int,
        typer.Option("--port", "-p", min=0, max=65535, help="Port to listen on."),
    ] = _DEFAULT_PORT,
    host: Annotated[
        str,
        typer.Option("--host", help="Interface to bind (use 0.0.0.0 to expose on the network)."),
    ] = _DEFAULT_HOST,
    source: SourceOption = None,
    output: OutputOption = None,
    pretty_urls: PrettyUrlsOption = False,
    fail_on: FailOnOption = None,
    no_cache: NoCacheOption = False,
    minify: MinifyOption = False,
    workers: WorkersOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Build the site and serve it locally, rebuilding on every source change.

    Press Ctrl+C to stop the server.
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

    # ---- Server ----
    try:
        httpd = make_server(cfg.output_root, port=port, host=host)
    except OSError as exc:
        console.print(err_port_in_use(host, port, exc))
        raise typer.Exit(1) from exc
    serve_in_background(httpd)
    bound_host, bound_port = httpd.server_address[:2]
    console.print(f"[bold green]Serving[/] {cfg.output_root} at [bold]http://{bound_host}:{bound_port}/[/]")

    # ---- Watch ----
    observer = start_watching(builder)
    console.print("[dim]Watching for changes (Ctrl+C to stop)[/]")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/]")
    finally:
        observer.stop()
        observer.join()
        httpd.shutdown()
        httpd.server_close()
