"""Static file server for previewing the output directory."""

from __future__ import annotations

import functools
import threading
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

from mosaic.logging import get_logger

logger = get_logger(__name__)


class OutputRequestHandler(SimpleHTTPRequestHandler):
    """Serves files from one directory; access logs go to the mosaic logger."""

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)


def make_server(directory: Path, port: int = 8000, host: str = "127.0.0.1") -> ThreadingHTTPServer:
    """Return a ThreadingHTTPServer for *directory* (not yet serving).

    Raises:
        OSError: If the address is already in use.
    """
    Path(directory).mkdir(parents=True, exist_ok=True)
    handler = functools.partial(OutputRequestHandler, directory=str(directory))
    return ThreadingHTTPServer((host, port), handler)


def serve_in_background(httpd: ThreadingHTTPServer) -> threading.Thread:
    """Run ``httpd.serve_forever`` on a daemon thread; stop it with ``httpd.shutdown()``."""
    thread = threading.Thread(target=httpd.serve_forever, name="mosaic-server", daemon=True)
    thread.start()
    return thread
