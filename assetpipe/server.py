from __future__ import annotations

from pathlib import Path

from livereload import Server
from livereload.handlers import LiveReloadHandler

from assetpipe.console import info


def ignore_all(path) -> bool:
    return True


class DevServer:
    """Static file server for the output directory, with live reload."""

    def __init__(self, root: Path, default_filename: str = "index.html"):
        self.root = root
        self.default_filename = default_filename
        self.server: Server | None = None

    def serve(self, host: str, port: int):
        """Listen on the running event loop; does not block."""
        server = Server()
        server.root = str(self.root)
        server.default_filename = self.default_filename
        # With no task, livereload polls the cwd on connect and reloads on its own.
        server.watch(str(self.root), delay="forever", ignore=ignore_all)
        server.application(port, host)
        self.server = server
        info(f"Serving {self.root} at http://{host}:{port}")

    def reload(self, path: str = "*"):
        """Tell every connected browser to reload path ("*" for the page)."""
        if self.server is None:
            return
        LiveReloadHandler.reload_waiters(path)
