"""Development server for Folio.

Serves the built site with live reload for local authoring:
- Injects a reload script into HTML responses.
- Resolves extensionless URLs (``/projects/demo``) to their ``.html`` files.
- Rejects directory listings and missing paths with a 404 (serving 404.html when present).
- Watches the source tree and triggers rebuilds plus client reloads.

Key classes:
- DevServer: Main class for running the development server.
- _ReloadHandler: HTTP request handler that injects reload script and enforces 404s.
- _ChangeHandler: File system event handler for triggering rebuilds.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import os
import shutil
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import build_site
from .config import load_config
from .errors import BuildError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 4000
IGNORED_PARTS = (".git", "node_modules", ".sass-cache", ".jekyll-cache")


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that injects live reload script into HTML pages.

    Attributes:
        reload_script: JavaScript code for WebSocket connection to trigger reloads.
    """

    reload_script_template = """
    <script>
    (() => {{
      const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
      ws.onmessage = (event) => {{
        const data = JSON.parse(event.data || '{{}}');
        if (data.type === 'reload') location.reload();
      }};
    }})();
    </script>
    """
    reload_script = reload_script_template.format(ws_port=DEFAULT_PORT + 1)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):  # noqa: A002 - signature from base class
        logger.debug("%s - %s", self.address_string(), format % args)

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        # Never expose directory listings; treat as missing content.
        return self._serve_404()

    def _inject(self, content: str) -> str:
        if "</body>" in content:
            return content.replace("</body>", f"{self.reload_script}</body>")
        return content + self.reload_script

    def _send_html(self, status: int, content: str) -> None:
        encoded = self._inject(content).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)

    def _serve_404(self):
        """Serve 404.html (when present) with injected reload script and a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.exists():
            self._send_html(404, error_page.read_text(encoding="utf-8"))
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            index_path = path_obj / "index.html"
            if not index_path.exists():
                return self._serve_404()
            path_obj = index_path
        elif not path_obj.exists():
            # Permalinks without an extension are written as <url>.html
            with_html = path_obj.with_name(f"{path_obj.name}.html")
            if not with_html.exists():
                return self._serve_404()
            path_obj = with_html

        if path_obj.suffix == ".html":
            self._send_html(200, path_obj.read_text(encoding="utf-8"))
            return None
        return super().send_head()


class DevServer:
    """Development server with live reload functionality.

    Attributes:
        source_dir: Directory containing the site sources.
        config: Site configuration.
        output_dir: Directory where built site is served.
        ws_port: Port for WebSocket connections.
        http_port: Port for HTTP server.
        _observer: File system observer for changes.
        _ws_clients: Set of connected WebSocket clients.
        _loop: Event loop for WebSocket handling.
    """

    def __init__(
        self, source_dir: Path, http_port: int | None = None, ws_port: int | None = None
    ):
        """Initialize the development server.

        Args:
            source_dir: Directory containing ``_config.yml``.
            http_port: Optional override for the ``port`` setting.
            ws_port: Optional override for the ``livereload_port`` setting.
        """
        self.source_dir = source_dir
        self.config = load_config(source_dir)
        self.output_dir = self.config.destination
        self._staging_dir = self.output_dir.with_name(self.output_dir.name + ".staging")
        self._previous_dir = self.output_dir.with_name(self.output_dir.name + ".previous")
        extras = self.config.extras
        base_http = int(http_port or extras.get("port", DEFAULT_PORT))
        if ws_port is not None:
            resolved_ws = ws_port
        elif http_port is not None:
            resolved_ws = base_http + 1
        else:
            resolved_ws = int(extras.get("livereload_port", base_http + 1))
        self.ws_port = resolved_ws
        self.http_port = base_http
        self._reload_script = _ReloadHandler.reload_script_template.format(
            ws_port=self.ws_port
        )
        # Absolute URLs point at the local server while serving.
        self._overrides = {"url": f"http://localhost:{self.http_port}"}
        self._observer: Observer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._rebuilding = False
        self._last_rebuild_at = 0.0
        self._last_signature: tuple | None = None
        self._debounce_seconds = 0.05
        self._post_build_delay = 0.05

    def start(self, include_drafts: bool = False) -> None:  # pragma: no cover - integration path
        self._build(include_drafts)
        self._last_signature = self._compute_signature()
        threading.Thread(target=self._start_http, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        self._start_watcher(include_drafts)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        self._loop.call_soon_threadsafe(self._loop.stop)

    def _build(self, include_drafts: bool) -> None:
        staging = self._prepare_staging_dir()
        build_site(
            self.source_dir,
            include_drafts=include_drafts,
            overrides=self._overrides,
            clean_output=True,
            output_dir_override=staging,
        )
        self._activate_staging(staging)

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script},
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        logger.warning("Serving %s at http://localhost:%d", self.output_dir, self.http_port)
        httpd.serve_forever()

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            logger.error("WebSocket server failed to start (port %d): %s", self.ws_port, exc)

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, "0.0.0.0", self.ws_port):
            await asyncio.Future()  # Run forever

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self):
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in self._ws_clients:
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)

    def _start_watcher(self, include_drafts: bool) -> None:
        handler = _ChangeHandler(self, include_drafts)
        observer = Observer()
        observer.schedule(handler, str(self.source_dir), recursive=True)
        observer.start()
        self._observer = observer

    def rebuild(self, include_drafts: bool) -> None:
        now = time.time()
        if self._rebuilding or (now - self._last_rebuild_at) < self._debounce_seconds:
            return
        signature = self._compute_signature()
        if signature is not None and signature == self._last_signature:
            return
        self._rebuilding = True
        try:
            logger.warning("Change detected; rebuilding...")
            try:
                self._build(include_drafts)
            except BuildError as exc:
                # Keep serving the previous build until the source is fixed.
                logger.error("Build failed: %s", exc)
                return
            self._last_signature = signature
            if self._post_build_delay:
                time.sleep(self._post_build_delay)
            self._broadcast_reload()
        finally:
            self._rebuilding = False
            self._last_rebuild_at = time.time()

    def is_ignored(self, path: Path) -> bool:
        """Whether a changed path belongs to build output or tooling."""
        for ignored in (self.output_dir, self._staging_dir, self._previous_dir):
            try:
                path.relative_to(ignored)
                return True
            except ValueError:
                pass
        return any(part in IGNORED_PARTS for part in path.parts)

    def _compute_signature(self) -> tuple | None:
        entries: list[tuple] = []
        if not self.source_dir.exists():
            return None
        for path in sorted(self.source_dir.rglob("*")):
            if path.is_dir() or self.is_ignored(path):
                continue
            try:
                stat = path.stat()
            except OSError:
                continue
            rel = path.relative_to(self.source_dir)
            entries.append((str(rel), stat.st_mtime_ns, stat.st_size))
        return tuple(entries) if entries else None

    def _prepare_staging_dir(self) -> Path:
        staging = self._staging_dir
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True, exist_ok=True)
        return staging

    def _activate_staging(self, staging: Path) -> None:
        target = self.output_dir
        previous = self._previous_dir
        if previous.exists():
            shutil.rmtree(previous)
        # Two renames keep the served directory in place until the swap.
        if target.exists():
            os.replace(target, previous)
        os.replace(staging, target)
        shutil.rmtree(previous, ignore_errors=True)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer, include_drafts: bool):
        super().__init__()
        self.server = server
        self.include_drafts = include_drafts

    def on_any_event(self, event):
        if event.is_directory:
            return
        if self.server.is_ignored(Path(event.src_path)):
            return
        self.server.rebuild(self.include_drafts)
