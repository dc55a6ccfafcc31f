"""Development server for Quire.

``quire serve`` builds the site, serves the destination over HTTP and
rebuilds whenever a source file changes:

- HTML responses get a small live reload client appended before ``</body>``.
- Missing paths and directories without an index answer 404, using the
  site's ``404.html`` when it has one.
- The configured ``baseurl`` is stripped from request paths so links work
  the same way as on the deployed site.
- When only style sheets changed, browsers swap their stylesheets in place
  instead of reloading the page.

Key classes:
- DevServer: Builds, watches and serves a site.
- LiveReloadHub: WebSocket endpoint that browsers listen on.
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
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import BuildResult, build_site, check_destination, resolve_destination
from .config import load_config
from .errors import QuireError

logger = logging.getLogger(__name__)

IGNORED_PARTS = frozenset({".git", ".hg", "node_modules", ".sass-cache", "__pycache__"})
STYLE_SUFFIXES = frozenset({".css", ".scss", ".sass"})

RELOAD_SCRIPT = """<script>
(() => {{
  const connect = () => {{
    const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
    ws.onmessage = (event) => {{
      const message = JSON.parse(event.data || '{{}}');
      if (message.type === 'css') {{
        document.querySelectorAll('link[rel="stylesheet"]').forEach((link) => {{
          const url = new URL(link.href);
          url.searchParams.set('reload', Date.now());
          link.href = url.toString();
        }});
      }} else if (message.type === 'reload') {{
        location.reload();
      }}
    }};
    ws.onclose = () => setTimeout(connect, 1000);
  }};
  connect();
}})();
</script>
"""


def resolve_ports(
    config: dict[str, Any], http_port: int | None, ws_port: int | None
) -> tuple[int, int]:
    """Pick the HTTP and WebSocket ports.

    Command-line ports win over ``port``/``ws_port`` from the configuration.
    Without an explicit WebSocket port it sits right above the HTTP port,
    unless the configuration names one and the HTTP port was not overridden.
    """
    port = int(http_port or config.get("port") or 4000)
    if ws_port is None:
        configured = config.get("ws_port")
        ws_port = int(configured) if configured and http_port is None else port + 1
    return port, int(ws_port)


def changed_paths(
    before: dict[str, tuple[int, int]], after: dict[str, tuple[int, int]]
) -> list[str]:
    """List paths added, removed or modified between two snapshots."""
    names = set(before) | set(after)
    return sorted(name for name in names if before.get(name) != after.get(name))


class _ReloadHandler(SimpleHTTPRequestHandler):
    """Serves the built site, appending the live reload client to HTML."""

    def __init__(self, *args, script: str = "", baseurl: str = "", **kwargs):
        self.script = script
        self.baseurl = baseurl
        super().__init__(*args, **kwargs)

    def end_headers(self):
        self.send_header("Cache-Control", "no-store")
        super().end_headers()

    def log_message(self, format, *args):
        logger.debug("%s %s", self.address_string(), format % args)

    def list_directory(self, path):  # pragma: no cover - send_head answers first
        return self._not_found()

    def send_head(self):
        target = self._resolve(urlsplit(self.path).path)
        if target is None:
            return self._not_found()
        if target.suffix in (".html", ".htm"):
            self._send_page(HTTPStatus.OK, target)
            return None
        self.path = "/" + target.relative_to(self.directory).as_posix()
        return super().send_head()

    def _strip_baseurl(self, path: str) -> str:
        if self.baseurl and (path == self.baseurl or path.startswith(f"{self.baseurl}/")):
            return path[len(self.baseurl) :] or "/"
        return path

    def _resolve(self, url_path: str) -> Path | None:
        fs_path = Path(self.translate_path(self._strip_baseurl(url_path)))
        if fs_path.is_dir():
            candidates = [fs_path / "index.html"]
        else:
            candidates = [fs_path, fs_path.with_suffix(".html")]
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None

    def _not_found(self):
        page = Path(self.directory) / "404.html"
        if page.is_file():
            self._send_page(HTTPStatus.NOT_FOUND, page)
        else:
            self.send_error(HTTPStatus.NOT_FOUND, "File not found")
        return None

    def _send_page(self, status: HTTPStatus, page: Path) -> None:
        html = page.read_text(encoding="utf-8", errors="replace")
        end = html.lower().rfind("</body>")
        if end == -1:
            html += self.script
        else:
            html = html[:end] + self.script + html[end:]
        body = html.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


class LiveReloadHub:
    """WebSocket endpoint that tells connected browsers to refresh.

    Attributes:
        port: Port the WebSocket server listens on.
        clients: Currently connected sockets.
        loop: Event loop running the server on its own thread.
    """

    def __init__(self, port: int):
        self.port = port
        self.clients: set = set()
        self.loop = asyncio.new_event_loop()

    def run(self) -> None:  # pragma: no cover - needs a real socket
        """Serve until the loop is stopped. Meant for a daemon thread."""
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_until_complete(self._serve())
        except OSError as exc:
            logger.error("Live reload failed to start on port %d: %s", self.port, exc)

    async def _serve(self) -> None:  # pragma: no cover - needs a real socket
        async with websockets.serve(self.handler, "0.0.0.0", self.port):
            await asyncio.Future()

    async def handler(self, websocket) -> None:
        self.clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self.clients.discard(websocket)

    def notify(self, kind: str) -> None:
        """Send ``{"type": kind}`` to every browser. Safe from any thread."""
        message = json.dumps({"type": kind})
        asyncio.run_coroutine_threadsafe(self.broadcast(message), self.loop)

    async def broadcast(self, message: str) -> None:
        clients = list(self.clients)
        results = await asyncio.gather(
            *(client.send(message) for client in clients), return_exceptions=True
        )
        for client, result in zip(clients, results):
            if isinstance(result, Exception):
                self.clients.discard(client)

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)


class DevServer:
    """Builds a site, serves it and rebuilds it when sources change.

    Builds go to a staging directory that replaces the destination only once
    the build succeeds, so a broken edit keeps the last good site online.

    Attributes:
        source_dir: Root directory of the site sources.
        config: Site configuration.
        destination: Directory being served.
        staging_dir: Where builds are written before being swapped in.
        http_port: Port for the HTTP server.
        ws_port: Port for live reload connections.
        hub: Live reload endpoint.
        debounce_seconds: Quiet period after the last change before rebuilding.
    """

    def __init__(
        self,
        source_dir: Path,
        http_port: int | None = None,
        ws_port: int | None = None,
    ):
        self.source_dir = source_dir
        self.config = load_config(source_dir)
        self.destination = resolve_destination(source_dir, self.config)
        check_destination(source_dir, self.destination)
        self.staging_dir = self.destination.with_name(f"{self.destination.name}.staging")
        self.http_port, self.ws_port = resolve_ports(self.config, http_port, ws_port)
        self.reload_script = RELOAD_SCRIPT.format(ws_port=self.ws_port)
        self.hub = LiveReloadHub(self.ws_port)
        self.include_drafts = False
        self.future = False
        self.debounce_seconds = 0.2
        self._snapshot: dict[str, tuple[int, int]] = {}
        self._build_lock = threading.Lock()
        self._timer_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._observer: Observer | None = None

    def start(
        self, include_drafts: bool = False, future: bool = False
    ) -> None:  # pragma: no cover - runs until interrupted
        self.include_drafts = include_drafts
        self.future = future
        self._snapshot = self.snapshot()
        self.build()
        threading.Thread(target=self._serve_http, daemon=True).start()
        threading.Thread(target=self.hub.run, daemon=True).start()
        observer = Observer()
        observer.schedule(_ChangeHandler(self), str(self.source_dir), recursive=True)
        observer.start()
        self._observer = observer
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Stopping")
            self.stop()

    def stop(self) -> None:
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
        self.hub.stop()

    def build(self) -> BuildResult:
        """Build into the staging directory and swap it into place."""
        if self.staging_dir.exists():
            shutil.rmtree(self.staging_dir)
        result = build_site(
            self.source_dir,
            destination=self.staging_dir,
            include_drafts=self.include_drafts,
            future=self.future,
        )
        if self.destination.exists():
            shutil.rmtree(self.destination)
        os.replace(self.staging_dir, self.destination)
        return result

    def schedule_rebuild(self) -> None:
        """Rebuild once changes have settled for ``debounce_seconds``."""
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_seconds, self.rebuild)
            self._timer.daemon = True
            self._timer.start()

    def rebuild(self) -> bool:
        """Rebuild if any source changed and tell browsers about it.

        Returns:
            True when a new build was put in place.
        """
        with self._build_lock:
            current = self.snapshot()
            changed = changed_paths(self._snapshot, current)
            if not changed:
                return False
            self._snapshot = current
            shown = ", ".join(changed[:3])
            if len(changed) > 3:
                shown += f" and {len(changed) - 3} more"
            logger.info("Rebuilding after changes to %s", shown)
            try:
                self.build()
            except QuireError as exc:
                logger.error("Rebuild failed: %s", exc)
                return False
            styles_only = all(Path(name).suffix in STYLE_SUFFIXES for name in changed)
            self.hub.notify("css" if styles_only else "reload")
            return True

    def is_ignored(self, path: Path) -> bool:
        """Check whether a path is build output or tooling, not site source."""
        for output in (self.destination, self.staging_dir):
            if path == output or output in path.parents:
                return True
        return not IGNORED_PARTS.isdisjoint(path.parts)

    def snapshot(self) -> dict[str, tuple[int, int]]:
        """Map every source file to its (mtime_ns, size)."""
        state: dict[str, tuple[int, int]] = {}
        for dirpath, dirnames, filenames in os.walk(self.source_dir):
            root = Path(dirpath)
            dirnames[:] = [d for d in dirnames if not self.is_ignored(root / d)]
            for filename in filenames:
                path = root / filename
                try:
                    stat = path.stat()
                except OSError:
                    continue
                state[path.relative_to(self.source_dir).as_posix()] = (
                    stat.st_mtime_ns,
                    stat.st_size,
                )
        return state

    def _serve_http(self) -> None:  # pragma: no cover - needs a real socket
        baseurl = self.config.get("baseurl", "")
        handler = functools.partial(
            _ReloadHandler,
            directory=str(self.destination),
            script=self.reload_script,
            baseurl=baseurl,
        )
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        logger.info(
            "Serving at http://localhost:%d%s/ (live reload on port %d)",
            self.http_port,
            baseurl,
            self.ws_port,
        )
        httpd.serve_forever()


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer):
        super().__init__()
        self.server = server

    def on_any_event(self, event):
        if event.is_directory or self.server.is_ignored(Path(event.src_path)):
            return
        self.server.schedule_rebuild()
