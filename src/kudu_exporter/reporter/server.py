"""
Reporters. Both read the store through one snapshot per render and never
touch a node, so a slow or dead cluster cannot slow a scrape down.

ReportServer answers Prometheus scrapes over HTTP. TextfileReporter
writes the same rendering to disk on its own timer for node_exporter's
textfile collector.
"""

from __future__ import annotations

import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest, write_to_textfile

from kudu_exporter.reporter.exposition import build_registry
from kudu_exporter.storage.memory_store import MetricStore

log = logging.getLogger(__name__)


class _ScrapeHandler(BaseHTTPRequestHandler):
    # set on the per-server subclass built in ReportServer.__init__
    registry: CollectorRegistry
    logger: logging.Logger = log

    def do_GET(self):
        path = self.path.split("?", 1)[0]
        if path == "/metrics":
            self._reply(200, generate_latest(self.registry), CONTENT_TYPE_LATEST)
        elif path == "/healthz":
            self._reply(200, b"ok\n", "text/plain; charset=utf-8")
        else:
            self._reply(404, b"not found\n", "text/plain; charset=utf-8")

    def _reply(self, status: int, body: bytes, content_type: str):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        self.logger.debug("%s - %s", self.address_string(), format % args)


class ReportServer:

    def __init__(
        self,
        store: MetricStore,
        host: str = "0.0.0.0",
        port: int = 9045,
        prefix: str = "kudu",
        logger: Optional[logging.Logger] = None,
    ):
        self.log = logger or log
        handler = type(
            "ScrapeHandler",
            (_ScrapeHandler,),
            {"registry": build_registry(store, prefix), "logger": self.log},
        )
        self._server = ThreadingHTTPServer((host, port), handler)
        self._server.daemon_threads = True
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self):
        return self._server.server_address[:2]

    def start(self):
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="kudu-report-server", daemon=True
        )
        self._thread.start()
        host, port = self.address
        self.log.info("Serving metrics at http://%s:%d/metrics", host, port)

    def stop(self):
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join()
        self.log.info("Report server stopped")


class TextfileReporter:

    def __init__(
        self,
        store: MetricStore,
        path: str,
        interval: float,
        prefix: str = "kudu",
        logger: Optional[logging.Logger] = None,
    ):
        self.path = path
        self.interval = interval
        self.registry = build_registry(store, prefix)
        self.log = logger or log
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def write_once(self):
        """Render and atomically replace the textfile."""
        write_to_textfile(self.path, self.registry)

    def _loop(self):
        while True:
            try:
                self.write_once()
            except OSError as exc:
                self.log.error("Could not write %s: %s", self.path, exc)
            if self._stopping.wait(self.interval):
                break

    def start(self):
        self._thread = threading.Thread(target=self._loop, name="kudu-textfile-reporter", daemon=True)
        self._thread.start()
        self.log.info("Writing metrics to %s every %.1fs", self.path, self.interval)

    def stop(self):
        self._stopping.set()
        if self._thread is not None:
            self._thread.join()
        self.log.info("Textfile reporter stopped")
