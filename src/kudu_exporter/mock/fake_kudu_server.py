"""
Fake Kudu tablet server /metrics endpoint for testing without a cluster.

    python -m kudu_exporter.mock.fake_kudu_server
    kudu-exporter --node 127.0.0.1:8050
"""

from __future__ import annotations

import itertools
import json
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlparse

from kudu_exporter.mock.generator import MockKuduNode

_ticks = itertools.count(1)


def _filter_metrics(entities: list, pattern: str) -> list:
    """Mimic Kudu's ?metrics= filter: keep metrics whose name contains any pattern."""
    wanted = [p for p in pattern.split(",") if p]
    filtered = []
    for entity in entities:
        metrics = [m for m in entity["metrics"] if any(w in m["name"] for w in wanted)]
        if metrics:
            filtered.append(dict(entity, metrics=metrics))
    return filtered


class _MetricsHandler(BaseHTTPRequestHandler):
    node = MockKuduNode(seed=1)

    def do_GET(self):
        url = urlparse(self.path)
        if url.path != "/metrics":
            self.send_response(404)
            self.end_headers()
            return

        entities = self.node.entities(next(_ticks))
        query = parse_qs(url.query)
        if "metrics" in query:
            entities = _filter_metrics(entities, query["metrics"][0])

        body = json.dumps(entities).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass  # Suppress request logging noise


def run_fake_server(host: str = "127.0.0.1", port: int = 8050):
    server = ThreadingHTTPServer((host, port), _MetricsHandler)
    print(f"Fake Kudu tablet server running at http://{host}:{port}/metrics")
    print("Press Ctrl+C to stop.\n")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    server.server_close()
    print("\nServer stopped.")


if __name__ == "__main__":
    run_fake_server()
