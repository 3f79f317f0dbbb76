"""
Exporter configuration. Built once by the CLI and read-only afterwards,
so nothing here needs locking.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from kudu_exporter.errors import ConfigurationError

DEFAULT_INTERVAL = 15.0
DEFAULT_TIMEOUT = 5.0
DEFAULT_WORKERS = 8
DEFAULT_PORT = 9045

BACKPRESSURE_POLICIES = ("drop", "block")
REPORT_MODES = ("serve", "textfile")

# host:port, where host is a name, IPv4 address or [IPv6] literal
_NODE_RE = re.compile(r"^(\[[0-9a-fA-F:.]+\]|[A-Za-z0-9_.-]+):(\d{1,5})$")
_SPLIT_RE = re.compile(r"[,\s]+")


def load_nodes(text: str) -> Tuple[str, ...]:
    """Parse a node list. Accepts commas, whitespace or newlines; '#' starts a comment."""
    nodes = []
    for line in text.splitlines():
        line = line.split("#", 1)[0]
        nodes.extend(part for part in _SPLIT_RE.split(line) if part)
    return tuple(nodes)


@dataclass(frozen=True)
class ExporterConfig:

    nodes: Tuple[str, ...]
    interval: float = DEFAULT_INTERVAL
    fetcher: str = "kudu"
    timeout: float = DEFAULT_TIMEOUT
    workers: int = DEFAULT_WORKERS
    queue_size: Optional[int] = None     # defaults to max(2 * workers, len(nodes))
    backpressure: str = "drop"
    capacity: Optional[int] = None
    metric_filter: Optional[str] = None
    scheme: str = "http"

    # Reporter side
    listen_host: str = "0.0.0.0"
    listen_port: int = DEFAULT_PORT
    report_mode: str = "serve"
    textfile_path: Optional[str] = None
    report_interval: float = DEFAULT_INTERVAL
    metric_prefix: str = "kudu"

    @property
    def pending_limit(self) -> int:
        """Max tasks queued or running in the worker pool at once."""
        if self.queue_size is not None:
            return self.queue_size
        return max(2 * self.workers, len(self.nodes))

    def node_url(self, node_id: str, path: str = "/metrics") -> str:
        return f"{self.scheme}://{node_id}{path}"

    def validate(self) -> "ExporterConfig":
        if not self.nodes:
            raise ConfigurationError("no nodes configured")

        seen = set()
        for node in self.nodes:
            match = _NODE_RE.match(node)
            if not match or not 0 < int(match.group(2)) < 65536:
                raise ConfigurationError(f"malformed node address {node!r} (expected host:port)")
            if node in seen:
                raise ConfigurationError(f"node {node!r} is listed more than once")
            seen.add(node)

        if self.interval <= 0:
            raise ConfigurationError(f"fetch interval must be positive, got {self.interval}")
        if self.timeout <= 0:
            raise ConfigurationError(f"fetch timeout must be positive, got {self.timeout}")
        if self.workers < 1:
            raise ConfigurationError(f"worker pool needs at least one thread, got {self.workers}")
        if self.pending_limit < self.workers:
            raise ConfigurationError("queue size must be at least the number of workers")
        if self.pending_limit < len(self.nodes):
            raise ConfigurationError(
                f"queue size {self.pending_limit} is smaller than the {len(self.nodes)} configured nodes"
            )
        if self.backpressure not in BACKPRESSURE_POLICIES:
            raise ConfigurationError(
                f"unknown backpressure policy {self.backpressure!r}, "
                f"choose from {', '.join(BACKPRESSURE_POLICIES)}"
            )
        if self.capacity is not None and self.capacity < 1:
            raise ConfigurationError(f"store capacity must be positive, got {self.capacity}")
        if self.scheme not in ("http", "https"):
            raise ConfigurationError(f"unsupported scheme {self.scheme!r}")
        if self.report_mode not in REPORT_MODES:
            raise ConfigurationError(f"unknown report mode {self.report_mode!r}")
        if self.report_mode == "textfile" and not self.textfile_path:
            raise ConfigurationError("textfile report mode needs a textfile path")
        if self.report_interval <= 0:
            raise ConfigurationError(f"report interval must be positive, got {self.report_interval}")
        return self


def build_config(nodes: Iterable[str], **options) -> ExporterConfig:
    """Construct and validate a config in one step."""
    return ExporterConfig(nodes=tuple(nodes), **options).validate()
