"""
Base fetch task interface.

A fetch task polls one node once and writes the result into the store.
This keeps the scheduler decoupled from how the data is actually
fetched (Kudu JSON, Prometheus text, mock, etc). Tasks are created per
node per cycle with (node_index, config, store).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from kudu_exporter.config import ExporterConfig
from kudu_exporter.errors import CapacityExceeded, FetchError
from kudu_exporter.metrics import MetricCollection
from kudu_exporter.storage.memory_store import MetricStore

log = logging.getLogger(__name__)


class FetchTask(ABC):
    """Interface for all per-node fetchers."""

    def __init__(
        self,
        node_index: int,
        config: ExporterConfig,
        store: MetricStore,
        logger: Optional[logging.Logger] = None,
    ):
        self.node_index = node_index
        self.node_id = config.nodes[node_index]
        self.config = config
        self.store = store
        self.cycle = 0
        self.log = logger or log

    @abstractmethod
    def fetch(self) -> MetricCollection:
        """Poll the node once and return its records (any iterable). Raise FetchError on failure."""
        ...

    def run(self) -> None:
        """Fetch and store. Failures are logged here and never escape."""
        try:
            collection = tuple(self.fetch())
        except FetchError as exc:
            self.log.warning("Fetch failed for %s (cycle %d): %s", self.node_id, self.cycle, exc.message)
            return
        except Exception:
            self.log.exception("Unexpected error fetching %s (cycle %d)", self.node_id, self.cycle)
            return

        try:
            self.store.put(self.node_id, collection)
        except CapacityExceeded as exc:
            self.log.warning("Dropped result for %s (cycle %d): %s", self.node_id, self.cycle, exc)
            return

        self.log.debug(
            "Stored %d records for %s (cycle %d)", len(collection), self.node_id, self.cycle
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.node_id!r}, cycle={self.cycle})"
