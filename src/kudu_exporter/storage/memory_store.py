"""
In-memory store holding the latest metric collection per node.

Copy-on-write: writers serialize on a short private lock, build a new
dict and publish it with one reference swap. Readers only dereference
the published version, so a scrape never waits for a fetch and a fetch
never waits for a scrape. A published version is never mutated again.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from kudu_exporter.errors import CapacityExceeded
from kudu_exporter.metrics import (
    MetricCollection,
    MetricRecord,
    NodeIdentifier,
    StoreSnapshot,
    freeze_collection,
)

log = logging.getLogger(__name__)

_EMPTY = MappingProxyType({})


@dataclass(frozen=True)
class _Version:
    entries: Mapping[NodeIdentifier, MetricCollection]
    updated_at: Mapping[NodeIdentifier, float]


class MetricStore:

    def __init__(self, capacity: Optional[int] = None, logger: Optional[logging.Logger] = None):
        self._capacity = capacity
        self._log = logger or log
        self._write_lock = threading.Lock()
        self._version = _Version(entries=_EMPTY, updated_at=_EMPTY)

    @property
    def capacity(self) -> Optional[int]:
        return self._capacity

    def put(self, node_id: NodeIdentifier, collection: Iterable[MetricRecord]):
        """Replace the entry for node_id. Raises CapacityExceeded for a new node when full."""
        frozen = freeze_collection(collection)
        now = time.time()

        with self._write_lock:
            current = self._version
            if (
                self._capacity is not None
                and node_id not in current.entries
                and len(current.entries) >= self._capacity
            ):
                self._log.warning(
                    "Store at capacity (%d nodes), not admitting %s", self._capacity, node_id
                )
                raise CapacityExceeded(node_id, self._capacity)

            entries = dict(current.entries)
            entries[node_id] = frozen
            updated_at = dict(current.updated_at)
            updated_at[node_id] = now
            self._version = _Version(
                entries=MappingProxyType(entries),
                updated_at=MappingProxyType(updated_at),
            )

    def get(self, node_id: NodeIdentifier) -> Optional[MetricCollection]:
        """Latest collection for node_id, or None if it was never stored."""
        return self._version.entries.get(node_id)

    def last_success(self, node_id: NodeIdentifier) -> Optional[float]:
        """Unix time of the last successful put for node_id."""
        return self._version.updated_at.get(node_id)

    def snapshot(self) -> StoreSnapshot:
        """Read-only, point-in-time view of every stored node."""
        return self._version.entries

    def snapshot_with_times(self) -> Tuple[StoreSnapshot, Mapping[NodeIdentifier, float]]:
        """Snapshot plus last-success times, both taken from the same version."""
        version = self._version
        return version.entries, version.updated_at

    def __len__(self) -> int:
        return len(self._version.entries)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._version.entries
