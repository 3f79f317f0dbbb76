"""
Fetch scheduler.

One control thread submits a fetch task per node every interval and goes
straight back to sleep. Tasks run on a fixed-size thread pool; a
semaphore caps how many may be queued or running, so slow nodes and
overlapping cycles cannot pile up work without bound. Under the drop
policy a node is skipped only while its own previous fetch is still
queued or running.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional, Type

from kudu_exporter.collector.base import FetchTask
from kudu_exporter.collector.registry import check_constructor, resolve_fetcher
from kudu_exporter.config import ExporterConfig
from kudu_exporter.errors import ConfigurationError
from kudu_exporter.storage.memory_store import MetricStore

log = logging.getLogger(__name__)

# How often a blocked submitter re-checks for shutdown
_BLOCK_POLL_SECONDS = 0.5


class Ticker(ABC):
    """Periodic timer with a cancellation signal."""

    @abstractmethod
    def wait(self) -> bool:
        """Block until the next tick. Returns False once cancelled."""
        ...

    @abstractmethod
    def cancel(self):
        ...


class IntervalTicker(Ticker):

    def __init__(self, interval: float):
        self.interval = interval
        self._cancelled = threading.Event()

    def wait(self) -> bool:
        return not self._cancelled.wait(self.interval)

    def cancel(self):
        self._cancelled.set()


class FetchScheduler:

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"

    def __init__(
        self,
        config: ExporterConfig,
        store: MetricStore,
        ticker: Optional[Ticker] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.store = store
        self.ticker = ticker or IntervalTicker(config.interval)
        self.log = logger or log

        self.state = self.IDLE
        self.cycles = 0
        self.dropped = 0

        self._task_cls: Optional[Type[FetchTask]] = None
        self._pool: Optional[ThreadPoolExecutor] = None
        self._slots = threading.BoundedSemaphore(config.pending_limit)
        self._in_flight = set()
        self._in_flight_lock = threading.Lock()
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def prepare(self) -> Type[FetchTask]:
        """Resolve the fetcher and create the pool. Safe to call twice."""
        if self._task_cls is None:
            try:
                cls = resolve_fetcher(self.config.fetcher)
                check_constructor(cls, self.config, self.store)
            except ConfigurationError as exc:
                self.log.error("Fetch subsystem not started: %s", exc)
                raise
            self._task_cls = cls

        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=self.config.workers, thread_name_prefix="kudu-fetch"
            )
        return self._task_cls

    def start(self):
        """Validate the fetcher and launch the control thread. Raises ConfigurationError."""
        if self.state != self.IDLE:
            raise RuntimeError(f"scheduler is {self.state}, cannot start")

        cls = self.prepare()
        self.state = self.RUNNING
        self._thread = threading.Thread(target=self._loop, name="kudu-fetch-scheduler", daemon=True)
        self._thread.start()
        self.log.info(
            "Fetching %d nodes every %.1fs with %s (%d workers, %d pending max, %s on full)",
            len(self.config.nodes), self.config.interval, cls.__name__,
            self.config.workers, self.config.pending_limit, self.config.backpressure,
        )

    def _loop(self):
        while not self._stopping.is_set():
            self.run_cycle()
            if not self.ticker.wait():
                break
        self.log.info("Fetch scheduler stopped after %d cycles", self.cycles)

    def _acquire_slot(self) -> bool:
        if self.config.backpressure == "drop":
            return self._slots.acquire(blocking=False)

        while not self._stopping.is_set():
            if self._slots.acquire(timeout=_BLOCK_POLL_SECONDS):
                return True
        return False

    def _claim_node(self, node_id: str) -> bool:
        with self._in_flight_lock:
            if node_id in self._in_flight:
                return False
            self._in_flight.add(node_id)
            return True

    def _release_node(self, node_id: str):
        with self._in_flight_lock:
            self._in_flight.discard(node_id)

    def _run_task(self, task: FetchTask):
        try:
            task.run()
        finally:
            self._release_node(task.node_id)
            self._slots.release()

    def run_cycle(self) -> List[Future]:
        """Submit one task per node without waiting for any of them."""
        cls = self.prepare()
        self.cycles += 1
        cycle = self.cycles
        futures = []

        for index, node_id in enumerate(self.config.nodes):
            if self._stopping.is_set():
                break

            try:
                task = cls(index, self.config, self.store)
            except Exception:
                self.log.exception("Could not build fetch task for %s (cycle %d)", node_id, cycle)
                continue
            task.cycle = cycle

            drop = self.config.backpressure == "drop"
            if drop and not self._claim_node(node_id):
                self.dropped += 1
                self.log.warning(
                    "Still fetching %s from a previous cycle, skipping it (cycle %d)", node_id, cycle
                )
                continue

            if not self._acquire_slot():
                if drop:
                    self._release_node(node_id)
                if self._stopping.is_set():
                    break
                self.dropped += 1
                self.log.warning(
                    "Worker pool full, skipping %s this cycle (cycle %d)", node_id, cycle
                )
                continue

            try:
                futures.append(self._pool.submit(self._run_task, task))
            except RuntimeError:
                # pool already shut down
                self._release_node(node_id)
                self._slots.release()
                break

        self.log.debug("Cycle %d: submitted %d of %d nodes", cycle, len(futures), len(self.config.nodes))
        return futures

    def stop(self, wait: bool = False, timeout: Optional[float] = None):
        """Stop scheduling new cycles. In-flight fetches are abandoned unless wait=True."""
        if self.state == self.STOPPED:
            return
        self._stopping.set()
        self.ticker.cancel()

        if self._thread is not None:
            self._thread.join(timeout)
        if self._pool is not None:
            self._pool.shutdown(wait=wait, cancel_futures=not wait)

        self.state = self.STOPPED
        self.log.info("Fetch scheduler shut down (%d cycles, %d skipped submissions)", self.cycles, self.dropped)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
