"""
Fetcher that reads from the mock Kudu generator.
Used for local development on machines without a cluster.
"""

import time

from kudu_exporter.collector.base import FetchTask
from kudu_exporter.collector.kudu_fetcher import parse_entities
from kudu_exporter.collector.registry import register_fetcher
from kudu_exporter.metrics import MetricCollection
from kudu_exporter.mock.generator import MockKuduNode


@register_fetcher("mock")
class MockFetchTask(FetchTask):
    """Simulated tablet server, one per node index. Simulation clock advances once per interval."""

    def fetch(self) -> MetricCollection:
        node = MockKuduNode(seed=self.node_index + 1)
        tick = int(time.time() // self.config.interval)
        return tuple(parse_entities(node.entities(tick)))
