"""
Fetcher for nodes that expose Prometheus text. Scrapes the endpoint and
regroups the samples into records, one per label set.
"""

from __future__ import annotations

import httpx

from kudu_exporter.collector.base import FetchTask
from kudu_exporter.collector.prometheus_parser import parse_prometheus_text, to_records
from kudu_exporter.collector.registry import register_fetcher
from kudu_exporter.errors import FetchError
from kudu_exporter.metrics import MetricCollection

METRICS_PATH = "/metrics_prometheus"


@register_fetcher("prometheus")
class PrometheusFetchTask(FetchTask):

    path = METRICS_PATH

    def fetch(self) -> MetricCollection:
        url = self.config.node_url(self.node_id, self.path)
        try:
            with httpx.Client(timeout=self.config.timeout) as client:
                response = client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FetchError(self.node_id, f"request to {url} failed: {exc}") from exc

        families = parse_prometheus_text(response.text)
        if not families and response.text.strip():
            raise FetchError(self.node_id, f"no parseable samples in response from {url}")
        return tuple(to_records(families))
