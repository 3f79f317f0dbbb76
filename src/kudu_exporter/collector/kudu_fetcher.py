"""
Fetcher for a Kudu master or tablet server. Pulls the JSON /metrics
endpoint and flattens each entity (server, tablet, table) into one
record. Histograms become a handful of suffixed scalar metrics.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

import httpx

from kudu_exporter.collector.base import FetchTask
from kudu_exporter.collector.registry import register_fetcher
from kudu_exporter.errors import FetchError
from kudu_exporter.metrics import LABELS_KEY, MetricCollection

# Kudu histogram field -> suffix on the flattened metric name
HISTOGRAM_FIELDS = (
    ("total_count", "count"),
    ("total_sum", "sum"),
    ("min", "min"),
    ("max", "max"),
    ("mean", "mean"),
    ("percentile_75", "p75"),
    ("percentile_95", "p95"),
    ("percentile_99", "p99"),
    ("percentile_99_9", "p99_9"),
    ("percentile_99_99", "p99_99"),
)

# Entity attributes worth keeping as labels
LABEL_ATTRIBUTES = ("table_name", "table_id", "partition")


def flatten_metric(metric: Mapping[str, Any]) -> Dict[str, Any]:
    name = metric.get("name")
    if not name:
        return {}

    if "value" in metric:
        return {name: metric["value"]}

    flat = {}
    for field_name, suffix in HISTOGRAM_FIELDS:
        if field_name in metric:
            flat[f"{name}_{suffix}"] = metric[field_name]
    return flat


def parse_entities(payload: Any) -> List[Dict[str, Any]]:
    """Turn Kudu's entity list into flat records. Raises ValueError on bad shape."""
    if not isinstance(payload, list):
        raise ValueError(f"expected a JSON list of entities, got {type(payload).__name__}")

    records = []
    for entity in payload:
        if not isinstance(entity, dict):
            raise ValueError("entity is not a JSON object")

        labels = {
            "entity_type": str(entity.get("type", "")),
            "entity_id": str(entity.get("id", "")),
        }
        attributes = entity.get("attributes") or {}
        for attr in LABEL_ATTRIBUTES:
            if attr in attributes:
                labels[attr] = str(attributes[attr])

        record: Dict[str, Any] = {LABELS_KEY: labels}
        for metric in entity.get("metrics") or ():
            if isinstance(metric, dict):
                record.update(flatten_metric(metric))
        records.append(record)

    return records


@register_fetcher("kudu")
class KuduFetchTask(FetchTask):

    def params(self) -> Dict[str, str]:
        params = {"compact": "1"}
        if self.config.metric_filter:
            params["metrics"] = self.config.metric_filter
        return params

    def fetch(self) -> MetricCollection:
        url = self.config.node_url(self.node_id)
        try:
            with httpx.Client(timeout=self.config.timeout) as client:
                response = client.get(url, params=self.params())
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as exc:
            raise FetchError(self.node_id, f"request to {url} failed: {exc}") from exc
        except ValueError as exc:
            raise FetchError(self.node_id, f"invalid JSON from {url}: {exc}") from exc

        try:
            return tuple(parse_entities(payload))
        except ValueError as exc:
            raise FetchError(self.node_id, str(exc)) from exc
