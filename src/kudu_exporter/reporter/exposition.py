"""Expose store snapshots to Prometheus through a custom collector."""

from __future__ import annotations

import re
from typing import Dict, Iterator

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from kudu_exporter.metrics import numeric_items, record_labels
from kudu_exporter.storage.memory_store import MetricStore

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_:]")
_INVALID_LABEL_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def sanitize_name(name: str) -> str:
    name = _INVALID_NAME_CHARS.sub("_", name)
    return f"_{name}" if name[:1].isdigit() else name


def sanitize_label(name: str) -> str:
    name = _INVALID_LABEL_CHARS.sub("_", name)
    return f"_{name}" if name[:1].isdigit() else name


class SnapshotCollector(Collector):
    """Renders every node's records as gauges, one family per metric name.

    Each collect() reads the store through a single snapshot, so a scrape
    sees one consistent version and never waits on a fetch. Samples are
    labelled node="<id>" followed by the record's own labels; a record
    cannot override the node label.
    """

    def __init__(self, store: MetricStore, prefix: str = "kudu"):
        self.store = store
        self.prefix = sanitize_name(prefix)

    def collect(self) -> Iterator[Metric]:
        snapshot, updated_at = self.store.snapshot_with_times()
        families: Dict[str, GaugeMetricFamily] = {}

        for node_id in sorted(snapshot):
            for record in snapshot[node_id]:
                labels = {"node": node_id}
                for key, val in record_labels(record).items():
                    label = sanitize_label(key)
                    if label != "node":
                        labels[label] = val
                for name, value in numeric_items(record):
                    family_name = f"{self.prefix}_{sanitize_name(name)}"
                    family = families.get(family_name)
                    if family is None:
                        family = GaugeMetricFamily(family_name, f"Kudu metric {name}.")
                        families[family_name] = family
                    family.add_sample(family_name, labels, value)

        for family_name in sorted(families):
            yield families[family_name]

        yield GaugeMetricFamily(
            f"{self.prefix}_exporter_nodes_reporting",
            "Nodes with at least one successful fetch.",
            value=len(snapshot),
        )

        if updated_at:
            last_success = GaugeMetricFamily(
                f"{self.prefix}_exporter_last_success_timestamp_seconds",
                "Unix time of the last successful fetch per node.",
                labels=["node"],
            )
            for node_id in sorted(updated_at):
                last_success.add_metric([node_id], updated_at[node_id])
            yield last_success

    def describe(self):
        # Families depend on what the nodes return, so nothing is known up front.
        return []


def build_registry(store: MetricStore, prefix: str = "kudu") -> CollectorRegistry:
    """Private registry holding only the snapshot collector (no process metrics)."""
    registry = CollectorRegistry()
    registry.register(SnapshotCollector(store, prefix))
    return registry


def render_store(store: MetricStore, prefix: str = "kudu") -> str:
    return generate_latest(build_registry(store, prefix)).decode("utf-8")
