"""
Core data model for kudu-exporter.

A node is identified by its configured address. Each fetch of a node
produces a MetricCollection: a tuple of flat records, where each record
maps metric names to values. A record may carry a "labels" key whose
value is a name -> string mapping applied to every sample it renders to.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterable, Mapping, Tuple

NodeIdentifier = str

MetricRecord = Mapping[str, Any]
MetricCollection = Tuple[MetricRecord, ...]
StoreSnapshot = Mapping[NodeIdentifier, MetricCollection]

LABELS_KEY = "labels"


def freeze_record(record: Mapping[str, Any]) -> MetricRecord:
    """Copy a record into a read-only mapping (labels included)."""
    frozen = {}
    for key, value in record.items():
        if key == LABELS_KEY and isinstance(value, Mapping):
            value = MappingProxyType({str(k): str(v) for k, v in value.items()})
        frozen[key] = value
    return MappingProxyType(frozen)


def freeze_collection(records: Iterable[Mapping[str, Any]]) -> MetricCollection:
    return tuple(freeze_record(r) for r in records)


def record_labels(record: MetricRecord) -> Mapping[str, str]:
    labels = record.get(LABELS_KEY)
    return labels if isinstance(labels, Mapping) else {}


def numeric_items(record: MetricRecord) -> Iterable[Tuple[str, float]]:
    """Yield (name, value) for every numeric metric in a record.

    Booleans count as 0/1. Strings, None and the labels entry are skipped.
    """
    for key, value in record.items():
        if key == LABELS_KEY:
            continue
        if isinstance(value, bool):
            yield key, 1.0 if value else 0.0
        elif isinstance(value, (int, float)):
            yield key, float(value)


def count_samples(collection: MetricCollection) -> int:
    return sum(1 for record in collection for _ in numeric_items(record))
