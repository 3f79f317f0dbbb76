"""
Prometheus text format parser, enough to re-export a node that already
speaks Prometheus (Kudu 1.17+ serves /metrics_prometheus). No external deps.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from kudu_exporter.metrics import LABELS_KEY


@dataclass
class MetricSample:
    name: str
    labels: Dict[str, str]
    value: float


@dataclass
class MetricFamily:
    name: str
    metric_type: str  # "gauge", "counter", "histogram", "summary", "untyped"
    help_text: str
    samples: List[MetricSample] = field(default_factory=list)


# key="value" pairs inside braces; values may contain escaped quotes
_LABEL_RE = re.compile(r'([A-Za-z_][A-Za-z0-9_]*)="((?:[^"\\]|\\.)*)"')

_ESCAPE_RE = re.compile(r"\\(.)")

_FAMILY_SUFFIXES = ("_total", "_bucket", "_sum", "_count", "_created")


def _unescape(match: re.Match) -> str:
    char = match.group(1)
    return "\n" if char == "n" else char


def parse_labels(label_str: str) -> Dict[str, str]:
    if not label_str:
        return {}
    return {
        key: _ESCAPE_RE.sub(_unescape, value)
        for key, value in _LABEL_RE.findall(label_str)
    }


def _split_sample(line: str) -> Tuple[str, str, str]:
    """Split 'name{labels} value [ts]' into (name, label_str, value_str)."""
    brace_start = line.find("{")
    if brace_start != -1:
        brace_end = line.rfind("}")
        if brace_end < brace_start:
            raise ValueError(f"unbalanced braces in {line!r}")
        rest = line[brace_end + 1:].split()
        if not rest:
            raise ValueError(f"missing value in {line!r}")
        return line[:brace_start], line[brace_start + 1:brace_end], rest[0]

    parts = line.split()
    if len(parts) < 2:
        raise ValueError(f"missing value in {line!r}")
    return parts[0], "", parts[1]


def parse_prometheus_text(text: str) -> Dict[str, MetricFamily]:
    """Returns a dict keyed by base metric name (strips _total, _bucket, etc).

    Malformed sample lines are skipped rather than failing the whole payload.
    """
    families: Dict[str, MetricFamily] = {}
    current_type: Dict[str, str] = {}
    current_help: Dict[str, str] = {}

    for line in text.splitlines():
        line = line.strip()

        if not line:
            continue

        if line.startswith("# HELP ") or line.startswith("# TYPE "):
            parts = line[7:].split(" ", 1)
            if len(parts) == 2:
                target = current_help if line[2] == "H" else current_type
                target[parts[0]] = parts[1].strip()
            continue

        if line.startswith("#"):
            continue

        try:
            name, label_str, value_str = _split_sample(line)
            value = float(value_str)
        except ValueError:
            continue

        base_name = name
        if name not in current_type:
            for suffix in _FAMILY_SUFFIXES:
                if name.endswith(suffix):
                    base_name = name[: -len(suffix)]
                    break

        family = families.get(base_name)
        if family is None:
            family = families[base_name] = MetricFamily(
                name=base_name,
                metric_type=current_type.get(base_name, "untyped"),
                help_text=current_help.get(base_name, ""),
            )
        family.samples.append(MetricSample(name=name, labels=parse_labels(label_str), value=value))

    return families


def to_records(families: Dict[str, MetricFamily]) -> List[Dict[str, object]]:
    """Group samples sharing a label set into one flat record each."""
    grouped: Dict[Tuple[Tuple[str, str], ...], Dict[str, object]] = {}
    for family in families.values():
        for sample in family.samples:
            key = tuple(sorted(sample.labels.items()))
            record = grouped.get(key)
            if record is None:
                record = grouped[key] = {LABELS_KEY: dict(sample.labels)} if sample.labels else {}
            record[sample.name] = sample.value
    return list(grouped.values())
