"""kudu-exporter: polls Apache Kudu nodes and serves their metrics to Prometheus."""

__version__ = "0.3.0"
