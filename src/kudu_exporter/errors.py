"""Exception types shared across the exporter."""

from __future__ import annotations


class ExporterError(Exception):
    """Base class for everything the exporter raises on purpose."""


class ConfigurationError(ExporterError):
    """Bad configuration. Raised at startup, never per cycle."""


class FetchError(ExporterError):
    """One node could not be fetched or its payload could not be parsed."""

    def __init__(self, node_id: str, message: str):
        super().__init__(f"{node_id}: {message}")
        self.node_id = node_id
        self.message = message


class CapacityExceeded(ExporterError):
    """The store is full and a node it has never seen tried to write."""

    def __init__(self, node_id: str, capacity: int):
        super().__init__(f"store capacity {capacity} reached, dropping new node {node_id}")
        self.node_id = node_id
        self.capacity = capacity
