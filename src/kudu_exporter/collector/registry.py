"""
Fetcher registry. Maps a selector string from the config to a FetchTask
class. Built-ins register themselves with @register_fetcher; third-party
fetchers can be named as "package.module:ClassName".
"""

from __future__ import annotations

import importlib
import inspect
from typing import Callable, Dict, List, Type

from kudu_exporter.collector.base import FetchTask
from kudu_exporter.config import ExporterConfig
from kudu_exporter.errors import ConfigurationError
from kudu_exporter.storage.memory_store import MetricStore

_REGISTRY: Dict[str, Type[FetchTask]] = {}

_BUILTIN_MODULES = (
    "kudu_exporter.collector.kudu_fetcher",
    "kudu_exporter.collector.prometheus_fetcher",
    "kudu_exporter.collector.mock_fetcher",
)


def register_fetcher(name: str) -> Callable[[Type[FetchTask]], Type[FetchTask]]:
    def decorator(cls: Type[FetchTask]) -> Type[FetchTask]:
        existing = _REGISTRY.get(name)
        if existing is not None and existing is not cls:
            raise ValueError(f"fetcher {name!r} already registered to {existing.__name__}")
        _REGISTRY[name] = cls
        return cls
    return decorator


def _load_builtins():
    for module in _BUILTIN_MODULES:
        importlib.import_module(module)


def available_fetchers() -> List[str]:
    _load_builtins()
    return sorted(_REGISTRY)


def _import_path(selector: str) -> type:
    module_name, _, attr = selector.partition(":")
    if not module_name or not attr or module_name.startswith("."):
        raise ConfigurationError(f"malformed fetcher path {selector!r} (expected package.module:ClassName)")
    try:
        module = importlib.import_module(module_name)
    except Exception as exc:
        raise ConfigurationError(f"cannot import fetcher module {module_name!r}: {exc}") from exc
    try:
        return getattr(module, attr)
    except AttributeError:
        raise ConfigurationError(f"module {module_name!r} has no fetcher {attr!r}") from None


def resolve_fetcher(selector: str) -> Type[FetchTask]:
    """Look up a fetcher class by registered name or import path."""
    _load_builtins()

    if selector in _REGISTRY:
        cls = _REGISTRY[selector]
    elif ":" in selector:
        cls = _import_path(selector)
    else:
        raise ConfigurationError(
            f"unknown fetcher {selector!r}, choose from {', '.join(sorted(_REGISTRY))} "
            "or give a module:Class path"
        )

    if not (inspect.isclass(cls) and issubclass(cls, FetchTask)):
        raise ConfigurationError(f"{selector!r} is not a FetchTask subclass")
    if inspect.isabstract(cls):
        raise ConfigurationError(f"fetcher {cls.__name__} does not implement fetch()")
    return cls


def check_constructor(cls: Type[FetchTask], config: ExporterConfig, store: MetricStore):
    """Make sure cls(node_index, config, store) will bind, without building one."""
    try:
        inspect.signature(cls).bind(0, config, store)
    except TypeError as exc:
        raise ConfigurationError(
            f"fetcher {cls.__name__} cannot be built with (node_index, config, store): {exc}"
        ) from exc
