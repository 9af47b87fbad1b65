"""
nexarest Configuration
======================

Layered configuration with dot-notation access.

Layers, highest priority first:
1. Runtime overrides (``config.set``)
2. Environment variables (``NEXAREST_*``)
3. Layers added with ``add_source``
4. Package defaults

Example:
    config = get_config()
    config.get("pagination.take")        # 30
    config.set("app.debug", True)

    # NEXAREST_PAGINATION_TAKE=50 in the environment
    config.get_int("pagination.take")    # 50
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, TypeVar, Union

import orjson

T = TypeVar("T")

ENV_PREFIX = "NEXAREST_"

DEFAULTS: Dict[str, Any] = {
    "app": {
        "debug": False,
    },
    "log": {
        "level": "INFO",
        "format": "text",
    },
    "pagination": {
        "take": 30,
        "skip": 0,
    },
    "server": {
        "host": "127.0.0.1",
        "port": 8000,
    },
}

_DEFAULTS_PRIORITY = 0
_ENV_PRIORITY = 100
_RUNTIME_PRIORITY = 1000

_MISSING = object()


@dataclass
class ConfigSource:
    """A named layer of nested values."""
    name: str
    data: Dict[str, Any] = field(default_factory=dict)
    priority: int = 10


def _nest(key: str, value: Any) -> Dict[str, Any]:
    """``"a.b", 1`` -> ``{"a": {"b": 1}}``"""
    nested: Dict[str, Any] = {}
    current = nested
    *parents, leaf = key.split(".")
    for part in parents:
        current = current.setdefault(part, {})
    current[leaf] = value
    return nested


def _merge_into(target: Dict[str, Any], layer: Mapping[str, Any]) -> None:
    for key, value in layer.items():
        if isinstance(value, Mapping):
            existing = target.get(key)
            if not isinstance(existing, dict):
                existing = target[key] = {}
            _merge_into(existing, value)
        else:
            target[key] = value


def _lookup(data: Mapping[str, Any], key: str) -> Any:
    current: Any = data
    for part in key.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def parse_env_value(raw: str) -> Any:
    """
    Type an environment string: booleans, integers, floats, JSON arrays and
    objects; anything else stays a string.
    """
    lowered = raw.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False

    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue

    if raw.startswith(("{", "[")):
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError:
            return raw
    return raw


class Config:
    """
    Configuration container.

    The merged view is rebuilt lazily after any layer changes.

    Example:
        config = Config(load_env=False)
        config.set("server.port", 9000)

        config.get("server.port")              # 9000
        config.get("server.missing", "x")      # "x"
    """

    def __init__(self, defaults: Optional[Dict[str, Any]] = None, load_env: bool = True) -> None:
        self._sources: Dict[str, ConfigSource] = {}
        self._merged: Optional[Dict[str, Any]] = None

        self.add_source("defaults", defaults if defaults is not None else DEFAULTS, _DEFAULTS_PRIORITY)
        if load_env:
            self.load_env()

    def add_source(self, name: str, data: Mapping[str, Any], priority: int = 10) -> None:
        """Add or replace the layer called ``name``."""
        copied: Dict[str, Any] = {}
        _merge_into(copied, data)
        self._sources[name] = ConfigSource(name=name, data=copied, priority=priority)
        self._merged = None

    def load_env(self, environ: Optional[Mapping[str, str]] = None, prefix: str = ENV_PREFIX) -> None:
        """
        (Re)load the environment layer.

        ``NEXAREST_LOG_LEVEL=debug`` becomes ``log.level = "debug"``.
        """
        environ = os.environ if environ is None else environ
        layer: Dict[str, Any] = {}
        for name, raw in environ.items():
            if name.startswith(prefix) and len(name) > len(prefix):
                key = name[len(prefix):].lower().replace("_", ".")
                _merge_into(layer, _nest(key, parse_env_value(raw)))

        self._sources.pop("env_vars", None)
        if layer:
            self.add_source("env_vars", layer, _ENV_PRIORITY)
        self._merged = None

    def _view(self) -> Dict[str, Any]:
        if self._merged is None:
            merged: Dict[str, Any] = {}
            for source in sorted(self._sources.values(), key=lambda s: s.priority):
                _merge_into(merged, source.data)
            self._merged = merged
        return self._merged

    def get(self, key: str, default: T = None) -> Union[Any, T]:
        """Value at dotted ``key``, or ``default`` when absent."""
        value = _lookup(self._view(), key)
        return default if value is _MISSING else value

    def get_int(self, key: str, default: int = 0) -> int:
        try:
            return int(self.get(key, default))
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key, default)
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "on", "1")
        return bool(value)

    def set(self, key: str, value: Any) -> None:
        """Override ``key`` at runtime, above every other layer."""
        runtime = self._sources.get("runtime")
        if runtime is None:
            runtime = self._sources["runtime"] = ConfigSource("runtime", {}, _RUNTIME_PRIORITY)
        _merge_into(runtime.data, _nest(key, value))
        self._merged = None

    def reset(self) -> None:
        """Drop runtime overrides."""
        if self._sources.pop("runtime", None) is not None:
            self._merged = None

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def section(self, prefix: str) -> Dict[str, Any]:
        value = self.get(prefix)
        return dict(value) if isinstance(value, dict) else {}

    def all(self) -> Dict[str, Any]:
        snapshot: Dict[str, Any] = {}
        _merge_into(snapshot, self._view())
        return snapshot

    def __getitem__(self, key: str) -> Any:
        value = self.get(key, _MISSING)
        if value is _MISSING:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __repr__(self) -> str:
        layers = ", ".join(s.name for s in sorted(self._sources.values(), key=lambda s: s.priority))
        return f"<Config [{layers}]>"


_config: Optional[Config] = None


def get_config() -> Config:
    """The process-wide configuration, created on first use."""
    global _config
    if _config is None:
        _config = Config()
    return _config
