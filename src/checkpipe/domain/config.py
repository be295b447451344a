"""Immutable layered configuration object.

Values are merged in increasing precedence:

    defaults -> file -> environment -> resolved

``resolved`` holds values computed after the other layers are known (the
cached cloud token, the active command and the terminal flag). A ``Config``
is built once during startup and is never mutated afterwards.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Iterator

LAYER_DEFAULTS = "defaults"
LAYER_FILE = "file"
LAYER_ENVIRONMENT = "environment"
LAYER_RESOLVED = "resolved"
LAYER_ORDER = (LAYER_DEFAULTS, LAYER_FILE, LAYER_ENVIRONMENT, LAYER_RESOLVED)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        normalised = value.strip().lower()
        if normalised in _TRUE_VALUES:
            return True
        if normalised in _FALSE_VALUES:
            return False
    raise ValueError(f"cannot interpret {value!r} as a boolean")


def coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"cannot interpret {value!r} as an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip())
    raise ValueError(f"cannot interpret {value!r} as an integer")


class Config(Mapping[str, Any]):
    def __init__(self, layers: Mapping[str, Mapping[str, Any]]) -> None:
        unknown = set(layers) - set(LAYER_ORDER)
        if unknown:
            raise ValueError(f"unknown configuration layers: {', '.join(sorted(unknown))}")
        self._layers = MappingProxyType(
            {name: MappingProxyType(dict(layers.get(name, {}))) for name in LAYER_ORDER}
        )
        merged: dict[str, Any] = {}
        sources: dict[str, str] = {}
        for name in LAYER_ORDER:
            for key, value in self._layers[name].items():
                merged[key] = value
                sources[key] = name
        self._values = MappingProxyType(merged)
        self._sources = MappingProxyType(sources)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Config({dict(self._values)!r})"

    def get_str(self, key: str, default: str = "") -> str:
        value = self._values.get(key)
        return default if value is None else str(value)

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key)
        return default if value is None else coerce_bool(value)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._values.get(key)
        return default if value is None else coerce_int(value)

    def layer(self, name: str) -> Mapping[str, Any]:
        return self._layers[name]

    def source(self, key: str) -> str | None:
        """Return the name of the layer that supplied ``key``."""
        return self._sources.get(key)

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)


class ConfigBuilder:
    """Collects layer values during startup and produces a frozen ``Config``."""

    def __init__(self) -> None:
        self._layers: dict[str, dict[str, Any]] = {name: {} for name in LAYER_ORDER}

    def update(self, layer: str, values: Mapping[str, Any]) -> "ConfigBuilder":
        if layer not in self._layers:
            raise ValueError(f"unknown configuration layer: {layer}")
        self._layers[layer].update(values)
        return self

    def set(self, layer: str, key: str, value: Any) -> "ConfigBuilder":
        return self.update(layer, {key: value})

    def peek(self, key: str, default: Any = None) -> Any:
        """Return the value ``key`` would have if the config were built now."""
        for name in reversed(LAYER_ORDER):
            if key in self._layers[name]:
                return self._layers[name][key]
        return default

    def build(self) -> Config:
        return Config(self._layers)
