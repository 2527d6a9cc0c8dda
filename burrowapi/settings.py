"""Hierarchical, dot-addressed configuration store."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

_MISSING = object()

_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}


def _normalise(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k).lower(): _normalise(v) for k, v in value.items()}
    return value


def _deep_merge(base: dict, overlay: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return ""


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text, 0)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return 0
        return int(number) if number.is_integer() else 0
    return 0


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip() in _TRUE_WORDS
    return False


class Settings:
    """Configuration values addressed by case-insensitive dotted keys, with defaults."""

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = {}
        self._defaults: dict[str, Any] = {}
        if data:
            self._values = _normalise(data)

    @staticmethod
    def _parts(key: str) -> list[str]:
        parts = key.lower().split(".")
        if not key or any(not part for part in parts):
            raise ValueError(f"invalid settings key: {key!r}")
        return parts

    def _assign(self, tree: dict, key: str, value: Any) -> None:
        parts = self._parts(key)
        node = tree
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = _normalise(value)

    def _lookup(self, tree: dict, key: str) -> Any:
        node: Any = tree
        for part in self._parts(key):
            if not isinstance(node, dict) or part not in node:
                return _MISSING
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a value, overriding any default."""
        self._assign(self._values, key, value)

    def set_default(self, key: str, value: Any) -> None:
        """Set the value used when none has been set explicitly."""
        self._assign(self._defaults, key, value)

    def is_set(self, key: str) -> bool:
        """Whether the key, or anything beneath it, has a value or a default."""
        return (
            self._lookup(self._values, key) is not _MISSING
            or self._lookup(self._defaults, key) is not _MISSING
        )

    def get(self, key: str) -> Any:
        """Return the raw value for a key, or None when it is absent."""
        value = self._lookup(self._values, key)
        default = self._lookup(self._defaults, key)
        if value is _MISSING:
            return None if default is _MISSING else copy.deepcopy(default)
        if isinstance(value, dict) and isinstance(default, dict):
            return _deep_merge(default, value)
        return copy.deepcopy(value)

    def get_string(self, key: str) -> str:
        return _to_string(self.get(key))

    def get_int(self, key: str) -> int:
        return _to_int(self.get(key))

    def get_bool(self, key: str) -> bool:
        return _to_bool(self.get(key))

    def get_string_slice(self, key: str) -> list[str]:
        value = self.get(key)
        if isinstance(value, (list, tuple)):
            return [_to_string(item) for item in value]
        if isinstance(value, str):
            return value.split()
        return []

    def get_string_map(self, key: str) -> dict[str, Any]:
        value = self.get(key)
        return dict(value) if isinstance(value, dict) else {}

    def get_string_map_string(self, key: str) -> dict[str, str]:
        return {name: _to_string(item) for name, item in self.get_string_map(key).items()}

    def reset(self) -> None:
        """Forget all values and defaults."""
        self._values.clear()
        self._defaults.clear()