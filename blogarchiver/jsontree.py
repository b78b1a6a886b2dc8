"""Path-based lookups over parsed API responses."""

from __future__ import annotations

import json
from typing import Any

from .exceptions import PageParseError

_MISSING = object()


class JsonTree:
    """Read-only view over a decoded JSON value.

    Lookups never raise: a missing key, an index into a non-object or a value
    of the wrong type all collapse to the empty result for that accessor.
    """

    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value

    @classmethod
    def parse(cls, raw: bytes) -> JsonTree:
        try:
            return cls(json.loads(raw))
        except (ValueError, RecursionError) as exc:  # RecursionError on deeply nested input
            raise PageParseError(str(exc)) from exc

    def _lookup(self, path: tuple[str, ...]) -> Any:
        node = self.value
        for key in path:
            if not isinstance(node, dict) or key not in node:
                return _MISSING
            node = node[key]
        return node

    def array_at(self, *path: str) -> list[JsonTree]:
        node = self._lookup(path)
        if not isinstance(node, list):
            return []
        return [JsonTree(item) for item in node]

    def string_at(self, *path: str) -> str:
        node = self._lookup(path)
        return node if isinstance(node, str) else ""

    def exists(self, *path: str) -> bool:
        return self._lookup(path) is not _MISSING

    def __repr__(self) -> str:
        return f"JsonTree({self.value!r})"
