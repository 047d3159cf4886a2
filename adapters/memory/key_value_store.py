from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any


class InMemoryKeyValueStore:
    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    async def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)
