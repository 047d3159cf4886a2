from __future__ import annotations

from typing import Any, Protocol


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...
