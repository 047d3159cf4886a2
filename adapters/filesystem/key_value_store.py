from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import orjson
from filelock import FileLock

from adapters.filesystem.json_utils import read_json_object, write_json_atomic

logger = logging.getLogger(__name__)


class FileSystemKeyValueStore:
    """Key-value store kept in a single JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self.path = path

    async def get(self, key: str) -> Any | None:
        return await asyncio.to_thread(self.get_sync, key)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self.set_sync, key, value)

    def get_sync(self, key: str) -> Any | None:
        return self._read().get(key)

    def set_sync(self, key: str, value: Any) -> None:
        with FileLock(str(self._lock_path())):
            data = self._read()
            data[key] = value
            write_json_atomic(self.path, data)

    def keys(self) -> list[str]:
        return sorted(self._read())

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            return read_json_object(self.path)
        except (orjson.JSONDecodeError, OSError):
            logger.warning("Ignoring unreadable storage file %s", self.path)
            return {}

    def _lock_path(self) -> Path:
        return self.path.with_suffix(f"{self.path.suffix}.lock")
