from __future__ import annotations

from adapters.filesystem.key_value_store import FileSystemKeyValueStore
from adapters.memory.key_value_store import InMemoryKeyValueStore
from app.config import AppSettings
from domain.models import Viewport
from domain.ports.repositories import KeyValueStore


def build_key_value_store(settings: AppSettings) -> KeyValueStore:
    if settings.storage.backend == "memory":
        return InMemoryKeyValueStore()
    return FileSystemKeyValueStore(settings.storage.path)


def default_viewport(settings: AppSettings) -> Viewport:
    return Viewport(settings.engine.viewport_width, settings.engine.viewport_height)
