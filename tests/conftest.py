from __future__ import annotations

import os
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from adapters.memory.key_value_store import InMemoryKeyValueStore
from adapters.overlay.recording import RecordingOverlaySurface
from app.config import AppSettings, EngineSettings, StorageSettings
from domain.models import Viewport
from domain.page_context import PageContext
from domain.services.page_session import PageSession


def _clear_mw_env() -> None:
    for key in list(os.environ):
        if key.startswith("MW_"):
            os.environ.pop(key, None)


_clear_mw_env()


@pytest.fixture(autouse=True)
def clear_mw_env() -> Generator[None, None, None]:
    _clear_mw_env()
    yield
    _clear_mw_env()


@pytest.fixture
def engine_settings() -> EngineSettings:
    return EngineSettings(
        native_bypass_hosts=["x.com", "twitter.com"],
        min_selection_size=10.0,
        reinject_retry_delay_seconds=0.0,
        viewport_width=1000.0,
        viewport_height=800.0,
    )


@pytest.fixture
def app_settings_factory(
    tmp_path: Path, engine_settings: EngineSettings
) -> Callable[..., AppSettings]:
    def _factory(**engine_overrides: object) -> AppSettings:
        return AppSettings(
            storage=StorageSettings(backend="filesystem", path=tmp_path / "storage.json"),
            engine=engine_settings.model_copy(update=engine_overrides),
        )

    return _factory


@pytest.fixture
def app_settings(app_settings_factory: Callable[..., AppSettings]) -> AppSettings:
    return app_settings_factory()


@pytest.fixture
def memory_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def surface() -> RecordingOverlaySurface:
    return RecordingOverlaySurface()


@pytest.fixture
def session_factory(
    memory_store: InMemoryKeyValueStore, surface: RecordingOverlaySurface
) -> Callable[..., PageSession]:
    def _factory(url: str = "https://example.com/article", **kwargs: object) -> PageSession:
        options: dict[str, object] = {"viewport": Viewport(1000, 800)}
        options.update(kwargs)
        return PageSession(
            PageContext.from_url(url),
            memory_store,
            surface,
            **options,  # type: ignore[arg-type]
        )

    return _factory
