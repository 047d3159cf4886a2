from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

from adapters.filesystem.key_value_store import FileSystemKeyValueStore
from adapters.memory.key_value_store import InMemoryKeyValueStore
from adapters.overlay.recording import RecordingOverlaySurface
from domain.messages import AreasResponse, PingResponse
from domain.models import AreaType, Rect
from domain.services.page_session import PageSession

PAGE_KEY = "example.com/article"
AREAS_KEY = f"areas_{PAGE_KEY}"


def _drag(session: PageSession, x: float, y: float, width: float, height: float) -> None:
    session.handle_event({"action": "pointerDown", "x": x, "y": y})
    session.handle_event({"action": "pointerMove", "x": x + width / 2, "y": y + height / 2})
    session.handle_event({"action": "pointerUp", "x": x + width, "y": y + height})


def test_load_reads_settings_and_areas(
    session_factory: Callable[..., PageSession],
    memory_store: InMemoryKeyValueStore,
    surface: RecordingOverlaySurface,
) -> None:
    async def scenario() -> PageSession:
        await memory_store.set("hideEngagement", False)
        await memory_store.set(
            AREAS_KEY,
            [
                {"id": 3, "x": 100, "y": 100, "width": 200, "height": 200, "type": "floating"},
                {"id": "bad"},
            ],
        )
        session = session_factory()
        await session.load()
        return session

    session = asyncio.run(scenario())

    assert session.settings.monochrome is True
    assert session.settings.hide_engagement is False
    assert [area.id for area in session.areas.areas] == [3]
    assert session.areas.next_id == 4
    assert surface.engagement_hidden is False
    assert surface.rects == (
        Rect(0, 0, 1000, 100),
        Rect(0, 300, 1000, 500),
        Rect(0, 100, 100, 200),
        Rect(300, 100, 700, 200),
    )


def test_load_with_empty_store_uses_defaults(
    session_factory: Callable[..., PageSession], surface: RecordingOverlaySurface
) -> None:
    async def scenario() -> PageSession:
        session = session_factory()
        await session.load()
        return session

    session = asyncio.run(scenario())

    assert session.settings.monochrome is True
    assert session.settings.hide_engagement is True
    assert surface.engagement_hidden is True
    assert surface.rects == (Rect(0, 0, 1000, 800),)


def test_ping_and_get_areas(session_factory: Callable[..., PageSession]) -> None:
    session = session_factory()

    assert session.handle({"action": "ping"}) == PingResponse(page_key=PAGE_KEY)
    response = session.handle({"action": "getAreas"})
    assert isinstance(response, AreasResponse)
    assert response.to_payload() == {"areas": [], "pageKey": PAGE_KEY}


def test_drag_creates_area_and_persists(
    session_factory: Callable[..., PageSession],
    memory_store: InMemoryKeyValueStore,
    surface: RecordingOverlaySurface,
) -> None:
    async def scenario() -> PageSession:
        session = session_factory()
        await session.load()
        session.handle({"action": "toggleSelectionMode", "areaType": "fixed"})
        session.handle_event({"action": "scroll", "scrollY": 500})
        _drag(session, 100, 100, 200, 200)
        await session.flush()
        return session

    session = asyncio.run(scenario())

    area = session.areas.areas[0]
    assert area.id == 1
    assert area.type is AreaType.FIXED
    assert area.original_y == 600.0
    assert memory_store.snapshot()[AREAS_KEY] == [area.to_payload()]
    assert surface.selection is None
    assert Rect(0, 0, 1000, 100) in surface.rects


def test_pointer_events_while_idle_do_nothing(
    session_factory: Callable[..., PageSession], surface: RecordingOverlaySurface
) -> None:
    session = session_factory()

    _drag(session, 100, 100, 200, 200)

    assert session.areas.areas == ()
    assert surface.selection is None


def test_selection_box_follows_pointer(
    session_factory: Callable[..., PageSession], surface: RecordingOverlaySurface
) -> None:
    session = session_factory()
    session.handle({"action": "toggleSelectionMode"})
    session.handle_event({"action": "pointerDown", "x": 300, "y": 300})
    session.handle_event({"action": "pointerMove", "x": 100, "y": 250})

    assert surface.selection is not None
    assert surface.selection.rect == Rect(100, 250, 200, 50)
    assert surface.selection.editing is False


def test_fixed_area_tracks_scroll(
    session_factory: Callable[..., PageSession], surface: RecordingOverlaySurface
) -> None:
    async def scenario() -> None:
        session = session_factory()
        await session.load()
        session.handle({"action": "toggleSelectionMode", "areaType": "fixed"})
        _drag(session, 100, 100, 200, 200)
        session.handle_event({"action": "scroll", "scrollY": 50})
        await session.flush()

    asyncio.run(scenario())

    assert surface.rects[0] == Rect(0, 0, 1000, 50)


def test_toggle_and_delete_respond_with_areas(
    session_factory: Callable[..., PageSession], memory_store: InMemoryKeyValueStore
) -> None:
    async def scenario() -> tuple[Any, Any, Any]:
        session = session_factory()
        await session.load()
        session.handle({"action": "toggleSelectionMode"})
        _drag(session, 100, 100, 200, 200)
        session.handle_event({"action": "scroll", "scrollY": 40})
        toggled = session.handle({"action": "toggleAreaType", "areaId": 1})
        missing = session.handle({"action": "deleteArea", "areaId": 99})
        deleted = session.handle({"action": "deleteArea", "areaId": 1})
        await session.flush()
        return toggled, missing, deleted

    toggled, missing, deleted = asyncio.run(scenario())

    assert toggled.areas[0].type is AreaType.FIXED
    assert toggled.areas[0].original_y == 140.0
    assert len(missing.areas) == 1
    assert deleted.to_payload() == {"areas": [], "pageKey": PAGE_KEY}
    assert memory_store.snapshot()[AREAS_KEY] == []


def test_reset_area_restarts_ids(session_factory: Callable[..., PageSession]) -> None:
    async def scenario() -> PageSession:
        session = session_factory()
        await session.load()
        for offset in (0, 300):
            session.handle({"action": "toggleSelectionMode"})
            _drag(session, 100 + offset, 100, 100, 100)
        response = session.handle({"action": "resetArea"})
        assert response is not None and response.to_payload()["areas"] == []
        session.handle({"action": "toggleSelectionMode"})
        _drag(session, 100, 100, 100, 100)
        await session.flush()
        return session

    session = asyncio.run(scenario())

    assert [area.id for area in session.areas.areas] == [1]


def test_edit_replaces_geometry_and_keeps_id(
    session_factory: Callable[..., PageSession], surface: RecordingOverlaySurface
) -> None:
    async def scenario() -> PageSession:
        session = session_factory()
        await session.load()
        for offset in (0, 300):
            session.handle({"action": "toggleSelectionMode", "areaType": "fixed"})
            _drag(session, 100 + offset, 100, 100, 100)
        session.handle({"action": "editArea", "areaId": 1})
        assert [area.id for area in session.areas.areas] == [2]
        assert surface.selection is not None and surface.selection.editing is True
        assert surface.selection.rect == Rect(100, 100, 100, 100)
        _drag(session, 600, 500, 150, 120)
        await session.flush()
        return session

    session = asyncio.run(scenario())

    assert [area.id for area in session.areas.areas] == [1, 2]
    edited = session.areas.find(1)
    assert edited is not None
    assert edited.type is AreaType.FIXED
    assert edited.viewport_rect(0.0) == Rect(600, 500, 150, 120)
    assert session.areas.next_id == 3


def test_abandoned_edit_restores_original_area(
    session_factory: Callable[..., PageSession], surface: RecordingOverlaySurface
) -> None:
    async def scenario() -> PageSession:
        session = session_factory()
        await session.load()
        session.handle({"action": "toggleSelectionMode"})
        _drag(session, 100, 100, 200, 200)
        original = session.areas.areas

        session.handle({"action": "editArea", "areaId": 1})
        session.handle_event({"action": "cancelSelection"})
        assert session.areas.areas == original

        session.handle({"action": "editArea", "areaId": 1})
        _drag(session, 100, 100, 5, 5)
        assert session.areas.areas == original
        await session.flush()
        return session

    session = asyncio.run(scenario())

    assert surface.selection is None
    assert len(surface.rects) == 4
    assert session.selection.active is False


def test_edit_unknown_area_is_ignored(
    session_factory: Callable[..., PageSession], surface: RecordingOverlaySurface
) -> None:
    session = session_factory()

    assert session.handle({"action": "editArea", "areaId": 12}) is None
    assert session.selection.active is False
    assert surface.selection is None


def test_update_settings_hides_overlay(
    session_factory: Callable[..., PageSession], surface: RecordingOverlaySurface
) -> None:
    session = session_factory()
    session.render()

    session.handle(
        {"action": "updateSettings", "settings": {"monochrome": False, "hideEngagement": False}}
    )

    assert surface.visible is False
    assert surface.engagement_hidden is False

    session.handle({"action": "updateSettings", "settings": {"monochrome": True}})

    assert surface.visible is True
    assert surface.engagement_hidden is True


def test_native_bypass_page_never_renders(
    session_factory: Callable[..., PageSession], surface: RecordingOverlaySurface
) -> None:
    session = session_factory("https://mobile.twitter.com/home")

    session.render()
    session.handle_event({"action": "scroll", "scrollY": 300})

    assert session.native_bypass is True
    assert surface.visible is False
    assert list(surface.history) == [None]


def test_resize_recomputes(
    session_factory: Callable[..., PageSession], surface: RecordingOverlaySurface
) -> None:
    session = session_factory()

    session.handle_event({"action": "resize", "width": 640, "height": 480})

    assert surface.rects == (Rect(0, 0, 640, 480),)


def test_unknown_action_is_rejected(session_factory: Callable[..., PageSession]) -> None:
    session = session_factory()

    with pytest.raises(ValidationError):
        session.handle({"action": "launchRockets"})
    with pytest.raises(ValidationError):
        session.handle_event({"action": "ping"})


class _FailingStore(InMemoryKeyValueStore):
    async def set(self, key: str, value: Any) -> None:
        raise OSError("disk full")


def test_persistence_failure_is_logged_not_raised(
    surface: RecordingOverlaySurface, caplog: pytest.LogCaptureFixture
) -> None:
    from domain.models import Viewport
    from domain.page_context import PageContext

    async def scenario() -> PageSession:
        session = PageSession(
            PageContext.from_url("https://example.com/article"),
            _FailingStore(),
            surface,
            viewport=Viewport(1000, 800),
        )
        session.handle({"action": "toggleSelectionMode"})
        _drag(session, 100, 100, 200, 200)
        await session.flush()
        return session

    session = asyncio.run(scenario())

    assert len(session.areas.areas) == 1
    assert "Failed to persist areas" in caplog.text


class _SlowFirstWriteStore(FileSystemKeyValueStore):
    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self.writes = 0

    def set_sync(self, key: str, value: Any) -> None:
        self.writes += 1
        if self.writes == 1:
            time.sleep(0.2)
        super().set_sync(key, value)


def test_writes_land_in_commit_order(
    tmp_path: Path, surface: RecordingOverlaySurface
) -> None:
    from domain.models import Viewport
    from domain.page_context import PageContext

    store = _SlowFirstWriteStore(tmp_path / "storage.json")

    async def scenario() -> PageSession:
        session = PageSession(
            PageContext.from_url("https://example.com/article"),
            store,
            surface,
            viewport=Viewport(1000, 800),
        )
        session.handle({"action": "toggleSelectionMode"})
        _drag(session, 100, 100, 200, 200)
        session.handle({"action": "toggleSelectionMode"})
        _drag(session, 400, 400, 100, 100)
        await session.flush()
        return session

    session = asyncio.run(scenario())

    assert store.writes == 2
    assert store.get_sync(AREAS_KEY) == session.areas.to_payload()
    assert [area["id"] for area in store.get_sync(AREAS_KEY)] == [1, 2]
