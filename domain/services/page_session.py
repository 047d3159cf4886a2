from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any, Dict, Optional, Set

from domain.messages import (
    EVENT_TYPES,
    MESSAGE_TYPES,
    AreasResponse,
    CancelSelection,
    DeleteArea,
    EditArea,
    GetAreas,
    Ping,
    PingResponse,
    PointerDown,
    PointerMove,
    PointerUp,
    ResetArea,
    Resize,
    Response,
    Scroll,
    ToggleAreaType,
    ToggleSelectionMode,
    UpdateSettings,
    parse_event,
    parse_message,
)
from domain.models import (
    HIDE_ENGAGEMENT_KEY,
    MONOCHROME_KEY,
    AreaType,
    OverlaySettings,
    Point,
    Viewport,
    areas_key,
)
from domain.page_context import DEFAULT_NATIVE_BYPASS_HOSTS, PageContext, is_native_bypass
from domain.ports.overlay import OverlaySurface
from domain.ports.repositories import KeyValueStore
from domain.services.area_store import AreaStore, parse_areas
from domain.services.render_driver import OverlayFrame, RenderDriver, RenderInputs
from domain.services.selection_state import (
    DEFAULT_MIN_SELECTION_SIZE,
    SelectionCommitted,
    SelectionDiscarded,
    SelectionOutcome,
    SelectionStateMachine,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Optional[Response]]


def read_bool_setting(value: Any) -> bool:
    # Anything but an explicit False keeps the default.
    return value is not False


class PageSession:
    """Engine instance for one page context.

    Owns the area store, the selection gesture and the render driver. Store
    mutations schedule a write of the page's area list and then re-render;
    rendering never waits for the write.
    """

    def __init__(
        self,
        context: PageContext,
        store: KeyValueStore,
        surface: OverlaySurface,
        *,
        viewport: Viewport,
        scroll_y: float = 0.0,
        native_bypass_hosts: Sequence[str] = DEFAULT_NATIVE_BYPASS_HOSTS,
        min_selection_size: float = DEFAULT_MIN_SELECTION_SIZE,
    ) -> None:
        self.context = context
        self.settings = OverlaySettings()
        self.viewport = viewport
        self.scroll_y = scroll_y
        self.areas = AreaStore()
        self.selection = SelectionStateMachine(min_size=min_selection_size)
        self._store = store
        self._surface = surface
        self._renderer = RenderDriver(surface)
        self._native_bypass = is_native_bypass(context.host, native_bypass_hosts)
        self._pending: Set[asyncio.Task[None]] = set()
        self._last_write: Optional[asyncio.Task[None]] = None
        self._message_handlers: Dict[type, Handler] = {
            Ping: self._on_ping,
            UpdateSettings: self._on_update_settings,
            ToggleSelectionMode: self._on_toggle_selection_mode,
            ResetArea: self._on_reset_area,
            GetAreas: self._on_get_areas,
            DeleteArea: self._on_delete_area,
            EditArea: self._on_edit_area,
            ToggleAreaType: self._on_toggle_area_type,
        }
        self._event_handlers: Dict[type, Handler] = {
            Scroll: self._on_scroll,
            Resize: self._on_resize,
            PointerDown: self._on_pointer_down,
            PointerMove: self._on_pointer_move,
            PointerUp: self._on_pointer_up,
            CancelSelection: self._on_cancel_selection,
        }
        _ensure_exhaustive(self._message_handlers, MESSAGE_TYPES)
        _ensure_exhaustive(self._event_handlers, EVENT_TYPES)

    @property
    def page_key(self) -> str:
        return self.context.page_key

    @property
    def native_bypass(self) -> bool:
        return self._native_bypass

    @property
    def frame(self) -> Optional[OverlayFrame]:
        return self._renderer.current_frame

    async def load(self) -> None:
        monochrome = await self._safe_get(MONOCHROME_KEY)
        hide_engagement = await self._safe_get(HIDE_ENGAGEMENT_KEY)
        self.settings = OverlaySettings(
            monochrome=read_bool_setting(monochrome),
            hide_engagement=read_bool_setting(hide_engagement),
        )
        stored = await self._safe_get(areas_key(self.page_key))
        self.areas.replace_all(parse_areas(stored))
        logger.info("Loaded %s areas for %s", len(self.areas), self.page_key)
        self._apply_settings()

    def handle(self, message: Any) -> Optional[Response]:
        command = parse_message(message)
        return self._message_handlers[type(command)](command)

    def handle_event(self, event: Any) -> Optional[Response]:
        parsed = parse_event(event)
        return self._event_handlers[type(parsed)](parsed)

    def render(self) -> OverlayFrame:
        return self._renderer.refresh(
            RenderInputs(
                areas=self.areas.areas,
                viewport=self.viewport,
                scroll_y=self.scroll_y,
                monochrome=self.settings.monochrome,
                native_bypass=self._native_bypass,
            )
        )

    async def flush(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def areas_response(self) -> AreasResponse:
        return AreasResponse(areas=list(self.areas.areas), page_key=self.page_key)

    # -- messages --

    def _on_ping(self, _: Ping) -> PingResponse:
        return PingResponse(page_key=self.page_key)

    def _on_update_settings(self, command: UpdateSettings) -> None:
        self.settings = command.settings
        self._apply_settings()

    def _on_toggle_selection_mode(self, command: ToggleSelectionMode) -> None:
        self._begin_selection(command.area_type)

    def _on_reset_area(self, _: ResetArea) -> AreasResponse:
        self.selection.cancel()
        self._surface.clear_selection()
        self.areas.reset_all()
        self._commit()
        return self.areas_response()

    def _on_get_areas(self, _: GetAreas) -> AreasResponse:
        return self.areas_response()

    def _on_delete_area(self, command: DeleteArea) -> AreasResponse:
        if self.areas.delete(command.area_id):
            self._commit()
        return self.areas_response()

    def _on_edit_area(self, command: EditArea) -> None:
        area = self.areas.find(command.area_id)
        if area is None:
            logger.debug("Edit requested for unknown area %s", command.area_id)
            return
        displayed = area.viewport_rect(self.scroll_y)
        self._begin_selection(area.type, editing_id=area.id)
        self._surface.show_selection(displayed, editing=True)

    def _on_toggle_area_type(self, command: ToggleAreaType) -> AreasResponse:
        if self.areas.toggle_type(command.area_id, self.scroll_y) is not None:
            self._commit()
        return self.areas_response()

    # -- page events --

    def _on_scroll(self, event: Scroll) -> None:
        self.scroll_y = event.scroll_y
        self.render()

    def _on_resize(self, event: Resize) -> None:
        self.viewport = Viewport(event.width, event.height)
        self.render()

    def _on_pointer_down(self, event: PointerDown) -> None:
        box = self.selection.pointer_down(Point(event.x, event.y))
        if box is not None:
            self._surface.show_selection(box, editing=self.selection.editing_id is not None)

    def _on_pointer_move(self, event: PointerMove) -> None:
        box = self.selection.pointer_move(Point(event.x, event.y))
        if box is not None:
            self._surface.show_selection(box, editing=self.selection.editing_id is not None)

    def _on_pointer_up(self, event: PointerUp) -> None:
        point = Point(event.x, event.y) if event.x is not None and event.y is not None else None
        outcome = self.selection.pointer_up(point)
        if outcome is not None:
            self._finish_selection(outcome)

    def _on_cancel_selection(self, _: CancelSelection) -> None:
        outcome = self.selection.cancel()
        if outcome is not None:
            self._finish_selection(outcome)

    # -- internals --

    def _begin_selection(self, area_type: AreaType, editing_id: Optional[int] = None) -> None:
        abandoned = self.selection.begin(area_type, editing_id=editing_id)
        if abandoned is not None:
            self._finish_selection(abandoned)
        if editing_id is not None:
            self.areas.begin_edit(editing_id)
            self.render()

    def _finish_selection(self, outcome: SelectionOutcome) -> None:
        self._surface.clear_selection()
        if isinstance(outcome, SelectionCommitted):
            area = self.areas.add(outcome.rect, outcome.area_type, self.scroll_y)
            logger.info("Committed area %s (%s) on %s", area.id, area.type.value, self.page_key)
            self._commit()
            return
        if isinstance(outcome, SelectionDiscarded) and outcome.editing_id is not None:
            restored = self.areas.cancel_edit()
            if restored is not None:
                logger.info("Restored area %s after abandoned edit", restored.id)
                self.render()

    def _apply_settings(self) -> None:
        self._surface.set_engagement_hidden(self.settings.hide_engagement)
        self.render()

    def _commit(self) -> None:
        self._schedule(areas_key(self.page_key), self.areas.to_payload())
        self.render()

    def _schedule(self, key: str, value: Any) -> None:
        # Writes for a page land in commit order; each waits for the one before.
        task = asyncio.ensure_future(self._write_after(self._last_write, key, value))
        self._last_write = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write_after(
        self, previous: Optional[asyncio.Task[None]], key: str, value: Any
    ) -> None:
        if previous is not None:
            await asyncio.gather(previous, return_exceptions=True)
        try:
            await self._store.set(key, value)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to persist areas for %s", self.page_key)

    async def _safe_get(self, key: str) -> Any:
        try:
            return await self._store.get(key)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to read %s; using defaults", key)
            return None


def _ensure_exhaustive(handlers: Dict[type, Handler], expected: Sequence[type]) -> None:
    missing = [kind.__name__ for kind in expected if kind not in handlers]
    if missing:
        msg = f"Missing handlers for: {', '.join(missing)}"
        raise TypeError(msg)

