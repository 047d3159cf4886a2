from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from domain.models import AreaType, Point, Rect

DEFAULT_MIN_SELECTION_SIZE = 10.0


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Armed:
    area_type: AreaType
    editing_id: Optional[int] = None


@dataclass(frozen=True)
class Dragging:
    area_type: AreaType
    origin: Point
    current: Point
    editing_id: Optional[int] = None

    @property
    def box(self) -> Rect:
        return Rect.from_corners(self.origin, self.current)


SelectionState = Union[Idle, Armed, Dragging]


@dataclass(frozen=True)
class SelectionCommitted:
    rect: Rect
    area_type: AreaType
    editing_id: Optional[int] = None


@dataclass(frozen=True)
class SelectionDiscarded:
    """Gesture ended without producing an area (too small or cancelled)."""

    editing_id: Optional[int] = None
    cancelled: bool = False


SelectionOutcome = Union[SelectionCommitted, SelectionDiscarded]


class SelectionStateMachine:
    """Drag-to-select gesture: Idle -> Armed -> Dragging -> Idle."""

    def __init__(self, min_size: float = DEFAULT_MIN_SELECTION_SIZE) -> None:
        self.min_size = min_size
        self._state: SelectionState = Idle()

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def active(self) -> bool:
        return not isinstance(self._state, Idle)

    @property
    def editing_id(self) -> Optional[int]:
        state = self._state
        if isinstance(state, (Armed, Dragging)):
            return state.editing_id
        return None

    def begin(
        self, area_type: AreaType, editing_id: Optional[int] = None
    ) -> Optional[SelectionDiscarded]:
        """Arm the machine. Returns the abandoned gesture, if one was open."""
        abandoned = self.cancel()
        self._state = Armed(area_type=area_type, editing_id=editing_id)
        return abandoned

    def pointer_down(self, point: Point) -> Optional[Rect]:
        state = self._state
        if not isinstance(state, Armed):
            return None
        self._state = Dragging(
            area_type=state.area_type,
            origin=point,
            current=point,
            editing_id=state.editing_id,
        )
        return Rect(point.x, point.y, 0.0, 0.0)

    def pointer_move(self, point: Point) -> Optional[Rect]:
        state = self._state
        if not isinstance(state, Dragging):
            return None
        dragging = Dragging(
            area_type=state.area_type,
            origin=state.origin,
            current=point,
            editing_id=state.editing_id,
        )
        self._state = dragging
        return dragging.box

    def pointer_up(self, point: Optional[Point] = None) -> Optional[SelectionOutcome]:
        state = self._state
        if not isinstance(state, Dragging):
            return None
        current = point if point is not None else state.current
        box = Rect.from_corners(state.origin, current)
        self._state = Idle()
        if box.width > self.min_size and box.height > self.min_size:
            return SelectionCommitted(rect=box, area_type=state.area_type, editing_id=state.editing_id)
        return SelectionDiscarded(editing_id=state.editing_id)

    def cancel(self) -> Optional[SelectionDiscarded]:
        state = self._state
        if isinstance(state, Idle):
            return None
        self._state = Idle()
        return SelectionDiscarded(editing_id=state.editing_id, cancelled=True)
