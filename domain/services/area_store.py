from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, List, Optional

from pydantic import ValidationError

from domain.models import Area, AreaType, Rect

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EditSlot:
    area: Area
    index: int


class AreaStore:
    """Ordered in-memory collection of the areas of one page context."""

    def __init__(self, areas: Iterable[Area] = ()) -> None:
        self._areas: List[Area] = []
        self._next_id = 1
        self._editing: Optional[EditSlot] = None
        self.replace_all(areas)

    @property
    def areas(self) -> tuple[Area, ...]:
        return tuple(self._areas)

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def editing(self) -> Optional[EditSlot]:
        return self._editing

    def __len__(self) -> int:
        return len(self._areas)

    def find(self, area_id: int) -> Optional[Area]:
        return next((area for area in self._areas if area.id == area_id), None)

    def add(self, rect: Rect, area_type: AreaType, scroll_y: float) -> Area:
        """Create an area from a viewport rectangle.

        While an edit is open the edited id is reused and the record goes back
        to the list position it was taken from.
        """
        slot = self._editing
        area_id = slot.area.id if slot else self._allocate_id()
        original_y = rect.y + scroll_y if area_type is AreaType.FIXED else None
        area = Area(
            id=area_id,
            x=rect.x,
            y=rect.y,
            width=rect.width,
            height=rect.height,
            type=area_type,
            original_y=original_y,
        )
        self._editing = None
        if slot:
            self._areas.insert(min(slot.index, len(self._areas)), area)
        else:
            self._areas.append(area)
        return area

    def toggle_type(self, area_id: int, scroll_y: float) -> Optional[Area]:
        index = self._index_of(area_id)
        if index is None:
            return None
        toggled = self._areas[index].with_toggled_type(scroll_y)
        self._areas[index] = toggled
        return toggled

    def delete(self, area_id: int) -> bool:
        index = self._index_of(area_id)
        if index is None:
            return False
        del self._areas[index]
        return True

    def reset_all(self) -> None:
        self._areas = []
        self._editing = None
        self._next_id = 1

    def begin_edit(self, area_id: int) -> Optional[Area]:
        """Take an area out of the active set until the edit commits or cancels."""
        self.cancel_edit()
        index = self._index_of(area_id)
        if index is None:
            return None
        area = self._areas.pop(index)
        self._editing = EditSlot(area=area, index=index)
        return area

    def cancel_edit(self) -> Optional[Area]:
        slot = self._editing
        if slot is None:
            return None
        self._editing = None
        self._areas.insert(min(slot.index, len(self._areas)), slot.area)
        return slot.area

    def replace_all(self, areas: Iterable[Area]) -> None:
        unique: List[Area] = []
        seen: set[int] = set()
        for area in areas:
            if area.id in seen:
                logger.warning("Dropping duplicate area id %s", area.id)
                continue
            seen.add(area.id)
            unique.append(area)
        self._areas = unique
        self._editing = None
        self._next_id = max((area.id for area in unique), default=0) + 1

    def to_payload(self) -> List[dict[str, Any]]:
        return [area.to_payload() for area in self._areas]

    def _allocate_id(self) -> int:
        area_id = self._next_id
        self._next_id += 1
        return area_id

    def _index_of(self, area_id: int) -> Optional[int]:
        for index, area in enumerate(self._areas):
            if area.id == area_id:
                return index
        return None


def parse_areas(payload: Any) -> List[Area]:
    """Load persisted area records, skipping anything malformed."""
    if payload is None:
        return []
    if not isinstance(payload, Sequence) or isinstance(payload, (str, bytes)):
        logger.warning("Ignoring malformed area list of type %s", type(payload).__name__)
        return []
    areas: List[Area] = []
    for raw in payload:
        try:
            areas.append(Area.model_validate(raw))
        except ValidationError as exc:
            logger.warning("Skipping malformed area record %r: %s", raw, exc)
    return areas
