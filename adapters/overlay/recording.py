from __future__ import annotations

from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Deque, Optional, Tuple

from domain.models import Rect

HISTORY_LIMIT = 50


@dataclass
class SelectionBox:
    rect: Rect
    editing: bool = False


@dataclass
class RecordingOverlaySurface:
    """Overlay surface that keeps the rendered state instead of drawing it.

    ``history`` holds the most recent ``HISTORY_LIMIT`` applied frames, with
    ``None`` for a hidden overlay.
    """

    visible: bool = False
    rects: Tuple[Rect, ...] = ()
    engagement_hidden: bool = False
    selection: Optional[SelectionBox] = None
    history: Deque[Optional[Tuple[Rect, ...]]] = field(
        default_factory=lambda: deque(maxlen=HISTORY_LIMIT)
    )

    def show(self, rects: Sequence[Rect]) -> None:
        self.visible = True
        self.rects = tuple(rects)
        self.history.append(self.rects)

    def hide(self) -> None:
        self.visible = False
        self.rects = ()
        self.history.append(None)

    def set_engagement_hidden(self, hidden: bool) -> None:
        self.engagement_hidden = hidden

    def show_selection(self, rect: Rect, editing: bool = False) -> None:
        self.selection = SelectionBox(rect=rect, editing=editing)

    def clear_selection(self) -> None:
        self.selection = None
