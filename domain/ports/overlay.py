from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from domain.models import Rect


class OverlaySurface(Protocol):
    def show(self, rects: Sequence[Rect]) -> None: ...

    def hide(self) -> None: ...

    def set_engagement_hidden(self, hidden: bool) -> None: ...

    def show_selection(self, rect: Rect, editing: bool = False) -> None: ...

    def clear_selection(self) -> None: ...
