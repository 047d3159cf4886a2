from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Optional, Tuple

from domain.models import Area, Rect, Viewport
from domain.ports.overlay import OverlaySurface
from domain.services.compute_overlay_rects import compute_overlay_rects

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderInputs:
    areas: Tuple[Area, ...]
    viewport: Viewport
    scroll_y: float
    monochrome: bool = True
    native_bypass: bool = False


@dataclass(frozen=True)
class OverlayFrame:
    sequence: int
    visible: bool
    rects: Tuple[Rect, ...] = field(default_factory=tuple)

    def same_content(self, other: Optional[OverlayFrame]) -> bool:
        return other is not None and self.visible == other.visible and self.rects == other.rects


def build_frame(inputs: RenderInputs, sequence: int) -> OverlayFrame:
    if not inputs.monochrome or inputs.native_bypass:
        return OverlayFrame(sequence=sequence, visible=False)
    rects = compute_overlay_rects(inputs.areas, inputs.viewport, inputs.scroll_y)
    return OverlayFrame(sequence=sequence, visible=True, rects=tuple(rects))


class RenderDriver:
    """Turns render inputs into frames and applies them to the overlay surface.

    Frames are numbered; a frame older than the one on screen is dropped, and
    a frame with the same content as the one on screen is not re-applied.
    """

    def __init__(self, surface: OverlaySurface) -> None:
        self._surface = surface
        self._sequence = 0
        self._applied: Optional[OverlayFrame] = None

    @property
    def current_frame(self) -> Optional[OverlayFrame]:
        return self._applied

    def compute(self, inputs: RenderInputs) -> OverlayFrame:
        self._sequence += 1
        return build_frame(inputs, self._sequence)

    def apply(self, frame: OverlayFrame) -> bool:
        applied = self._applied
        if applied is not None and frame.sequence <= applied.sequence:
            logger.debug("Dropping stale frame %s (on screen: %s)", frame.sequence, applied.sequence)
            return False
        self._applied = frame
        if frame.same_content(applied):
            return False
        if frame.visible:
            self._surface.show(frame.rects)
        else:
            self._surface.hide()
        logger.debug("Applied frame %s with %s rects", frame.sequence, len(frame.rects))
        return True

    def refresh(self, inputs: RenderInputs) -> OverlayFrame:
        frame = self.compute(inputs)
        self.apply(frame)
        return frame


def rects_payload(rects: Sequence[Rect]) -> list[dict[str, float]]:
    return [rect.to_dict() for rect in rects]
