from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

AREAS_KEY_PREFIX = "areas_"
MONOCHROME_KEY = "monochrome"
HIDE_ENGAGEMENT_KEY = "hideEngagement"


class AreaType(str, Enum):
    FIXED = "fixed"
    FLOATING = "floating"

    @property
    def label(self) -> str:
        return "Fixed" if self is AreaType.FIXED else "Floating"


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Viewport:
    width: float
    height: float

    @property
    def is_degenerate(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def as_rect(self) -> Rect:
        return Rect(0.0, 0.0, float(self.width), float(self.height))


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    def contains_point(self, point: Point) -> bool:
        # Inclusive on every edge.
        return self.x <= point.x <= self.right and self.y <= point.y <= self.bottom

    def intersects(self, other: Rect) -> bool:
        return (
            self.x < other.right
            and other.x < self.right
            and self.y < other.bottom
            and other.y < self.bottom
        )

    def intersection(self, other: Rect) -> Rect | None:
        left = max(self.x, other.x)
        top = max(self.y, other.y)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)
        if right <= left or bottom <= top:
            return None
        return Rect(left, top, right - left, bottom - top)

    @classmethod
    def from_corners(cls, first: Point, second: Point) -> Rect:
        return cls(
            min(first.x, second.x),
            min(first.y, second.y),
            abs(second.x - first.x),
            abs(second.y - first.y),
        )

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


class Area(BaseModel):
    """A user-drawn rectangle kept clear of the page-wide overlay.

    ``y`` is the authoritative anchor for floating areas (a viewport offset).
    ``original_y`` is the authoritative anchor for fixed areas (page-absolute,
    viewport y plus scroll y at anchoring time).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(..., ge=1)
    x: float
    y: float
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    type: AreaType = AreaType.FLOATING
    original_y: Optional[float] = Field(default=None, alias="originalY")

    @model_validator(mode="after")
    def ensure_fixed_anchor(self) -> Area:
        if self.type is AreaType.FIXED and self.original_y is None:
            msg = f"Fixed area {self.id} is missing originalY"
            raise ValueError(msg)
        return self

    def viewport_y(self, scroll_y: float) -> float:
        if self.type is AreaType.FIXED and self.original_y is not None:
            return self.original_y - scroll_y
        return self.y

    def viewport_rect(self, scroll_y: float) -> Rect:
        return Rect(self.x, self.viewport_y(scroll_y), self.width, self.height)

    def with_toggled_type(self, scroll_y: float) -> Area:
        displayed_y = self.viewport_y(scroll_y)
        if self.type is AreaType.FIXED:
            return self.model_copy(
                update={"type": AreaType.FLOATING, "y": displayed_y, "original_y": None}
            )
        return self.model_copy(
            update={"type": AreaType.FIXED, "y": displayed_y, "original_y": displayed_y + scroll_y}
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class OverlaySettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    monochrome: bool = True
    hide_engagement: bool = Field(default=True, alias="hideEngagement")

    def to_payload(self) -> dict[str, bool]:
        return self.model_dump(by_alias=True)


def areas_key(page_key: str) -> str:
    return f"{AREAS_KEY_PREFIX}{page_key}"
