from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import List

from domain.models import Area, Point, Rect, Viewport


def project_areas(areas: Iterable[Area], scroll_y: float) -> List[Rect]:
    return [area.viewport_rect(scroll_y) for area in areas]


def compute_overlay_rects(
    areas: Sequence[Area],
    viewport: Viewport,
    scroll_y: float,
) -> List[Rect]:
    """Return the rectangles covering the viewport minus every visible area.

    The result never contains overlapping or empty rectangles. Together with
    the visible parts of the areas it tiles the viewport exactly.
    """
    if viewport.is_degenerate:
        return []
    if not areas:
        return [viewport.as_rect()]

    rects = project_areas(areas, scroll_y)
    if len(rects) == 1:
        return _frame_rects(rects[0], viewport)
    return _multi_area_rects(rects, viewport)


def _frame_rects(rect: Rect, viewport: Viewport) -> List[Rect]:
    """Top, bottom, left and right strips around one rectangle."""
    vw = float(viewport.width)
    vh = float(viewport.height)
    top_edge = min(max(rect.y, 0.0), vh)
    bottom_edge = max(min(rect.bottom, vh), 0.0)
    band_height = bottom_edge - top_edge

    result: List[Rect] = []
    if rect.y > 0:
        result.append(Rect(0.0, 0.0, vw, top_edge))
    if rect.bottom < vh:
        result.append(Rect(0.0, bottom_edge, vw, vh - bottom_edge))
    if band_height > 0:
        if rect.x > 0:
            result.append(Rect(0.0, top_edge, min(rect.x, vw), band_height))
        if rect.right < vw:
            right_start = max(rect.right, 0.0)
            result.append(Rect(right_start, top_edge, vw - right_start, band_height))
    return [item for item in result if item.width > 0 and item.height > 0]


def _multi_area_rects(rects: Sequence[Rect], viewport: Viewport) -> List[Rect]:
    screen = viewport.as_rect()
    visible = [rect for rect in rects if rect.intersects(screen)]
    if not visible:
        return [screen]

    min_x = max(0.0, min(rect.x for rect in visible))
    min_y = max(0.0, min(rect.y for rect in visible))
    max_x = min(screen.width, max(rect.right for rect in visible))
    max_y = min(screen.height, max(rect.bottom for rect in visible))
    bounds = Rect(min_x, min_y, max_x - min_x, max_y - min_y)

    result = _frame_rects(bounds, viewport)
    result.extend(_interior_gaps(visible, bounds))
    return result


def _interior_gaps(rects: Sequence[Rect], bounds: Rect) -> List[Rect]:
    """Grid cells inside ``bounds`` whose centroid lies in no rectangle.

    Cell edges only come from rectangle edges, so every cell is either fully
    inside the union of rectangles or fully outside it.
    """
    xs = {bounds.x, bounds.right}
    ys = {bounds.y, bounds.bottom}
    for rect in rects:
        xs.add(_clamp(rect.x, bounds.x, bounds.right))
        xs.add(_clamp(rect.right, bounds.x, bounds.right))
        ys.add(_clamp(rect.y, bounds.y, bounds.bottom))
        ys.add(_clamp(rect.bottom, bounds.y, bounds.bottom))
    x_edges = sorted(xs)
    y_edges = sorted(ys)

    gaps: List[Rect] = []
    for left, right in zip(x_edges, x_edges[1:]):
        for top, bottom in zip(y_edges, y_edges[1:]):
            cell = Rect(left, top, right - left, bottom - top)
            if cell.width <= 0 or cell.height <= 0:
                continue
            if _covered(cell.center, rects):
                continue
            gaps.append(cell)
    return gaps


def _covered(point: Point, rects: Iterable[Rect]) -> bool:
    return any(rect.contains_point(point) for rect in rects)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
