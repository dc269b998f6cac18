"""Bounding-box geometry helpers shared by the correction phases.

Boxes are plain ``[x1, y1, x2, y2]`` lists in normalized page units so the
phases can correct a page's boxes in place.
"""

from __future__ import annotations

from core.extraction.extraction_config import CONTAINED_AREA_RATIO

Box = list[float]


def box_overlap_area(a: Box, b: Box) -> float:
    """Return the area of intersection between two boxes."""
    ix0 = max(a[0], b[0])
    iy0 = max(a[1], b[1])
    ix1 = min(a[2], b[2])
    iy1 = min(a[3], b[3])
    if ix1 <= ix0 or iy1 <= iy0:
        return 0.0
    return (ix1 - ix0) * (iy1 - iy0)


def box_area(b: Box) -> float:
    """Return the area of a box (0 for degenerate boxes)."""
    return max(0.0, b[2] - b[0]) * max(0.0, b[3] - b[1])


def horizontal_overlap(a: Box, b: Box) -> float:
    """Signed width of the shared x-extent; <= 0 means side by side."""
    return min(a[2], b[2]) - max(a[0], b[0])


def is_degenerate(b: Box) -> bool:
    return b[0] >= b[2] or b[1] >= b[3]


def find_contained_boxes(
    boxes: list[Box],
    ratio: float = CONTAINED_AREA_RATIO,
) -> set[int]:
    """Return indices of boxes that duplicate a larger (or earlier) box.

    A box is contained when another box covers at least *ratio* of its own
    area.  Of two mutually contained boxes (near-identical proposals) the
    smaller one is reported, or the later one when the areas are equal.
    """
    contained: set[int] = set()
    if len(boxes) < 2:
        return contained

    areas = [box_area(b) for b in boxes]
    for i, inner in enumerate(boxes):
        if areas[i] <= 0:
            continue
        for j, outer in enumerate(boxes):
            if i == j or j in contained:
                continue
            if box_overlap_area(inner, outer) < areas[i] * ratio:
                continue
            if areas[i] < areas[j] or (areas[i] == areas[j] and i > j):
                contained.add(i)
                break
    return contained
