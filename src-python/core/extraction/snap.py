"""Phase 1: snap a proposed box to the visual extent of the text it owns.

Vision-model boxes are drawn on a bitmap and routinely clip half a line,
stop short of the last characters, or leave a band of whitespace.  The
snapper corrects them against the exact text layer:

* **Expansion** — a fragment touching the box widens it horizontally only
  when at least half of the fragment is already inside, and stretches it
  vertically on any overlap provided the fragment is owned by this box
  (see :mod:`core.extraction.ownership`).  Vertical edges go to the
  fragment's visual top/bottom rather than its em-box.
* **Trim** — afterwards the top and bottom edges are pulled in to the
  owned text, so oversized proposals shrink onto their content.  Edges
  that are already tight (slack under half a line height) are left
  alone unless text owned by a sibling intrudes into the box.

Descenders are not added here; :func:`apply_descender_compensation` runs
once all boxes have settled.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

from core.extraction.bbox_utils import Box
from core.extraction.extraction_config import (
    SNAP_MAX_ITERATIONS,
    SNAP_OVERLAP_RATIO,
    TRIM_SLACK_RATIO,
    VISUAL_BOTTOM_RATIO,
    VISUAL_TOP_RATIO,
    VISUAL_TOP_RATIO_CJK,
)
from core.extraction.ownership import check_ownership, overlap_bottom
from core.extraction.symbols import has_cjk
from models.schemas import SnapTrace, SnapTrigger, TextFragment

logger = logging.getLogger(__name__)


def visual_top(fragment: TextFragment) -> float:
    """Estimated top of the visible glyphs (below the em-box top)."""
    ratio = VISUAL_TOP_RATIO_CJK if has_cjk(fragment.text) else VISUAL_TOP_RATIO
    return fragment.y + fragment.height * ratio


def visual_bottom(fragment: TextFragment) -> float:
    """Estimated bottom of the glyph body, just below the baseline."""
    return fragment.baseline + fragment.height * VISUAL_BOTTOM_RATIO


def inside_ratio(fragment: TextFragment, x1: float, x2: float) -> float:
    """Share of the fragment's width that lies within ``[x1, x2]``."""
    if fragment.width <= 0:
        return 0.0
    return (min(fragment.right, x2) - max(fragment.x, x1)) / fragment.width


def _touches(fragment: TextFragment, box: Sequence[float]) -> bool:
    """True if the fragment (descender margin included) intersects *box*."""
    x1, y1, x2, y2 = box
    if min(fragment.right, x2) - max(fragment.x, x1) <= 0:
        return False
    return min(overlap_bottom(fragment), y2) - max(fragment.y, y1) > 0


def _trigger(fragment: TextFragment, x_ratio: float, direction: str) -> SnapTrigger:
    return SnapTrigger(
        text=fragment.text,
        x=fragment.x,
        y=fragment.y,
        width=fragment.width,
        height=fragment.height,
        x_ratio=round(x_ratio, 2),
        expanded=direction,
    )


def snap_bbox_to_text(
    bbox: Sequence[float],
    fragments: Sequence[TextFragment],
    other_boxes: Optional[Sequence[Box]] = None,
    trace: Optional[SnapTrace] = None,
    max_iterations: int = SNAP_MAX_ITERATIONS,
) -> Box:
    """Return *bbox* corrected to the text it owns.

    Args:
        bbox: The proposed ``[x1, y1, x2, y2]``; not modified.
        fragments: Every text fragment on the page.
        other_boxes: The sibling boxes as proposed, used to settle
            ownership of lines in a shared band.  ``None`` means the box
            has no competition.
        trace: Optional collector for iteration count and the fragments
            that pushed each edge furthest.
        max_iterations: Expansion passes before giving up on convergence.
    """
    mine = list(bbox)
    x1, y1, x2, y2 = mine
    triggers: dict[str, SnapTrigger] = {}

    changed = True
    iterations = 0
    while changed and iterations < max_iterations:
        changed = False
        iterations += 1
        for frag in fragments:
            if not _touches(frag, (x1, y1, x2, y2)):
                continue

            x_ratio = inside_ratio(frag, x1, x2)
            if x_ratio >= SNAP_OVERLAP_RATIO:
                if frag.x < x1:
                    x1 = frag.x
                    changed = True
                    if trace is not None:
                        triggers["x1←"] = _trigger(frag, x_ratio, "x1←")
                if frag.right > x2:
                    x2 = frag.right
                    changed = True
                    if trace is not None:
                        triggers["x2→"] = _trigger(frag, x_ratio, "x2→")

            if not check_ownership(mine, other_boxes, frag, fragments):
                continue
            top = visual_top(frag)
            bottom = visual_bottom(frag)
            if top < y1:
                y1 = top
                changed = True
                if trace is not None:
                    triggers["y1↑"] = _trigger(frag, x_ratio, "y1↑")
            if bottom > y2:
                y2 = bottom
                changed = True
                if trace is not None:
                    triggers["y2↓"] = _trigger(frag, x_ratio, "y2↓")

    if changed:
        logger.debug(
            "Snap stopped at iteration cap (%d) for box %s", max_iterations, mine,
        )

    y1, y2 = _trim(mine, (x1, y1, x2, y2), fragments, other_boxes)

    if trace is not None:
        trace.iterations = iterations
        trace.triggers = [
            triggers[d] for d in ("x1←", "y1↑", "x2→", "y2↓") if d in triggers
        ]

    return [x1, y1, x2, y2]


def _trim(
    proposed: Box,
    box: tuple[float, float, float, float],
    fragments: Sequence[TextFragment],
    other_boxes: Optional[Sequence[Box]],
) -> tuple[float, float]:
    """Pull the top and bottom edges in to the owned text."""
    x1, y1, x2, y2 = box
    min_top = math.inf
    max_bottom = -math.inf
    top_height = bottom_height = 0.0
    found = False
    intruded = False

    for frag in fragments:
        if not _touches(frag, box):
            continue
        if inside_ratio(frag, x1, x2) < SNAP_OVERLAP_RATIO:
            continue
        if not check_ownership(proposed, other_boxes, frag, fragments):
            intruded = True
            continue
        top = visual_top(frag)
        bottom = visual_bottom(frag)
        if top < min_top:
            min_top, top_height = top, frag.height
        if bottom > max_bottom:
            max_bottom, bottom_height = bottom, frag.height
        found = True

    if not found:
        return y1, y2

    new_y1, new_y2 = y1, y2
    if y1 < min_top and (intruded or min_top - y1 > top_height * TRIM_SLACK_RATIO):
        new_y1 = min_top
    if y2 > max_bottom and (intruded or y2 - max_bottom > bottom_height * TRIM_SLACK_RATIO):
        new_y2 = max_bottom
    if new_y1 >= new_y2:
        return y1, y2
    return new_y1, new_y2
