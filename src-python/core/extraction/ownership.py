"""Ownership of text fragments contested by two overlapping regions.

When two proposed boxes share horizontal extent and overlap vertically,
a line in the shared band is "contested".  Ownership is decided in two
levels:

1. **Coverage** — both boxes retreat to the midpoint of their vertical
   overlap, and the fragment belongs to the box that covers more of it.
2. **Line spacing** — if the coverage verdict goes against us, the
   fragment's nearest text neighbours above and below are consulted.  A
   line sits closer to the paragraph it belongs to, so when the nearer
   neighbour lies unambiguously inside one box, ownership follows it.

All decisions use the boxes as proposed (before snapping) so every box
sees the same evidence regardless of processing order.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

from core.extraction.bbox_utils import Box, horizontal_overlap
from core.extraction.extraction_config import DESCENDER_RATIO, DESCENDER_RATIO_CJK
from core.extraction.symbols import has_cjk
from models.schemas import TextFragment

logger = logging.getLogger(__name__)


def overlap_bottom(fragment: TextFragment) -> float:
    """Fragment bottom used for overlap tests, descender margin included.

    The em-box ends at the baseline, so a box edge resting in the
    descender zone (g/p/q/y) would otherwise miss the line.
    """
    ratio = DESCENDER_RATIO_CJK if has_cjk(fragment.text) else DESCENDER_RATIO
    return fragment.baseline + fragment.height * ratio


def _in_box(fragment: TextFragment, box: Box) -> bool:
    return box[1] <= fragment.y < box[3]


def line_spacing_ownership(
    my_box: Box,
    other_box: Box,
    fragment: TextFragment,
    fragments: Sequence[TextFragment],
) -> Optional[bool]:
    """Decide ownership from the nearer neighbouring line.

    Returns True when the nearer neighbour is only in *my_box*, False when
    it is only in *other_box*, and None when the neighbours are equidistant,
    missing, or inside both or neither box.
    """
    above: Optional[TextFragment] = None
    below: Optional[TextFragment] = None
    above_gap = math.inf
    below_gap = math.inf

    for other in fragments:
        # Only text in the same column is a meaningful neighbour.
        if other.x >= fragment.right or other.right <= fragment.x:
            continue
        if other.baseline < fragment.baseline:
            gap = fragment.baseline - other.baseline
            if gap < above_gap:
                above_gap = gap
                above = other
        elif other.baseline > fragment.baseline:
            gap = other.baseline - fragment.baseline
            if gap < below_gap:
                below_gap = gap
                below = other

    if above_gap < below_gap:
        nearest = above
    elif below_gap < above_gap:
        nearest = below
    else:
        return None

    mine = _in_box(nearest, my_box)
    theirs = _in_box(nearest, other_box)
    if mine and not theirs:
        return True
    if theirs and not mine:
        return False
    return None


def check_ownership(
    my_box: Box,
    other_boxes: Optional[Sequence[Box]],
    fragment: TextFragment,
    fragments: Sequence[TextFragment],
) -> bool:
    """Return True if *fragment* belongs to *my_box* against every sibling.

    Siblings that do not share horizontal extent with *my_box* never
    compete (side-by-side boxes are handled by the horizontal resolver).
    """
    if not other_boxes:
        return True

    bottom = overlap_bottom(fragment)

    for other in other_boxes:
        if horizontal_overlap(my_box, other) <= 0:
            continue

        my_top, my_bottom = my_box[1], my_box[3]
        other_top, other_bottom = other[1], other[3]

        band_top = max(my_box[1], other[1])
        band_bottom = min(my_box[3], other[3])
        if band_bottom > band_top:
            mid = (band_top + band_bottom) / 2
            if my_box[1] <= other[1]:
                my_bottom = min(my_bottom, mid)
                other_top = max(other_top, mid)
            else:
                my_top = max(my_top, mid)
                other_bottom = min(other_bottom, mid)

        my_cov = max(0.0, min(bottom, my_bottom) - max(fragment.y, my_top))
        other_cov = max(0.0, min(bottom, other_bottom) - max(fragment.y, other_top))

        if other_cov > my_cov:
            verdict = line_spacing_ownership(my_box, other, fragment, fragments)
            if verdict is True:
                logger.debug(
                    "Line spacing keeps %r (coverage %.1f < %.1f)",
                    fragment.text[:30], my_cov, other_cov,
                )
                continue
            return False

    return True
