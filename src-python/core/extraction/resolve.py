"""Phases 2.25–2.75: settle snapped boxes against each other.

* :func:`resolve_x_overlaps` removes shared horizontal extent between
  boxes that also overlap vertically (side-by-side proposals).
* :func:`enforce_min_vertical_gap` keeps stacked boxes apart.
* :func:`apply_descender_compensation` finally grows each bottom edge to
  cover descenders without entering the box below.

All three mutate the box list in place.  Pairs are visited once in index
order; with three or more mutually overlapping boxes the outcome depends
on that order.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from core.extraction.bbox_utils import Box, horizontal_overlap, is_degenerate
from core.extraction.extraction_config import (
    DESCENDER_RATIO,
    DESCENDER_RATIO_CJK,
    DESCENDER_TEXT_CLEARANCE,
    MIN_VERTICAL_GAP,
    NORMALIZED_MAX,
    SAME_LINE_THRESHOLD,
    SNAP_OVERLAP_RATIO,
    X_SUBSET_RATIO,
)
from core.extraction.snap import inside_ratio, visual_bottom
from core.extraction.symbols import has_cjk
from models.schemas import TextFragment, XResolveTrace

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Phase 2.25: horizontal overlap
# ---------------------------------------------------------------------------

def baseline_subset_ratio(left: set[int], right: set[int]) -> float:
    """Share of the smaller baseline set found (within a line) in the larger.

    An empty smaller side counts as a full match.
    """
    small, large = (left, right) if len(left) <= len(right) else (right, left)
    if not small:
        return 1.0
    matched = sum(
        1 for bl in small if any(abs(bl - other) < SAME_LINE_THRESHOLD for other in large)
    )
    return matched / len(small)


def _strip_coverage(
    fragments: Sequence[TextFragment],
    strip_left: float,
    strip_right: float,
    y_top: float,
    y_bottom: float,
    split: bool,
) -> tuple[float, float]:
    """Text width inside the overlap strip credited to the left and right box."""
    mid = (strip_left + strip_right) / 2
    left_cov = right_cov = 0.0
    for frag in fragments:
        if frag.right <= strip_left or frag.x >= strip_right:
            continue
        if frag.baseline < y_top or frag.y > y_bottom:
            continue
        center = frag.x + frag.width / 2
        if split:
            if center < mid:
                left_cov += min(frag.right, mid) - max(frag.x, strip_left)
            else:
                right_cov += min(frag.right, strip_right) - max(frag.x, mid)
        else:
            amount = min(frag.right, strip_right) - max(frag.x, strip_left)
            if center < mid:
                left_cov += amount
            else:
                right_cov += amount
    return left_cov, right_cov


def resolve_x_overlaps(
    boxes: list[Box],
    fragments: Sequence[TextFragment],
) -> list[XResolveTrace]:
    """Eliminate horizontal overlap between vertically overlapping boxes.

    For each such pair the baselines of text centred in each box's
    exclusive zone are compared.  When the smaller set is (mostly) a subset
    of the larger one, the boxes describe one block flowing across the
    seam and the strip is split at its midpoint before counting coverage;
    otherwise each fragment's whole strip overlap counts for the side its
    centre falls on.  The side with less coverage gives way: its inner edge
    is pushed onto the winner's.

    Pairs that overlap relatively more in x than in y, or whose x-extents
    nest, are stacked proposals and are left to the gap enforcer.

    Returns one trace entry per box (untouched boxes keep a zero delta).
    """
    traces = [XResolveTrace() for _ in boxes]
    if len(boxes) < 2:
        return traces

    for i in range(len(boxes)):
        for j in range(i + 1, len(boxes)):
            strip_left = max(boxes[i][0], boxes[j][0])
            strip_right = min(boxes[i][2], boxes[j][2])
            if strip_right <= strip_left:
                continue

            li, ri = (i, j) if boxes[i][0] <= boxes[j][0] else (j, i)
            left, right = boxes[li], boxes[ri]

            y_top = max(left[1], right[1])
            y_bottom = min(left[3], right[3])
            if y_bottom <= y_top:
                continue
            # Overlapping relatively more in x than in y means stacked, not
            # side by side; the gap enforcer separates such pairs.
            x_frac = (strip_right - strip_left) / min(left[2] - left[0], right[2] - right[0])
            y_frac = (y_bottom - y_top) / min(left[3] - left[1], right[3] - right[1])
            if left[0] >= right[0] or left[2] >= right[2] or y_frac < x_frac:
                logger.debug(
                    "X-overlap %d|%d: stacked (x %.2f, y %.2f), left to gap enforcer",
                    li, ri, x_frac, y_frac,
                )
                continue

            left_bls: set[int] = set()
            right_bls: set[int] = set()
            for frag in fragments:
                if frag.baseline < y_top or frag.y > y_bottom:
                    continue
                center = frag.x + frag.width / 2
                if center < strip_left and left[0] < center < left[2]:
                    left_bls.add(round(frag.baseline))
                elif center > strip_right and right[0] < center < right[2]:
                    right_bls.add(round(frag.baseline))

            ratio = baseline_subset_ratio(left_bls, right_bls)
            same_block = ratio >= X_SUBSET_RATIO
            left_cov, right_cov = _strip_coverage(
                fragments, strip_left, strip_right, y_top, y_bottom, split=same_block,
            )

            before_left, before_right = list(left), list(right)
            if left_cov >= right_cov:
                right[0] = left[2]
            else:
                left[2] = right[0]

            logger.debug(
                "X-overlap %d|%d: strip=[%.1f, %.1f] subset=%.2f cov L=%.1f R=%.1f -> %s yields",
                li, ri, strip_left, strip_right, ratio, left_cov, right_cov,
                "right" if left_cov >= right_cov else "left",
            )

            for idx, box, before, partner in (
                (li, left, before_left, ri),
                (ri, right, before_right, li),
            ):
                traces[idx] = XResolveTrace(
                    delta=[box[k] - before[k] for k in range(4)],
                    triggered=True,
                    subset_ratio=round(ratio, 2),
                    paired_with=partner,
                )

    return traces


# ---------------------------------------------------------------------------
# Phase 2.5: minimum vertical gap
# ---------------------------------------------------------------------------

def enforce_min_vertical_gap(boxes: list[Box], min_gap: float = MIN_VERTICAL_GAP) -> None:
    """Split any gap deficit between horizontally overlapping boxes evenly."""
    if len(boxes) < 2:
        return

    for i in range(len(boxes)):
        for j in range(i + 1, len(boxes)):
            if horizontal_overlap(boxes[i], boxes[j]) <= 0:
                continue
            upper, lower = (
                (boxes[i], boxes[j]) if boxes[i][1] <= boxes[j][1] else (boxes[j], boxes[i])
            )
            gap = lower[1] - upper[3]
            if gap >= min_gap:
                continue
            half = (min_gap - gap) / 2
            upper[3] -= half
            lower[1] += half
            logger.debug("Gap %d/%d: %.1f < %.1f, each side retreats %.1f", i, j, gap, min_gap, half)


# ---------------------------------------------------------------------------
# Phase 2.75: descenders
# ---------------------------------------------------------------------------

def _next_top_below(boxes: Sequence[Box], index: int) -> float:
    """Top of the nearest horizontally overlapping box starting below *index*."""
    box = boxes[index]
    next_y1 = NORMALIZED_MAX
    for j, other in enumerate(boxes):
        if j == index or horizontal_overlap(box, other) <= 0:
            continue
        if other[1] > box[3]:
            next_y1 = min(next_y1, other[1])
    return next_y1


def apply_descender_compensation(
    boxes: list[Box],
    fragments: Sequence[TextFragment],
    min_gap: float = MIN_VERTICAL_GAP,
) -> None:
    """Extend each bottom edge to cover the descenders of its last line.

    The bottom line is the set of fragments with at least half their width
    inside the box whose baseline sits on or within one line above the
    bottom edge.  The edge moves to that line's visual bottom plus the
    script's descender depth (tallest fragment wins), is never moved up,
    and stops ``min_gap`` short of the next box below.  It also stays
    clear of the next text below, which would otherwise become a hit.
    Degenerate boxes are left alone.
    """
    for i, box in enumerate(boxes):
        if is_degenerate(box):
            continue
        x1, _, x2, y2 = box
        max_height = 0.0
        line_bottom = None
        text_below = NORMALIZED_MAX
        cjk = False
        for frag in fragments:
            if not (frag.x < x2 and frag.right > x1):
                continue
            if frag.baseline > y2:
                text_below = min(text_below, frag.y)
                continue
            if y2 - frag.baseline >= SAME_LINE_THRESHOLD:
                continue
            if inside_ratio(frag, x1, x2) < SNAP_OVERLAP_RATIO:
                continue
            max_height = max(max_height, frag.height)
            bottom = visual_bottom(frag)
            line_bottom = bottom if line_bottom is None else max(line_bottom, bottom)
            if has_cjk(frag.text):
                cjk = True

        if line_bottom is None or max_height <= 0:
            continue

        ratio = DESCENDER_RATIO_CJK if cjk else DESCENDER_RATIO
        target = line_bottom + max_height * ratio
        limit = min(
            _next_top_below(boxes, i) - min_gap,
            text_below - DESCENDER_TEXT_CLEARANCE,
        )
        new_y2 = min(limit, target)
        if new_y2 > y2:
            logger.debug("Descender box %d: y2 %.1f -> %.1f", i, y2, new_y2)
            box[3] = new_y2
