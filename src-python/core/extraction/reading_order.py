"""Phase 3b: serialize one column's hits in reading order.

Steps:

1. **Adaptive line threshold** — baselines are micro-clustered at a very
   tight tolerance.  Clusters with two or more fragments are *stable*
   lines; single-fragment clusters are usually hyperlinks or inline runs
   in another font with a shifted baseline and are ignored.  The minimum
   spacing between stable lines is the document's real line pitch, and
   70% of it replaces the default threshold when that is tighter.
2. **Sequential clustering** — hits sorted by baseline are grouped in
   order.  A tolerance comparator inside ``sort`` is not transitive and
   would interleave adjacent lines, so grouping is never done that way.
   A hit whose baseline is out of range but whose body still overlaps the
   current line's core range joins the line (bold runs with a shifted
   baseline); the core range is not widened by such joins.
3. **Fragment repair** — lines much narrower than the typical line that
   complement a nearby narrow line horizontally are merged back together.
4. **Serialization** — line gaps above 1.3× the local base spacing become
   blank lines; intra-line gaps become nothing, a space or a tab; a large
   negative gap forces a line break.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Sequence

from core.extraction.extraction_config import (
    ADAPTIVE_SPACING_SCALE,
    COL_GAP_THRESHOLD,
    FRAGMENT_BASELINE_FACTOR,
    FRAGMENT_COMPLEMENT_RATIO,
    FRAGMENT_MAX_DISTANCE,
    FRAGMENT_MIN_REF_SPAN,
    FRAGMENT_REF_PERCENTILE,
    FRAGMENT_SPAN_RATIO,
    MICRO_CLUSTER_THRESHOLD,
    MIN_ADAPTIVE_HITS,
    PARA_GAP_RATIO,
    PARA_LOCAL_PERCENTILE,
    PARA_MIN_LOCAL_GAPS,
    PARA_WINDOW,
    SAME_LINE_THRESHOLD,
    SPACE_GAP_THRESHOLD,
    WRAPAROUND_THRESHOLD,
    Y_OVERLAP_MIN,
)
from core.extraction.hits import Hit
from core.extraction.symbols import map_dingbat_text, sanitize_private_use
from models.schemas import ExtractTrace, FragmentMerge, TextFragment, YOverlapMerge

logger = logging.getLogger(__name__)


@dataclass
class TextLine:
    """Hits sharing one visual line.

    ``baseline`` is the anchor (first hit in baseline order).  ``top_y`` and
    ``bottom_y`` span the hits grouped by baseline proximity only.
    """
    baseline: float
    top_y: float
    bottom_y: float
    hits: list[Hit] = field(default_factory=list)

    @property
    def min_x(self) -> float:
        return min(h.x for h in self.hits)

    @property
    def max_x(self) -> float:
        return max(h.right for h in self.hits)

    @property
    def span(self) -> float:
        return self.max_x - self.min_x


class LineThreshold(NamedTuple):
    value: float
    path: str = "none"                       # "stable", "fallback" or "none"
    stable_count: int = 0
    min_stable_spacing: Optional[float] = None
    micro_cluster_count: int = 0
    median_micro_spacing: Optional[float] = None

    @property
    def adaptive(self) -> bool:
        return self.value != SAME_LINE_THRESHOLD


# ---------------------------------------------------------------------------
# Line threshold
# ---------------------------------------------------------------------------

def _usable_spacing(spacing: float) -> bool:
    return MICRO_CLUSTER_THRESHOLD < spacing < SAME_LINE_THRESHOLD


def compute_line_threshold(baselines: Sequence[float]) -> LineThreshold:
    """Derive the same-line threshold from the column's own line pitch.

    *baselines* must be sorted ascending.
    """
    if len(baselines) < MIN_ADAPTIVE_HITS:
        return LineThreshold(SAME_LINE_THRESHOLD)

    clusters: list[list[float]] = [[baselines[0], 1]]
    for bl in baselines[1:]:
        if bl - clusters[-1][0] < MICRO_CLUSTER_THRESHOLD:
            clusters[-1][1] += 1
        else:
            clusters.append([bl, 1])

    stable = [c[0] for c in clusters if c[1] >= 2]
    min_stable: Optional[float] = None
    if len(stable) >= 2:
        spacing = min(b - a for a, b in zip(stable, stable[1:]))
        min_stable = round(spacing, 1)
        if _usable_spacing(spacing):
            value = max(MICRO_CLUSTER_THRESHOLD, spacing * ADAPTIVE_SPACING_SCALE)
            logger.debug(
                "Adaptive line threshold: %d stable lines, pitch %.1f -> %.1f",
                len(stable), spacing, value,
            )
            return LineThreshold(value, "stable", len(stable), min_stable, len(clusters))

    median_micro: Optional[float] = None
    if len(clusters) >= 3:
        spacings = sorted(b[0] - a[0] for a, b in zip(clusters, clusters[1:]))
        median = spacings[len(spacings) // 2]
        median_micro = round(median, 1)
        if _usable_spacing(median):
            value = max(MICRO_CLUSTER_THRESHOLD, median * ADAPTIVE_SPACING_SCALE)
            logger.debug(
                "Adaptive line threshold (fallback): %d micro clusters, median pitch %.1f -> %.1f",
                len(clusters), median, value,
            )
            return LineThreshold(
                value, "fallback", len(stable), min_stable, len(clusters), median_micro,
            )

    return LineThreshold(
        SAME_LINE_THRESHOLD, "none", len(stable), min_stable, len(clusters), median_micro,
    )


# ---------------------------------------------------------------------------
# Line clustering
# ---------------------------------------------------------------------------

def cluster_lines(
    hits: Sequence[Hit],
    threshold: float,
    y_merges: Optional[list[YOverlapMerge]] = None,
) -> list[TextLine]:
    """Group baseline-sorted *hits* into lines, left to right within each."""
    first = hits[0]
    lines = [TextLine(first.baseline, first.y, first.baseline, [first])]

    for hit in hits[1:]:
        line = lines[-1]
        if hit.baseline - line.baseline < threshold:
            line.hits.append(hit)
            line.top_y = min(line.top_y, hit.y)
            line.bottom_y = max(line.bottom_y, hit.baseline)
            continue

        overlap = min(line.bottom_y, hit.baseline) - max(line.top_y, hit.y)
        if overlap >= Y_OVERLAP_MIN:
            diff = hit.baseline - line.baseline
            logger.debug(
                "Y-overlap line merge: baseline diff %.1f > %.1f, overlap %.1f -> %r",
                diff, threshold, overlap, hit.text[:30],
            )
            if y_merges is not None:
                y_merges.append(YOverlapMerge(
                    text=hit.text[:50],
                    baseline_diff=round(diff, 1),
                    overlap=round(overlap, 1),
                    to_line=len(lines) - 1,
                ))
            line.hits.append(hit)
        else:
            lines.append(TextLine(hit.baseline, hit.y, hit.baseline, [hit]))

    for line in lines:
        line.hits.sort(key=lambda h: h.x)
    return lines


def merge_fragment_lines(
    lines: list[TextLine],
    threshold: float,
    merges: Optional[list[FragmentMerge]] = None,
) -> None:
    """Re-join visual lines split by baseline jitter (in place).

    A line narrower than 70% of the reference width (75th percentile of all
    widths) merges with a following narrow line within a few lines and
    ``2.5 × threshold`` baseline distance, if together they span clearly
    more than either alone.
    """
    if len(lines) < 3:
        return
    spans = sorted(line.span for line in lines)
    ref_span = spans[math.floor(len(spans) * FRAGMENT_REF_PERCENTILE)]
    if ref_span <= FRAGMENT_MIN_REF_SPAN:
        return

    limit = ref_span * FRAGMENT_SPAN_RATIO
    max_diff = threshold * FRAGMENT_BASELINE_FACTOR

    i = 0
    while i < len(lines):
        if lines[i].span >= limit:
            i += 1
            continue
        j = i + 1
        while j < min(i + FRAGMENT_MAX_DISTANCE + 1, len(lines)):
            a, b = lines[i], lines[j]
            if b.span >= limit or abs(a.baseline - b.baseline) > max_diff:
                j += 1
                continue
            lo = min(a.min_x, b.min_x)
            hi = max(a.max_x, b.max_x)
            if hi - lo < max(a.span, b.span) * FRAGMENT_COMPLEMENT_RATIO:
                j += 1
                continue

            logger.debug(
                "Fragment line merge: line %d (x=%.0f-%.0f) + line %d (x=%.0f-%.0f)",
                i, a.min_x, a.max_x, j, b.min_x, b.max_x,
            )
            if merges is not None:
                merges.append(FragmentMerge(
                    from_line=j, to_line=i,
                    combined_x_min=round(lo), combined_x_max=round(hi),
                ))
            a.hits.extend(b.hits)
            a.hits.sort(key=lambda h: h.x)
            del lines[j]
        i += 1


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def _paragraph_reference(gaps: Sequence[float], index: int, median: float) -> float:
    """Base line spacing around gap *index* (lower tail of a local window)."""
    if len(gaps) < PARA_MIN_LOCAL_GAPS:
        return median
    start = max(0, index - PARA_WINDOW)
    end = min(len(gaps) - 1, index + PARA_WINDOW)
    window = sorted(gaps[start:end + 1])
    return window[math.floor(len(window) * PARA_LOCAL_PERCENTILE)]


def _hit_text(hit: Hit) -> str:
    return map_dingbat_text(hit.text) if hit.symbol_font else hit.text


def _join_line(line: TextLine) -> str:
    parts: list[str] = []
    prev: Optional[Hit] = None
    for hit in line.hits:
        if prev is not None:
            gap = hit.x - prev.right
            if gap > COL_GAP_THRESHOLD:
                parts.append("\t")
            elif gap > SPACE_GAP_THRESHOLD:
                parts.append(" ")
            elif gap < WRAPAROUND_THRESHOLD:
                # The next run starts far left of the previous one: two
                # visual lines were grouped together.
                parts.append("\n")
        parts.append(_hit_text(hit))
        prev = hit
    return "".join(parts)


def format_column_text(hits: Sequence[Hit], trace: Optional[ExtractTrace] = None) -> str:
    """Return the reading-order text of one column's hits."""
    if not hits:
        return ""

    ordered = sorted(hits, key=lambda h: h.baseline)
    threshold = compute_line_threshold([h.baseline for h in ordered])

    y_merges: list[YOverlapMerge] = []
    frag_merges: list[FragmentMerge] = []
    lines = cluster_lines(ordered, threshold.value, y_merges)
    merge_fragment_lines(lines, threshold.value, frag_merges)

    gaps = [b.baseline - a.baseline for a, b in zip(lines, lines[1:])]
    median_gap = 0.0
    if len(gaps) >= 2:
        median_gap = sorted(gaps)[len(gaps) // 2]
        logger.debug(
            "Line gaps: %d lines, median %.1f, mode %s, gaps=[%s]",
            len(lines), median_gap,
            "local" if len(gaps) >= PARA_MIN_LOCAL_GAPS else "global",
            ",".join(f"{g:.1f}" for g in gaps),
        )

    if trace is not None:
        trace.line_count = len(lines)
        trace.line_threshold = threshold.value
        trace.adaptive_threshold = threshold.adaptive
        trace.adaptive_path = threshold.path
        trace.stable_count = threshold.stable_count or None
        trace.min_stable_spacing = threshold.min_stable_spacing
        trace.micro_cluster_count = threshold.micro_cluster_count or None
        trace.median_micro_spacing = threshold.median_micro_spacing
        trace.line_gaps = [round(g, 1) for g in gaps]
        trace.median_line_gap = round(median_gap, 1)
        trace.y_overlap_merges = y_merges
        trace.fragment_merges = frag_merges

    parts: list[str] = []
    for idx, line in enumerate(lines):
        if idx > 0:
            gap = gaps[idx - 1]
            ref = _paragraph_reference(gaps, idx - 1, median_gap)
            parts.append("\n\n" if ref > 0 and gap > ref * PARA_GAP_RATIO else "\n")
        parts.append(_join_line(line))

    return sanitize_private_use("".join(parts))


def group_into_lines(
    fragments: Sequence[TextFragment],
    threshold: Optional[float] = None,
) -> list[TextLine]:
    """Group page fragments into lines for diagnostics.

    Without an explicit *threshold* the adaptive threshold is derived from
    the fragments themselves.
    """
    if not fragments:
        return []
    ordered = sorted((Hit.from_fragment(f) for f in fragments), key=lambda h: h.baseline)
    if threshold is None:
        threshold = compute_line_threshold([h.baseline for h in ordered]).value
    return cluster_lines(ordered, threshold)
