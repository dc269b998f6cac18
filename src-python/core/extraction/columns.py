"""Phase 3a: detect two independently flowing columns inside one box.

Candidate separators come from two independent sources:

1. **Line gaps** — the widest gap of every line, clustered by the x of
   the gap's right edge.  A right column's left edge is fixed while the
   left column's line ends are ragged, so the right edge is the stable
   signal.
2. **Projection** — an occupancy histogram of merged line intervals;
   contiguous low-occupancy bands mark gutters.

Each candidate is validated with the *baseline-alignment* test: split the
hits at the candidate and count the merged lines that carry text from
only one side.  Independent columns wrap independently, so their
baselines rarely line up and most lines are exclusive.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence

from core.extraction.extraction_config import (
    COLUMN_BAD_CUT_MAX_RATIO,
    COLUMN_BUCKET_WIDTH,
    COLUMN_CUT_GAP_MIN,
    COLUMN_EXCLUSIVE_RATIO,
    COLUMN_MIN_CHAR_RATIO,
    COLUMN_MIN_LINES,
    COLUMN_MIN_WIDTH_RATIO,
    COLUMN_PROBE_COVERAGE_RATIO,
    COLUMN_PROBE_MIN_WIDTH,
    COLUMN_STRICT_COVERAGE_RATIO,
    COLUMN_STRICT_MIN_WIDTH,
    GAP_CLUSTER_MIN_SHARE,
    GAP_CLUSTER_RANGE,
    LINE_GAP_MIN,
    SAME_LINE_THRESHOLD,
)
from core.extraction.hits import Hit
from models.schemas import ExtractTrace

logger = logging.getLogger(__name__)


class SeparatorResult(NamedTuple):
    left: list[Hit]
    right: list[Hit]
    exclusive_ratio: float
    detail: str


@dataclass
class LowBand:
    """A contiguous run of low-occupancy histogram buckets."""
    start_x: float
    end_x: float
    min_cov: int
    min_cov_center_x: float     # centre of the emptiest buckets

    @property
    def width(self) -> float:
        return self.end_x - self.start_x


@dataclass
class Candidate:
    separator: float
    source: str


# ---------------------------------------------------------------------------
# Line helpers
# ---------------------------------------------------------------------------

def count_lines(hits: Sequence[Hit]) -> int:
    """Number of distinct lines at the default same-line threshold."""
    if not hits:
        return 0
    baselines = sorted(h.baseline for h in hits)
    count = 1
    last = baselines[0]
    for bl in baselines[1:]:
        if abs(bl - last) >= SAME_LINE_THRESHOLD:
            count += 1
            last = bl
    return count


def _group_lines(hits: Sequence[Hit]) -> list[list[Hit]]:
    """Group hits by baseline, each line anchored on its first baseline."""
    ordered = sorted(hits, key=lambda h: h.baseline)
    lines: list[list[Hit]] = [[ordered[0]]]
    for hit in ordered[1:]:
        if abs(hit.baseline - lines[-1][0].baseline) < SAME_LINE_THRESHOLD:
            lines[-1].append(hit)
        else:
            lines.append([hit])
    return lines


def _span(hits: Sequence[Hit]) -> float:
    return max(h.right for h in hits) - min(h.x for h in hits)


# ---------------------------------------------------------------------------
# Separator test
# ---------------------------------------------------------------------------

def evaluate_separator(hits: Sequence[Hit], separator: float) -> Optional[SeparatorResult]:
    """Split *hits* at *separator* and measure baseline exclusivity.

    Returns None when the split is implausible: one side empty or too
    narrow, one side with negligible text (bullet glyphs), or the
    separator cutting through too many lines without a real gap there.
    """
    left = [h for h in hits if h.center_x <= separator]
    right = [h for h in hits if h.center_x > separator]
    if not left or not right:
        return None

    left_lines = count_lines(left)
    right_lines = count_lines(right)
    if left_lines < COLUMN_MIN_LINES or right_lines < COLUMN_MIN_LINES:
        return None

    total_span = _span(hits)
    if total_span > 0:
        if min(_span(left), _span(right)) / total_span < COLUMN_MIN_WIDTH_RATIO:
            return None

    left_chars = sum(len(h.text) for h in left)
    right_chars = sum(len(h.text) for h in right)
    total_chars = left_chars + right_chars
    if total_chars > 0 and min(left_chars, right_chars) / total_chars < COLUMN_MIN_CHAR_RATIO:
        return None

    cut_lines = 0
    bad_cuts = 0
    for line in _group_lines(hits):
        line_min = min(h.x for h in line)
        line_max = max(h.right for h in line)
        if separator <= line_min or separator >= line_max:
            continue
        cut_lines += 1
        ordered = sorted(line, key=lambda h: h.x)
        has_gap = any(
            prev.right <= separator <= nxt.x and nxt.x - prev.right > COLUMN_CUT_GAP_MIN
            for prev, nxt in zip(ordered, ordered[1:])
        )
        if not has_gap:
            bad_cuts += 1
    if cut_lines and bad_cuts / cut_lines > COLUMN_BAD_CUT_MAX_RATIO:
        return None

    sided = sorted(
        [(h.baseline, "L") for h in left] + [(h.baseline, "R") for h in right],
    )
    merged: list[set[str]] = []
    current_bl = None
    for bl, side in sided:
        if current_bl is not None and abs(bl - current_bl) < SAME_LINE_THRESHOLD:
            merged[-1].add(side)
        else:
            merged.append({side})
            current_bl = bl

    exclusive = sum(1 for sides in merged if len(sides) == 1)
    ratio = exclusive / len(merged)
    layout = ",".join(
        "LR" if len(s) == 2 else ("L_" if "L" in s else "_R") for s in merged
    )
    detail = (
        f"sep={round(separator)}, excl={exclusive}/{len(merged)}({ratio:.0%}), "
        f"L={left_lines}/R={right_lines} lines, lines={layout}"
    )
    return SeparatorResult(left, right, ratio, detail)


# ---------------------------------------------------------------------------
# Candidate sources
# ---------------------------------------------------------------------------

def _gap_candidate(lines: list[list[Hit]]) -> Optional[Candidate]:
    """Median gap centre of the largest cluster of per-line widest gaps."""
    gaps: list[tuple[float, float]] = []
    for line in lines:
        if len(line) < 2:
            continue
        ordered = sorted(line, key=lambda h: h.x)
        widest = 0.0
        best: Optional[tuple[float, float]] = None
        for prev, nxt in zip(ordered, ordered[1:]):
            gap = nxt.x - prev.right
            if gap > widest:
                widest = gap
                best = (prev.right, nxt.x)
        if best is not None and widest > LINE_GAP_MIN:
            gaps.append(best)

    if len(gaps) < 2:
        return None

    gaps.sort(key=lambda g: g[1])
    clusters: list[list[tuple[float, float]]] = [[gaps[0]]]
    for gap in gaps[1:]:
        if gap[1] - clusters[-1][-1][1] < GAP_CLUSTER_RANGE:
            clusters[-1].append(gap)
        else:
            clusters.append([gap])

    best_cluster = max(clusters, key=len)
    logger.debug(
        "Line-gap clusters: %s",
        ", ".join(f"[n={len(c)}, R={c[0][1]:.0f}-{c[-1][1]:.0f}]" for c in clusters),
    )
    if len(best_cluster) < math.ceil(len(lines) * GAP_CLUSTER_MIN_SHARE):
        return None
    centers = sorted((left + right) / 2 for left, right in best_cluster)
    return Candidate(centers[len(centers) // 2], "line-gap")


def _merge_intervals(line: list[Hit]) -> list[list[float]]:
    intervals = sorted(([h.x, h.right] for h in line), key=lambda iv: iv[0])
    merged = [intervals[0]]
    for left, right in intervals[1:]:
        if left <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], right)
        else:
            merged.append([left, right])
    return merged


def find_low_bands(hits: Sequence[Hit], lines: list[list[Hit]]) -> list[LowBand]:
    """Interior histogram bands occupied by clearly fewer lines than the peak.

    A band must be closed on its right by a well-occupied bucket, so ragged
    right margins never form a band.
    """
    min_x = min(h.x for h in hits)
    max_x = max(h.right for h in hits)
    n_buckets = math.ceil((max_x - min_x) / COLUMN_BUCKET_WIDTH) + 1
    coverage = [0] * n_buckets

    for line in lines:
        for left, right in _merge_intervals(line):
            start = max(0, math.floor((left - min_x) / COLUMN_BUCKET_WIDTH))
            end = min(n_buckets - 1, math.floor((right - min_x) / COLUMN_BUCKET_WIDTH))
            for b in range(start, end + 1):
                coverage[b] += 1

    threshold = max(1, math.ceil(max(coverage) * COLUMN_PROBE_COVERAGE_RATIO))
    bands: list[LowBand] = []
    band_start = -1
    band_min = 0
    for b, cov in enumerate(coverage):
        if cov < threshold:
            if band_start == -1:
                band_start, band_min = b, cov
            band_min = min(band_min, cov)
            continue
        if band_start == -1:
            continue
        start_x = min_x + band_start * COLUMN_BUCKET_WIDTH
        end_x = min_x + b * COLUMN_BUCKET_WIDTH
        if end_x - start_x >= COLUMN_PROBE_MIN_WIDTH:
            centers = [
                min_x + (mb + 0.5) * COLUMN_BUCKET_WIDTH
                for mb in range(band_start, b)
                if coverage[mb] == band_min
            ]
            bands.append(LowBand(start_x, end_x, band_min, sum(centers) / len(centers)))
        band_start = -1
    return bands


# ---------------------------------------------------------------------------
# Splitter
# ---------------------------------------------------------------------------

def split_into_columns(
    hits: Sequence[Hit],
    trace: Optional[ExtractTrace] = None,
) -> list[list[Hit]]:
    """Return ``[hits]`` for a single column or ``[left, right]`` for two."""
    hits = list(hits)
    if len(hits) <= 1:
        return [hits]

    lines = _group_lines(hits)
    total_lines = len(lines)
    if total_lines < COLUMN_MIN_LINES:
        return [hits]

    candidates: list[Candidate] = []
    gap_cand = _gap_candidate(lines)
    if gap_cand is not None:
        candidates.append(gap_cand)

    bands = find_low_bands(hits, lines)
    for band in bands:
        sep = band.min_cov_center_x
        if any(abs(c.separator - sep) < GAP_CLUSTER_RANGE for c in candidates):
            continue
        candidates.append(
            Candidate(sep, f"projection(w={band.width:.0f},cov={band.min_cov})")
        )

    best: Optional[SeparatorResult] = None
    best_source = ""
    for cand in candidates:
        result = evaluate_separator(hits, cand.separator)
        if result is None:
            continue
        logger.debug("Column candidate [%s]: %s", cand.source, result.detail)
        if best is None or result.exclusive_ratio > best.exclusive_ratio:
            best, best_source = result, cand.source

    if best is not None and best.exclusive_ratio > COLUMN_EXCLUSIVE_RATIO:
        logger.debug("Two columns (%s): %s", best_source, best.detail)
        _record(trace, best_source, best)
        return [best.left, best.right]

    # Strict fallback: baselines happen to align but the gutter is nearly empty.
    if bands:
        widest = max(bands, key=lambda b: (b.width, -b.min_cov))
        strict = max(1, math.ceil(total_lines * COLUMN_STRICT_COVERAGE_RATIO))
        if widest.min_cov < strict and widest.width >= COLUMN_STRICT_MIN_WIDTH:
            result = evaluate_separator(hits, widest.min_cov_center_x)
            if result is not None:
                logger.debug("Two columns (strict projection): %s", result.detail)
                _record(trace, "projection-strict", result)
                return [result.left, result.right]

    logger.debug(
        "Single column (%d candidates, best exclusive ratio %s)",
        len(candidates), f"{best.exclusive_ratio:.2f}" if best else "n/a",
    )
    return [hits]


def _record(trace: Optional[ExtractTrace], source: str, result: SeparatorResult) -> None:
    if trace is None:
        return
    trace.column_source = source
    trace.column_exclusive_ratio = round(result.exclusive_ratio, 2)
