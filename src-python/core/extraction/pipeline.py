"""Region correction and text extraction pipeline.

Runs the phases strictly in order over one page's regions:

    Phase 0    collapse duplicate (contained) proposals
    Phase 1    snap each box to the text it owns
    Phase 2.25 remove horizontal overlap between side-by-side boxes
    Phase 2.5  enforce the minimum vertical gap
    Phase 2.75 extend bottoms over descenders
    Phase 3    split columns and serialize each box's text

Each phase relies on the invariants established by the previous one, so
the phases must not be reordered.  Pages share no state and may be
processed concurrently by the caller.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from core.config import ExtractionConfig, config
from core.extraction.bbox_utils import Box, find_contained_boxes
from core.extraction.columns import split_into_columns
from core.extraction.hits import collect_hits
from core.extraction.reading_order import format_column_text
from core.extraction.resolve import (
    apply_descender_compensation,
    enforce_min_vertical_gap,
    resolve_x_overlaps,
)
from core.extraction.snap import snap_bbox_to_text
from models.schemas import (
    ExtractTrace,
    PhaseBoxes,
    PipelineTrace,
    Region,
    RegionTrace,
    TextFragment,
)

logger = logging.getLogger(__name__)


def extract_text_from_bbox(
    bbox: Sequence[float],
    fragments: Sequence[TextFragment],
    trace: Optional[ExtractTrace] = None,
) -> str:
    """Return the reading-order text of the fragments inside *bbox*.

    Two detected columns are serialized left column first, separated by a
    blank line.  Line statistics in *trace* describe the first column.
    """
    hits = collect_hits(bbox, fragments)
    if hits:
        logger.debug(
            "Extract bbox=[%.0f,%.0f,%.0f,%.0f] hits=%d x=[%.0f-%.0f]",
            *bbox, len(hits), min(h.x for h in hits), max(h.right for h in hits),
        )
    if trace is not None:
        trace.hits = [h.to_trace() for h in hits]

    columns = split_into_columns(hits, trace)

    if trace is not None:
        trace.columns = len(columns)
        if len(columns) > 1:
            left_edge = max(h.right for h in columns[0])
            right_edge = min(h.x for h in columns[1])
            trace.column_separator = round((left_edge + right_edge) / 2)

    if len(columns) <= 1:
        return format_column_text(hits, trace)
    return "\n\n".join(
        format_column_text(col, trace if idx == 0 else None)
        for idx, col in enumerate(columns)
    )


def extract_text_for_regions(
    regions: list[Region],
    fragments: Sequence[TextFragment],
    *,
    settings: Optional[ExtractionConfig] = None,
    trace: Optional[PipelineTrace] = None,
) -> list[Region]:
    """Correct every region's bbox in place and fill its text.

    Args:
        regions: One page's proposed regions; mutated and returned.
        fragments: The page's normalized text fragments.
        settings: Overrides the global :data:`core.config.config`.
        trace: Optional collector; receives one entry per region.  Passing
            it never changes the result.
    """
    if not regions:
        return regions
    settings = settings or config

    for region in regions:
        if region.original_bbox is None:
            region.original_bbox = list(region.bbox)

    region_traces: list[Optional[RegionTrace]] = [None] * len(regions)
    if trace is not None:
        region_traces = [
            RegionTrace(
                region_id=r.id,
                total_fragments=len(fragments),
                phases=PhaseBoxes(original=list(r.bbox)),
            )
            for r in regions
        ]
        trace.regions = list(region_traces)

    # Phase 0
    contained: set[int] = set()
    if settings.drop_contained_regions and len(regions) >= 2:
        contained = find_contained_boxes(
            [r.bbox for r in regions], settings.contained_area_ratio,
        )
    for idx in sorted(contained):
        region = regions[idx]
        logger.debug("Region %s duplicates a larger proposal; collapsed", region.id)
        # A zero-size box at the top-left corner shares no extent with any
        # sibling; original_bbox still holds the proposal.
        region.bbox = [region.bbox[0], region.bbox[1], region.bbox[0], region.bbox[1]]
        region.text = ""
        if region_traces[idx] is not None:
            region_traces[idx].contained = True
            region_traces[idx].phases.final = list(region.bbox)

    active = [i for i in range(len(regions)) if i not in contained]
    if not active:
        return regions

    # Phase 1
    originals: list[Box] = [list(regions[i].bbox) for i in active]
    boxes: list[Box] = []
    for k, idx in enumerate(active):
        others = [b for m, b in enumerate(originals) if m != k]
        rt = region_traces[idx]
        boxes.append(snap_bbox_to_text(
            originals[k],
            fragments,
            other_boxes=others,
            trace=rt.snap if rt is not None else None,
            max_iterations=settings.snap_max_iterations,
        ))
    _record_phase(region_traces, active, boxes, "after_snap")

    # Phase 2.25
    x_traces = resolve_x_overlaps(boxes, fragments)
    for k, idx in enumerate(active):
        rt = region_traces[idx]
        if rt is None:
            continue
        entry = x_traces[k]
        if entry.paired_with is not None:
            entry.paired_with = active[entry.paired_with]
        rt.x_resolve = entry
    _record_phase(region_traces, active, boxes, "after_x_resolve")

    # Phase 2.5
    enforce_min_vertical_gap(boxes, settings.min_vertical_gap)
    _record_phase(region_traces, active, boxes, "after_gap")

    # Phase 2.75
    apply_descender_compensation(boxes, fragments, settings.min_vertical_gap)
    _record_phase(region_traces, active, boxes, "final")

    # Phase 3
    for k, idx in enumerate(active):
        region = regions[idx]
        rt = region_traces[idx]
        before = list(region.bbox)
        region.bbox = list(boxes[k])
        region.text = extract_text_from_bbox(
            region.bbox, fragments, rt.extract if rt is not None else None,
        )
        if before != region.bbox:
            logger.info(
                "Region %s bbox [%.1f, %.1f, %.1f, %.1f] -> [%.1f, %.1f, %.1f, %.1f]",
                region.id, *before, *region.bbox,
            )

    return regions


def _record_phase(
    region_traces: list[Optional[RegionTrace]],
    active: list[int],
    boxes: list[Box],
    phase: str,
) -> None:
    for k, idx in enumerate(active):
        rt = region_traces[idx]
        if rt is not None:
            setattr(rt.phases, phase, list(boxes[k]))
