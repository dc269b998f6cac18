"""Region correction and text extraction constants.

This module centralizes the thresholds used by every extraction phase.
All distances are in normalized page units (0–1000 on both axes), so a
value of 10 is 1% of the page width or height. Each constant is documented
with:
- Its purpose
- Empirical justification (when available)
- Impact of changing the value

Tuning Guide:
- Snap ratios trade whitespace around the corrected box against clipping
  glyph ascenders/descenders.
- Column constants trade missed two-column layouts against splitting
  bullet lists or indented paragraphs.
- Paragraph constants trade merged paragraphs against spurious blank lines.
"""

from __future__ import annotations

# =============================================================================
# PAGE
# =============================================================================

NORMALIZED_MAX: float = 1000.0
"""Upper bound of the normalized coordinate space on both axes."""

# =============================================================================
# PHASE 1: SNAP
# =============================================================================

SNAP_MAX_ITERATIONS: int = 3
"""Expansion passes before the snapper gives up converging.
Each pass can only pull in text touching the previous pass's box, so 3
covers a clipped line that drags in its own wrapped continuation."""

SNAP_OVERLAP_RATIO: float = 0.5
"""A fragment widens the box only if at least this share of its own width
is already inside. Lower values let a box swallow an adjacent block
through a thin sliver of overlap."""

TRIM_SLACK_RATIO: float = 0.5
"""An edge with less slack than this multiple of the owning fragment's
height (beyond its visual edge) counts as already tight and is not
trimmed, unless unowned text intrudes into the box."""

SAME_LINE_THRESHOLD: float = 15.0
"""Baselines closer than this are on the same line (default threshold).
Replaced per column by the adaptive threshold when the document's line
pitch is tighter."""

MIN_VERTICAL_GAP: float = 5.0
"""Minimum vertical gap between two regions that share horizontal extent."""

# Height-relative glyph extents. Fragment height is an em-box, not the
# ink extent, so the visible text starts below ``y`` and descenders hang
# below ``baseline``.

DESCENDER_RATIO: float = 0.20
"""Descender depth below the baseline for Latin scripts (g/p/q/y)."""

DESCENDER_RATIO_CJK: float = 0.10
"""Descender depth for CJK text, whose glyphs rarely descend."""

DESCENDER_TEXT_CLEARANCE: float = 0.5
"""Space kept between an extended bottom edge and the top of the next
text below it, so that text never becomes a hit of the box above."""

VISUAL_TOP_RATIO: float = 0.25
"""Distance from the em-box top to the visible glyph top (Latin)."""

VISUAL_TOP_RATIO_CJK: float = 0.10
"""Distance from the em-box top to the visible glyph top (CJK).
Square CJK glyphs fill more of the em-box."""

VISUAL_BOTTOM_RATIO: float = 0.05
"""Initial allowance below the baseline when snapping a bottom edge.
The full descender is added later by the descender compensator."""

Y_OVERLAP_MIN: float = 2.0
"""Minimum vertical overlap for two baseline-shifted runs to share a line.
Stops adjacent lines whose baseline touches the next line's top from
merging through floating-point noise."""

# =============================================================================
# PHASE 0 / PHASE 2.25: OVERLAP RESOLUTION
# =============================================================================

CONTAINED_AREA_RATIO: float = 0.95
"""A region covered by another for at least this share of its own area is
a duplicate proposal and is collapsed before snapping."""

X_SUBSET_RATIO: float = 0.8
"""Side-by-side boxes whose smaller side shares at least this share of its
baselines with the larger side describe one block flowing across the
seam; below it they are distinct blocks."""

# =============================================================================
# PHASE 3a: COLUMN SPLITTER
# =============================================================================

COLUMN_BUCKET_WIDTH: float = 2.0
"""Bucket width of the horizontal occupancy histogram."""

COLUMN_MIN_LINES: int = 1
"""Minimum lines per column. Safe at 1 because the width, cut and
content guards below reject the degenerate splits."""

COLUMN_EXCLUSIVE_RATIO: float = 0.3
"""A split is accepted when more than this share of merged lines carry
text from only one side (independent columns rarely share baselines)."""

COLUMN_PROBE_COVERAGE_RATIO: float = 0.8
"""Histogram buckets occupied by fewer than this share of the peak
occupancy form a candidate low-occupancy band."""

COLUMN_PROBE_MIN_WIDTH: float = 6.0
"""Minimum width of a candidate low-occupancy band."""

COLUMN_STRICT_COVERAGE_RATIO: float = 0.5
"""Strict fallback: a band occupied by fewer than this share of all lines
splits the region even when baselines happen to align."""

COLUMN_STRICT_MIN_WIDTH: float = 10.0
"""Minimum width of the band used by the strict fallback."""

COLUMN_MIN_WIDTH_RATIO: float = 0.10
"""Each side of a split must span at least this share of the total width.
Protects numbered-list indents from being read as a column."""

COLUMN_CUT_GAP_MIN: float = 5.0
"""A line crossed by the separator needs an internal gap at least this wide
at the separator position, otherwise the cut slices through text."""

COLUMN_BAD_CUT_MAX_RATIO: float = 0.2
"""Maximum share of crossed lines that may be cut without a real gap."""

COLUMN_MIN_CHAR_RATIO: float = 0.05
"""The smaller side must hold at least this share of all characters.
Stops a column of bullet glyphs from being split off."""

LINE_GAP_MIN: float = 5.0
"""Per-line gaps narrower than this are word spacing, not gutters."""

GAP_CLUSTER_RANGE: float = 50.0
"""Gap right edges within this distance belong to one gutter cluster; also
the de-duplication distance between separator candidates."""

GAP_CLUSTER_MIN_SHARE: float = 0.3
"""The largest gutter cluster must cover this share of all lines."""

# =============================================================================
# PHASE 3b: READING-ORDER FORMATTER
# =============================================================================

MICRO_CLUSTER_THRESHOLD: float = 3.0
"""Baselines closer than this are certainly on the same line."""

MIN_ADAPTIVE_HITS: int = 4
"""Fewer hits than this keep the default line threshold."""

ADAPTIVE_SPACING_SCALE: float = 0.7
"""The adaptive line threshold is this share of the measured line pitch."""

FRAGMENT_SPAN_RATIO: float = 0.7
"""A line narrower than this share of the reference width is a fragment
of a baseline-shifted line (hyperlinks in a different font)."""

FRAGMENT_REF_PERCENTILE: float = 0.75
"""Percentile of line widths used as the reference width."""

FRAGMENT_MIN_REF_SPAN: float = 50.0
"""Fragment repair is skipped when the reference width is below this."""

FRAGMENT_MAX_DISTANCE: int = 3
"""How many following lines are searched for a complementary fragment."""

FRAGMENT_BASELINE_FACTOR: float = 2.5
"""Fragments merge only within this multiple of the line threshold."""

FRAGMENT_COMPLEMENT_RATIO: float = 1.2
"""Merged width must exceed the wider fragment by at least this factor."""

COL_GAP_THRESHOLD: float = 30.0
"""Intra-line gaps wider than this (about 3% of the page) become a tab."""

SPACE_GAP_THRESHOLD: float = 3.0
"""Intra-line gaps wider than this become a space."""

WRAPAROUND_THRESHOLD: float = -50.0
"""A gap below this means the next run starts far left of the previous
run's end, so two visual lines were merged; a line break is forced."""

PARA_GAP_RATIO: float = 1.3
"""A line gap above the local base spacing times this ratio is a paragraph
break."""

PARA_WINDOW: int = 3
"""Gaps on each side of the current gap that form the local window."""

PARA_MIN_LOCAL_GAPS: int = 5
"""Below this many gaps the global median is the base spacing."""

PARA_LOCAL_PERCENTILE: float = 0.3
"""Lower percentile of the local window used as the base spacing.
A median would be pulled up by bullet spacing in list regions."""
