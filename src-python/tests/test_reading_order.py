"""Tests for core.extraction.reading_order — line threshold, clustering, text."""

from __future__ import annotations

import pytest

from core.extraction.extraction_config import SAME_LINE_THRESHOLD
from core.extraction.hits import Hit
from core.extraction.reading_order import (
    cluster_lines,
    compute_line_threshold,
    format_column_text,
    group_into_lines,
    merge_fragment_lines,
)
from models.schemas import ExtractTrace, TextFragment


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _hit(text: str, x: float, right: float, baseline: float, h: float = 10.0,
         symbol_font: bool = False) -> Hit:
    return Hit(text, x, baseline - h, right, baseline, symbol_font)


def _fragmented_paragraph() -> list[Hit]:
    """Four visual lines; the second is split in two by baseline jitter."""
    return [
        _hit("A1", 100, 300, 100),
        _hit("A2", 306, 700, 100),
        _hit("2028", 100, 200, 118),
        _hit("(report) and more", 206, 450, 127),
        _hit("C1", 100, 300, 136),
        _hit("C2", 306, 700, 136),
        _hit("D1", 100, 300, 148),
        _hit("D2", 306, 700, 148),
    ]


# ---------------------------------------------------------------------------
# compute_line_threshold
# ---------------------------------------------------------------------------

class TestComputeLineThreshold:
    def test_too_few_hits(self):
        result = compute_line_threshold([100, 112, 124])
        assert result.value == SAME_LINE_THRESHOLD
        assert result.path == "none"
        assert not result.adaptive

    def test_stable_lines(self):
        result = compute_line_threshold([100, 100, 118, 127, 136, 136, 148, 148])
        assert result.path == "stable"
        assert result.value == pytest.approx(8.4)
        assert result.stable_count == 3
        assert result.min_stable_spacing == 12.0
        assert result.micro_cluster_count == 5
        assert result.adaptive

    def test_fallback_to_micro_cluster_median(self):
        result = compute_line_threshold([100, 112, 124, 142, 154])
        assert result.path == "fallback"
        assert result.value == pytest.approx(8.4)
        assert result.median_micro_spacing == 12.0
        assert result.stable_count == 0

    def test_wide_pitch_keeps_default(self):
        result = compute_line_threshold([100, 100, 120, 120, 140, 140])
        assert result.value == SAME_LINE_THRESHOLD
        assert result.path == "none"
        assert result.min_stable_spacing == 20.0
        assert result.median_micro_spacing == 20.0

    def test_floor_at_micro_threshold(self):
        # Pitch 4 scales to 2.8, below the micro-cluster tolerance.
        result = compute_line_threshold([100, 100, 104, 104, 108, 108])
        assert result.value == pytest.approx(3.0)


# ---------------------------------------------------------------------------
# cluster_lines / merge_fragment_lines
# ---------------------------------------------------------------------------

class TestClusterLines:
    def test_sorted_left_to_right(self):
        hits = [_hit("world", 200, 240, 100), _hit("Hello", 100, 140, 101)]
        lines = cluster_lines(hits, SAME_LINE_THRESHOLD)
        assert len(lines) == 1
        assert [h.text for h in lines[0].hits] == ["Hello", "world"]
        assert lines[0].baseline == 100

    def test_shifted_baseline_with_body_overlap_joins(self):
        merges = []
        hits = [
            _hit("Bold", 100, 140, 100, h=12),
            _hit("normal", 144, 200, 116, h=20),
            _hit("Next", 100, 140, 140, h=12),
        ]
        lines = cluster_lines(hits, SAME_LINE_THRESHOLD, merges)
        assert [[h.text for h in line.hits] for line in lines] == [["Bold", "normal"], ["Next"]]
        assert len(merges) == 1
        assert merges[0].text == "normal"
        assert merges[0].baseline_diff == 16.0
        assert merges[0].overlap == 4.0
        assert merges[0].to_line == 0

    def test_core_range_not_widened_by_overlap_join(self):
        hits = [
            _hit("Bold", 100, 140, 100, h=12),
            _hit("normal", 144, 200, 116, h=20),
            _hit("below", 100, 140, 122, h=10),
        ]
        lines = cluster_lines(hits, SAME_LINE_THRESHOLD)
        # "below" overlaps "normal" but not the line's own range (88-100).
        assert len(lines) == 2
        assert lines[0].bottom_y == 100


class TestMergeFragmentLines:
    def test_rejoins_split_line(self):
        hits = sorted(_fragmented_paragraph(), key=lambda h: h.baseline)
        lines = cluster_lines(hits, 8.4)
        assert len(lines) == 5

        merges = []
        merge_fragment_lines(lines, 8.4, merges)
        assert len(lines) == 4
        assert [h.text for h in lines[1].hits] == ["2028", "(report) and more"]
        assert len(merges) == 1
        assert merges[0].from_line == 2
        assert merges[0].to_line == 1
        assert merges[0].combined_x_min == 100
        assert merges[0].combined_x_max == 450

    def test_short_lines_left_alone(self):
        hits = [_hit(t, 100, 110, 100 + 12 * i) for i, t in enumerate("abcde")]
        lines = cluster_lines(hits, 8.4)
        merge_fragment_lines(lines, 8.4)
        assert len(lines) == 5


# ---------------------------------------------------------------------------
# format_column_text
# ---------------------------------------------------------------------------

class TestFormatColumnText:
    def test_empty(self):
        assert format_column_text([]) == ""

    def test_paragraph_break(self):
        hits = [
            _hit(t, 100, 110, bl)
            for t, bl in (("a", 100), ("b", 112), ("c", 124), ("d", 142), ("e", 154))
        ]
        trace = ExtractTrace()
        assert format_column_text(hits, trace) == "a\nb\nc\n\nd\ne"
        assert trace.line_count == 5
        assert trace.adaptive_path == "fallback"
        assert trace.adaptive_threshold
        assert trace.line_threshold == pytest.approx(8.4)
        assert trace.line_gaps == [12.0, 12.0, 18.0, 12.0]
        assert trace.median_line_gap == 12.0

    def test_tab_and_space(self):
        hits = [
            _hit("xy", 244, 260, 100),
            _hit("Name", 100, 140, 100),
            _hit("Value", 200, 240, 100),
        ]
        assert format_column_text(hits) == "Name\tValue xy"

    def test_adjacent_runs_joined(self):
        hits = [_hit("Rev", 100, 130, 100), _hit("enue", 131, 170, 100)]
        assert format_column_text(hits) == "Revenue"

    def test_wraparound_forces_break(self):
        hits = [_hit("Long line text", 100, 400, 100), _hit("Second", 120, 180, 100)]
        assert format_column_text(hits) == "Long line text\nSecond"

    def test_y_overlap_merge(self):
        hits = [
            _hit("Bold", 100, 140, 100, h=12),
            _hit("normal", 144, 200, 116, h=20),
            _hit("Next", 100, 140, 140, h=12),
        ]
        trace = ExtractTrace()
        assert format_column_text(hits, trace) == "Bold normal\nNext"
        assert len(trace.y_overlap_merges) == 1

    def test_fragment_merge(self):
        trace = ExtractTrace()
        text = format_column_text(_fragmented_paragraph(), trace)
        assert text == "A1 A2\n2028 (report) and more\nC1 C2\nD1 D2"
        assert trace.adaptive_path == "stable"
        assert trace.stable_count == 3
        assert len(trace.fragment_merges) == 1

    def test_symbol_font_mapped(self):
        hits = [
            _hit("l", 100, 106, 100, symbol_font=True),
            _hit("Item", 112, 140, 100),
        ]
        assert format_column_text(hits) == "● Item"

    def test_private_use_sanitized(self):
        hits = [_hit(chr(0xF0B7), 100, 106, 100), _hit("Item", 112, 140, 100)]
        assert format_column_text(hits) == "● Item"

    def test_trace_optional(self):
        hits = _fragmented_paragraph()
        assert format_column_text(hits) == format_column_text(hits, ExtractTrace())


# ---------------------------------------------------------------------------
# group_into_lines
# ---------------------------------------------------------------------------

class TestGroupIntoLines:
    def test_empty(self):
        assert group_into_lines([]) == []

    def test_lines_from_fragments(self):
        frags = [
            TextFragment(text="world", x=200, y=88, width=40, height=12),
            TextFragment(text="Hello", x=100, y=89, width=40, height=12),
            TextFragment(text="Next", x=100, y=118, width=40, height=12),
        ]
        lines = group_into_lines(frags)
        assert [[h.text for h in line.hits] for line in lines] == [["Hello", "world"], ["Next"]]

    def test_explicit_threshold(self):
        frags = [
            TextFragment(text="a", x=100, y=90, width=10, height=10),
            TextFragment(text="b", x=120, y=100, width=10, height=10),
        ]
        assert len(group_into_lines(frags)) == 1
        assert len(group_into_lines(frags, threshold=3.0)) == 2
