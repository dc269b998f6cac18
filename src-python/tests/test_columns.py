"""Tests for core.extraction.columns — separator candidates and column split."""

from __future__ import annotations

import pytest

from core.extraction.columns import (
    _gap_candidate,
    _group_lines,
    count_lines,
    evaluate_separator,
    find_low_bands,
    split_into_columns,
)
from core.extraction.hits import Hit
from models.schemas import ExtractTrace


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _hit(text: str, x: float, right: float, baseline: float, h: float = 12.0) -> Hit:
    return Hit(text, x, baseline - h, right, baseline)


def _two_columns() -> list[Hit]:
    """Left column x=100-400, right column x=520-880, baselines offset by 15."""
    left = [_hit(f"left column line {i}", 100, 400, 110 + 30 * i) for i in range(5)]
    right = [_hit(f"right column line {i}", 520, 880, 125 + 30 * i) for i in range(5)]
    return left + right


def _table() -> list[Hit]:
    """Key/value rows whose baselines align across a wide empty gutter."""
    hits = []
    for i in range(5):
        bl = 110 + 20 * i
        hits.append(_hit("Name", 100, 200, bl))
        hits.append(_hit("Value", 500, 600, bl))
    return hits


def _bullets() -> list[Hit]:
    hits = []
    for i in range(5):
        bl = 110 + 20 * i
        hits.append(_hit("•", 100, 106, bl))
        hits.append(_hit(f"bullet item number {i} with text", 120, 800, bl))
    return hits


# ---------------------------------------------------------------------------
# Line helpers
# ---------------------------------------------------------------------------

class TestCountLines:
    def test_empty(self):
        assert count_lines([]) == 0

    def test_groups_within_threshold(self):
        hits = [_hit("a", 0, 10, bl) for bl in (100, 110, 120, 140)]
        assert count_lines(hits) == 3

    def test_group_lines_anchor_on_first(self):
        hits = [_hit("a", 0, 10, bl) for bl in (120, 100, 110)]
        lines = _group_lines(hits)
        assert [len(line) for line in lines] == [2, 1]


# ---------------------------------------------------------------------------
# evaluate_separator
# ---------------------------------------------------------------------------

class TestEvaluateSeparator:
    def test_independent_columns_fully_exclusive(self):
        result = evaluate_separator(_two_columns(), 461)
        assert result is not None
        assert result.exclusive_ratio == pytest.approx(1.0)
        assert len(result.left) == 5 and len(result.right) == 5
        assert "excl=10/10" in result.detail

    def test_aligned_rows_not_exclusive(self):
        result = evaluate_separator(_table(), 350)
        assert result is not None
        assert result.exclusive_ratio == 0.0

    def test_one_side_empty(self):
        assert evaluate_separator(_two_columns(), 950) is None

    def test_narrow_side_rejected(self):
        assert evaluate_separator(_bullets(), 113) is None

    def test_cut_through_words_rejected(self):
        hits = []
        for i in range(5):
            bl = 110 + 20 * i
            hits.append(_hit("aaaa", 100, 440, bl))
            hits.append(_hit("bbbb", 442, 800, bl))
        assert evaluate_separator(hits, 441) is None


# ---------------------------------------------------------------------------
# Candidate sources
# ---------------------------------------------------------------------------

class TestCandidates:
    def test_gap_candidate_from_table(self):
        cand = _gap_candidate(_group_lines(_table()))
        assert cand is not None
        assert cand.source == "line-gap"
        assert cand.separator == pytest.approx(350.0)

    def test_gap_candidate_needs_two_gaps(self):
        assert _gap_candidate(_group_lines(_two_columns())) is None

    def test_low_band_between_columns(self):
        hits = _two_columns()
        bands = find_low_bands(hits, _group_lines(hits))
        assert len(bands) == 1
        band = bands[0]
        assert band.start_x == pytest.approx(402.0)
        assert band.end_x == pytest.approx(520.0)
        assert band.min_cov == 0
        assert band.min_cov_center_x == pytest.approx(461.0)

    def test_ragged_right_margin_not_a_band(self):
        hits = [_hit("x" * 10, 100, right, 110 + 20 * i) for i, right in enumerate((800, 700, 760, 640, 820))]
        assert find_low_bands(hits, _group_lines(hits)) == []


# ---------------------------------------------------------------------------
# split_into_columns
# ---------------------------------------------------------------------------

class TestSplitIntoColumns:
    def test_empty_and_single(self):
        assert split_into_columns([]) == [[]]
        one = [_hit("a", 0, 10, 100)]
        assert split_into_columns(one) == [one]

    def test_two_independent_columns(self):
        trace = ExtractTrace()
        columns = split_into_columns(_two_columns(), trace=trace)
        assert len(columns) == 2
        left, right = columns
        assert all(h.right <= 400 for h in left)
        assert all(h.x >= 520 for h in right)
        assert trace.column_source == "projection(w=118,cov=0)"
        assert trace.column_exclusive_ratio == 1.0

    def test_single_paragraph(self):
        hits = [_hit(f"line {i}", 100, 800, 110 + 20 * i) for i in range(5)]
        assert split_into_columns(hits) == [hits]

    def test_bullet_list_stays_one_column(self):
        hits = _bullets()
        columns = split_into_columns(hits)
        assert len(columns) == 1

    def test_aligned_table_uses_strict_projection(self):
        trace = ExtractTrace()
        columns = split_into_columns(_table(), trace=trace)
        assert len(columns) == 2
        assert {h.text for h in columns[0]} == {"Name"}
        assert {h.text for h in columns[1]} == {"Value"}
        assert trace.column_source == "projection-strict"
        assert trace.column_exclusive_ratio == 0.0

    def test_no_trace_recorded_for_single_column(self):
        trace = ExtractTrace()
        hits = [_hit(f"line {i}", 100, 800, 110 + 20 * i) for i in range(5)]
        split_into_columns(hits, trace=trace)
        assert trace.column_source is None
