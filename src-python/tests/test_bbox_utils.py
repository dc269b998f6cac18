"""Tests for core.extraction.bbox_utils — overlap area, area, containment."""

from __future__ import annotations

import pytest

from core.extraction.bbox_utils import (
    box_area,
    box_overlap_area,
    find_contained_boxes,
    horizontal_overlap,
    is_degenerate,
)


# ---------------------------------------------------------------------------
# box_area
# ---------------------------------------------------------------------------

class TestBoxArea:
    def test_normal(self):
        assert box_area([0, 0, 10, 5]) == pytest.approx(50.0)

    def test_zero_height(self):
        assert box_area([0, 5, 10, 5]) == pytest.approx(0.0)

    def test_inverted_x(self):
        """x2 < x1 → area clamped to 0."""
        assert box_area([10, 0, 0, 5]) == pytest.approx(0.0)


# ---------------------------------------------------------------------------
# box_overlap_area / horizontal_overlap
# ---------------------------------------------------------------------------

class TestOverlap:
    def test_partial(self):
        assert box_overlap_area([0, 0, 10, 10], [5, 5, 15, 15]) == pytest.approx(25.0)

    def test_touching_edges(self):
        assert box_overlap_area([0, 0, 10, 10], [10, 0, 20, 10]) == 0.0

    def test_disjoint(self):
        assert box_overlap_area([0, 0, 10, 10], [50, 50, 60, 60]) == 0.0

    def test_contained(self):
        assert box_overlap_area([0, 0, 100, 100], [10, 10, 20, 20]) == pytest.approx(100.0)

    def test_horizontal_overlap_positive(self):
        assert horizontal_overlap([0, 0, 100, 10], [80, 500, 200, 600]) == pytest.approx(20.0)

    def test_horizontal_overlap_side_by_side(self):
        assert horizontal_overlap([0, 0, 100, 10], [100, 0, 200, 10]) <= 0


class TestIsDegenerate:
    @pytest.mark.parametrize("box", [
        [10, 0, 10, 5],
        [10, 0, 5, 5],
        [0, 5, 10, 5],
        [0, 9, 10, 5],
    ])
    def test_degenerate(self, box):
        assert is_degenerate(box)

    def test_normal(self):
        assert not is_degenerate([0, 0, 1, 1])


# ---------------------------------------------------------------------------
# find_contained_boxes
# ---------------------------------------------------------------------------

class TestFindContainedBoxes:
    def test_empty_and_single(self):
        assert find_contained_boxes([]) == set()
        assert find_contained_boxes([[0, 0, 10, 10]]) == set()

    def test_inner_box_reported(self):
        boxes = [[100, 100, 500, 300], [150, 150, 300, 250]]
        assert find_contained_boxes(boxes) == {1}

    def test_order_independent(self):
        boxes = [[150, 150, 300, 250], [100, 100, 500, 300]]
        assert find_contained_boxes(boxes) == {0}

    def test_identical_boxes_keep_first(self):
        boxes = [[0, 0, 100, 100], [0, 0, 100, 100]]
        assert find_contained_boxes(boxes) == {1}

    def test_partial_overlap_not_contained(self):
        boxes = [[0, 0, 100, 100], [50, 0, 150, 100]]
        assert find_contained_boxes(boxes) == set()

    def test_ratio_threshold(self):
        # Inner box sticks out by 10% of its area
        boxes = [[0, 0, 100, 100], [10, 10, 60, 110]]
        assert find_contained_boxes(boxes) == set()
        assert find_contained_boxes(boxes, ratio=0.85) == {1}

    def test_degenerate_box_ignored(self):
        boxes = [[0, 0, 100, 100], [10, 10, 10, 50]]
        assert find_contained_boxes(boxes) == set()

    def test_nested_chain(self):
        boxes = [[0, 0, 400, 400], [10, 10, 200, 200], [20, 20, 100, 100]]
        assert find_contained_boxes(boxes) == {1, 2}
