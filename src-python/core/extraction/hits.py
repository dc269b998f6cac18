"""Fragments that fall inside a finalized box."""

from __future__ import annotations

from typing import NamedTuple, Sequence

from core.extraction.bbox_utils import is_degenerate
from models.schemas import HitTrace, TextFragment


class Hit(NamedTuple):
    """A text fragment assigned to one finalized box (Phase 3 only)."""
    text: str
    x: float
    y: float
    right: float
    baseline: float
    symbol_font: bool = False

    @classmethod
    def from_fragment(cls, frag: TextFragment) -> "Hit":
        return cls(frag.text, frag.x, frag.y, frag.right, frag.baseline, frag.symbol_font)

    @property
    def center_x(self) -> float:
        return (self.x + self.right) / 2

    def to_trace(self) -> HitTrace:
        return HitTrace(
            text=self.text,
            x=round(self.x),
            y=round(self.y),
            height=round(self.baseline - self.y),
            right=round(self.right),
            baseline=round(self.baseline),
        )


def collect_hits(bbox: Sequence[float], fragments: Sequence[TextFragment]) -> list[Hit]:
    """Return the fragments whose body (top to baseline) intersects *bbox*.

    A degenerate box (x1 >= x2 or y1 >= y2) has no hits.
    """
    if is_degenerate(bbox):
        return []
    x1, y1, x2, y2 = bbox
    return [
        Hit.from_fragment(f)
        for f in fragments
        if f.x < x2 and f.right > x1 and f.y < y2 and f.baseline > y1
    ]
