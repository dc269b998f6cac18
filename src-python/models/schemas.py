"""Pydantic data models for the region correction engine."""

from __future__ import annotations

from typing import Annotated, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

# [x1, y1, x2, y2] in normalized page units (0–1000, top-left origin).
BoxList = Annotated[list[float], Field(min_length=4, max_length=4)]


# ---------------------------------------------------------------------------
# Text layer
# ---------------------------------------------------------------------------

class TextFragment(BaseModel):
    """One positioned run of text from a page's text layer.

    Coordinates are normalized (0–1000 on both axes, origin top-left).
    ``height`` approximates the font's em-box, so ``baseline`` sits at the
    bottom of the standard glyph body and descenders hang below it.
    """
    model_config = ConfigDict(frozen=True)

    text: str
    x: float
    y: float
    width: float
    height: float
    font_name: str = ""
    symbol_font: bool = False          # drawn from a dingbat/symbol font

    @property
    def baseline(self) -> float:
        return self.y + self.height

    @property
    def right(self) -> float:
        return self.x + self.width


# ---------------------------------------------------------------------------
# Regions
# ---------------------------------------------------------------------------

class Region(BaseModel):
    """A proposed region of interest on a page.

    ``bbox`` is corrected in place by the pipeline and ``text`` is filled
    with the reading-order content of the corrected box.
    """
    id: Union[int, str]
    bbox: BoxList
    label: str = ""
    text: str = ""
    original_bbox: Optional[BoxList] = None


class PageRegions(BaseModel):
    """One page worth of pipeline input (the replay file format)."""
    page_number: int = 1
    fragments: list[TextFragment] = []
    regions: list[Region] = []


# ---------------------------------------------------------------------------
# Diagnostic trace
# ---------------------------------------------------------------------------

class SnapTrigger(BaseModel):
    """The fragment that pushed one box edge furthest during snapping."""
    text: str
    x: float
    y: float
    width: float
    height: float
    x_ratio: float
    expanded: str                      # "x1←", "y1↑", "x2→" or "y2↓"


class SnapTrace(BaseModel):
    iterations: int = 0
    triggers: list[SnapTrigger] = []


class XResolveTrace(BaseModel):
    delta: list[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0, 0.0])
    triggered: bool = False
    subset_ratio: Optional[float] = None
    paired_with: Optional[int] = None


class HitTrace(BaseModel):
    text: str
    x: float
    y: float
    height: float
    right: float
    baseline: float


class YOverlapMerge(BaseModel):
    text: str
    baseline_diff: float
    overlap: float
    to_line: int


class FragmentMerge(BaseModel):
    from_line: int
    to_line: int
    combined_x_min: float
    combined_x_max: float


class ExtractTrace(BaseModel):
    """Phase 3 details for one region (line data from the first column)."""
    hits: list[HitTrace] = []
    columns: int = 1
    column_separator: Optional[float] = None
    column_exclusive_ratio: Optional[float] = None
    column_source: Optional[str] = None
    line_count: int = 0
    line_threshold: float = 0.0
    adaptive_threshold: bool = False
    adaptive_path: str = "none"        # "stable", "fallback" or "none"
    stable_count: Optional[int] = None
    min_stable_spacing: Optional[float] = None
    micro_cluster_count: Optional[int] = None
    median_micro_spacing: Optional[float] = None
    line_gaps: list[float] = []
    median_line_gap: float = 0.0
    y_overlap_merges: list[YOverlapMerge] = []
    fragment_merges: list[FragmentMerge] = []


class PhaseBoxes(BaseModel):
    original: BoxList
    after_snap: Optional[BoxList] = None
    after_x_resolve: Optional[BoxList] = None
    after_gap: Optional[BoxList] = None
    final: Optional[BoxList] = None


class RegionTrace(BaseModel):
    region_id: Union[int, str]
    total_fragments: int = 0
    contained: bool = False
    phases: PhaseBoxes
    snap: SnapTrace = Field(default_factory=SnapTrace)
    x_resolve: XResolveTrace = Field(default_factory=XResolveTrace)
    extract: ExtractTrace = Field(default_factory=ExtractTrace)


class PipelineTrace(BaseModel):
    """Optional sidecar collected while the pipeline runs."""
    regions: list[RegionTrace] = []
