"""Convert native text-layer runs into normalized ``TextFragment``s.

PDF text positions are in points with a bottom-left origin and a text
origin on the baseline.  The correction engine works in a page-size
independent space: 0–1000 on both axes with a top-left origin, where the
fragment's ``y`` is the top of its em-box and ``y + height`` its baseline.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable

from core.extraction.extraction_config import NORMALIZED_MAX
from core.extraction.symbols import is_dingbat_font
from models.schemas import TextFragment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawTextItem:
    """One text run in native page units (bottom-left origin)."""
    text: str
    x: float
    baseline_y: float      # text origin, on the baseline
    width: float
    height: float          # font size (em height)
    font_name: str = ""


def _finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


def normalize_text_items(
    items: Iterable[RawTextItem],
    page_width: float,
    page_height: float,
) -> list[TextFragment]:
    """Return normalized fragments for *items*.

    Items with blank text, non-finite coordinates or negative sizes are
    dropped so they never reach the pipeline.

    Raises:
        ValueError: if the page size is not positive.
    """
    if not (_finite(page_width, page_height) and page_width > 0 and page_height > 0):
        raise ValueError(f"Invalid page size {page_width}x{page_height}")

    sx = NORMALIZED_MAX / page_width
    sy = NORMALIZED_MAX / page_height

    fragments: list[TextFragment] = []
    dropped = 0
    for item in items:
        if not item.text.strip():
            continue
        if not _finite(item.x, item.baseline_y, item.width, item.height):
            dropped += 1
            continue
        if item.width < 0 or item.height < 0:
            dropped += 1
            continue
        fragments.append(TextFragment(
            text=item.text,
            x=item.x * sx,
            y=(page_height - item.baseline_y - item.height) * sy,
            width=item.width * sx,
            height=item.height * sy,
            font_name=item.font_name,
            symbol_font=is_dingbat_font(item.font_name),
        ))

    if dropped:
        logger.warning("Dropped %d malformed text item(s)", dropped)
    return fragments
