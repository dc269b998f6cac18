"""Read one PDF page's text layer with PDFium.

Characters are grouped into whitespace-delimited runs.  Each run is
positioned by its first character's text origin (on the baseline) and
sized by the font size, which matches the em-box model the correction
engine expects.  Rotated runs (diagonal watermarks, vertical margin text)
are discarded.
"""

from __future__ import annotations

import ctypes
import logging
from pathlib import Path
from typing import Optional, Union

import pypdfium2 as pdfium

from core.extraction.symbols import is_dingbat_font
from core.ingestion.normalizer import RawTextItem, normalize_text_items
from models.schemas import TextFragment

logger = logging.getLogger(__name__)


def _is_rotated_run(char_y_centers: list[float], char_heights: list[float]) -> bool:
    """Return True if the accumulated character positions indicate rotated text.

    For horizontal text, all characters share roughly the same y-centre.
    For rotated text the y-centres of successive characters drift by a
    large fraction of the character height.  Characters shorter than 70 %
    of the median height (punctuation, accents) sit at other heights even
    in horizontal text and are ignored.
    """
    if len(char_y_centers) < 2:
        return False

    sorted_h = sorted(char_heights)
    n = len(sorted_h)
    median_h = sorted_h[n // 2] if n % 2 == 1 else (sorted_h[n // 2 - 1] + sorted_h[n // 2]) / 2.0
    height_threshold = median_h * 0.70

    kept = [(yc, h) for yc, h in zip(char_y_centers, char_heights) if h >= height_threshold]
    if len(kept) < 2:
        return False

    y_spread = max(yc for yc, _ in kept) - min(yc for yc, _ in kept)
    avg_h = sum(h for _, h in kept) / len(kept)
    return y_spread > avg_h * 0.65


class _Run:
    """Characters accumulated for one output item."""

    def __init__(self) -> None:
        self.text = ""
        self.x0 = self.x1 = 0.0
        self.origin_y = 0.0
        self.font_size = 0.0
        self.font_name = ""
        self.y_centers: list[float] = []
        self.heights: list[float] = []

    def add(self, char: str, box: tuple[float, float, float, float],
            origin_y: float, font_name: str, font_size: float) -> None:
        left, bottom, right, top = box
        if not self.text:
            self.x0, self.x1 = left, right
            self.origin_y = origin_y
            self.font_name = font_name
            self.font_size = font_size
        else:
            self.x0 = min(self.x0, left)
            self.x1 = max(self.x1, right)
        self.text += char
        self.y_centers.append((bottom + top) / 2.0)
        self.heights.append(top - bottom)

    def to_item(self) -> RawTextItem:
        height = self.font_size if self.font_size > 0 else max(self.heights, default=0.0)
        return RawTextItem(
            text=self.text,
            x=self.x0,
            baseline_y=self.origin_y,
            width=self.x1 - self.x0,
            height=height,
            font_name=self.font_name,
        )


def _extract_page_items(pdf_page: pdfium.PdfPage, page_index: int) -> list[RawTextItem]:
    textpage = pdf_page.get_textpage()
    try:
        n_chars = textpage.count_chars()
        if n_chars <= 0:
            return []

        raw_tp = textpage.raw
        origin_func = pdfium.raw.FPDFText_GetCharOrigin
        fi_func = pdfium.raw.FPDFText_GetFontInfo
        fs_func = pdfium.raw.FPDFText_GetFontSize
        fi_buf = ctypes.create_string_buffer(256)
        fi_flags = ctypes.c_int(0)
        ox = ctypes.c_double(0.0)
        oy = ctypes.c_double(0.0)

        def font_of(idx: int) -> tuple[str, float]:
            fi_buf.value = b""
            fi_func(
                raw_tp, idx,
                ctypes.cast(fi_buf, ctypes.c_void_p),
                ctypes.c_ulong(256),
                ctypes.byref(fi_flags),
            )
            name = fi_buf.value.decode("utf-8", errors="replace").strip()
            return name, float(fs_func(raw_tp, idx))

        items: list[RawTextItem] = []
        rotated_skipped = 0
        run = _Run()
        run_symbol: Optional[bool] = None

        def flush() -> None:
            nonlocal run, run_symbol, rotated_skipped
            if run.text:
                if _is_rotated_run(run.y_centers, run.heights):
                    rotated_skipped += 1
                else:
                    items.append(run.to_item())
            run = _Run()
            run_symbol = None

        for i in range(n_chars):
            char = textpage.get_text_range(index=i, count=1)
            if not char or char.isspace():
                flush()
                continue

            box = textpage.get_charbox(i)
            font_name, font_size = font_of(i)
            if origin_func(raw_tp, i, ctypes.byref(ox), ctypes.byref(oy)):
                origin_y = oy.value
            else:
                origin_y = box[1]

            # Dingbat glyphs become their own fragment so they can be mapped.
            symbol = is_dingbat_font(font_name)
            if run_symbol is not None and symbol != run_symbol:
                flush()
            run.add(char, box, origin_y, font_name, font_size)
            run_symbol = symbol

        flush()
    finally:
        textpage.close()

    if rotated_skipped:
        logger.info(
            "Page %d: discarded %d rotated text run(s) (watermarks/diagonal text)",
            page_index + 1, rotated_skipped,
        )
    return items


def load_page_fragments(path: Union[str, Path], page_number: int = 1) -> list[TextFragment]:
    """Return the normalized text fragments of one page (1-based).

    Raises:
        ValueError: if *page_number* is outside the document.
    """
    doc = pdfium.PdfDocument(str(path))
    try:
        n_pages = len(doc)
        if not 1 <= page_number <= n_pages:
            raise ValueError(f"Page {page_number} out of range (document has {n_pages})")
        pdf_page = doc[page_number - 1]
        try:
            width = pdf_page.get_width()
            height = pdf_page.get_height()
            items = _extract_page_items(pdf_page, page_number - 1)
        finally:
            pdf_page.close()
    finally:
        doc.close()

    fragments = normalize_text_items(items, width, height)
    logger.debug("Loaded %d fragments from %s page %d", len(fragments), path, page_number)
    return fragments
