"""Script and symbol-font helpers.

PDF producers store bullet/check/arrow glyphs either as Private Use Area
code points (Symbol-encoded fonts) or as plain ASCII letters drawn with a
dingbat font such as Wingdings.  Both render as symbols on the page but
extract as meaningless characters, so they are mapped to visual Unicode
equivalents before text leaves the engine.
"""

from __future__ import annotations

import re

_CJK_RE = re.compile("[\u4e00-\u9fff\u3400-\u4dbf\uf900-\ufaff]")
_PUA_RE = re.compile("[\ue000-\uf8ff]")
_DINGBAT_FONT_RE = re.compile(r"wingdings|webdings|zapfdingbats", re.IGNORECASE)

# Private Use Area code points seen in Symbol-encoded bullets.
PUA_CHAR_MAP: dict[int, str] = {
    0xF06E: "■",   # black square
    0xF0D8: "▷",   # white right-pointing triangle
    0xF0B7: "●",   # black circle
    0xF06C: "●",
    0xF0A7: "■",
    0xF0A8: "□",   # white square
    0xF0B2: "◆",   # black diamond
    0xF076: "✓",   # check mark
    0xF0FC: "✓",
    0xF0E8: "➤",   # arrowhead
}

PUA_FALLBACK = "●"

# ASCII glyph positions of the Wingdings family.
DINGBAT_CHAR_MAP: dict[str, str] = {
    "l": "●",
    "n": "■",
    "q": "◆",
    "r": "□",
    "u": "○",
    "v": "✓",
    "x": "✕",
    "t": "◇",
    "w": "✗",
    "à": "\U0001f58a",  # lower-left pen
}

DINGBAT_FALLBACK = "■"


def has_cjk(text: str) -> bool:
    """True if *text* contains a CJK unified ideograph."""
    return _CJK_RE.search(text) is not None


def is_dingbat_font(font_name: str) -> bool:
    """True for Wingdings, Webdings and Zapf Dingbats (any subset prefix)."""
    return bool(font_name) and _DINGBAT_FONT_RE.search(font_name) is not None


def map_dingbat_text(text: str) -> str:
    """Translate text drawn with a dingbat font into visible symbols.

    Whitespace is preserved; any other unmapped character becomes a square.
    """
    return "".join(
        ch if ch.isspace() else DINGBAT_CHAR_MAP.get(ch, DINGBAT_FALLBACK)
        for ch in text
    )


def sanitize_private_use(text: str) -> str:
    """Replace Private Use Area characters with their visual equivalents."""
    if not _PUA_RE.search(text):
        return text
    return _PUA_RE.sub(lambda m: PUA_CHAR_MAP.get(ord(m.group()), PUA_FALLBACK), text)
