"""Cell-width helpers used by the renderer.

Width is measured per grapheme cluster (``grapheme``) with ``wcwidth`` for
East Asian wide characters; ANSI escape sequences are zero-width.
"""

from __future__ import annotations

import re
import unicodedata

import grapheme
import wcwidth as _wcwidth

# ---------------------------------------------------------------------------
# ANSI patterns
# ---------------------------------------------------------------------------

_STRIP_RE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"  # CSI
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"  # OSC
    r"|\x1b[PX^_][^\x07\x1b]*(?:\x07|\x1b\\)"  # DCS / SOS / PM / APC
)

_width_cache: dict[str, int] = {}
_WIDTH_CACHE_MAX = 512


def strip_ansi(text: str) -> str:
    return _STRIP_RE.sub("", text)


# ---------------------------------------------------------------------------
# Width measurement
# ---------------------------------------------------------------------------


def _grapheme_width(g: str) -> int:
    """Display width of one grapheme cluster."""
    if not g:
        return 0
    cp = ord(g[0])
    if len(g) == 1:
        if cp < 0x20 or 0x7F <= cp <= 0x9F:
            return 0
        return max(_wcwidth.wcwidth(g), 0)

    # Emoji presentation selector, ZWJ sequences, flags and skin tones
    for ch in g[1:]:
        if ch in ("\ufe0f", "\u200d") or 0x1F3FB <= ord(ch) <= 0x1F3FF:
            return 2
    if cp >= 0x1F000 or 0x1F1E6 <= cp <= 0x1F1FF:
        return 2
    if unicodedata.category(g[0]) in ("Mn", "Me", "Cf"):
        return 0
    return max(_wcwidth.wcwidth(g[0]), 0)


def visible_width(text: str) -> int:
    """Number of terminal cells *text* occupies once ANSI codes are removed."""
    if not text:
        return 0
    stripped = strip_ansi(text)
    if stripped.isascii() and stripped.isprintable():
        return len(stripped)

    cached = _width_cache.get(stripped)
    if cached is not None:
        return cached

    width = sum(_grapheme_width(g) for g in grapheme.graphemes(stripped))
    if len(_width_cache) >= _WIDTH_CACHE_MAX:
        _width_cache.clear()
    _width_cache[stripped] = width
    return width


# ---------------------------------------------------------------------------
# Truncation
# ---------------------------------------------------------------------------


def truncate_to_width(text: str, max_width: int, tail: str = "") -> str:
    """Cut *text* so it occupies at most *max_width* cells.

    Escape sequences are kept, including those after the cut point, so a
    trailing style reset still reaches the terminal. *tail* is appended when
    anything was removed and counts towards the width.
    """
    if max_width <= 0:
        return ""
    if visible_width(text) <= max_width:
        return text

    budget = max_width - visible_width(tail)
    if budget < 0:
        return _take_columns(tail, max_width)

    out: list[str] = []
    cols = 0
    cut = False
    pos = 0
    for match in _STRIP_RE.finditer(text):
        cols, cut = _take_plain(text[pos : match.start()], budget, cols, cut, out)
        out.append(match.group())
        pos = match.end()
    cols, cut = _take_plain(text[pos:], budget, cols, cut, out)
    if cut and tail:
        out.append(tail)
    return "".join(out)


def _take_plain(
    segment: str,
    budget: int,
    cols: int,
    cut: bool,
    out: list[str],
) -> tuple[int, bool]:
    if cut:
        return cols, True
    for g in grapheme.graphemes(segment):
        w = _grapheme_width(g)
        if cols + w > budget:
            return cols, True
        out.append(g)
        cols += w
    return cols, False


def _take_columns(text: str, max_cols: int) -> str:
    result: list[str] = []
    cols = 0
    for g in grapheme.graphemes(text):
        w = _grapheme_width(g)
        if cols + w > max_cols:
            break
        result.append(g)
        cols += w
    return "".join(result)
