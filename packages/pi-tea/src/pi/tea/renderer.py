"""Differential terminal renderer.

``StandardRenderer`` keeps the last frame it wrote and, for each new view,
emits only what is needed to reach it:

* inline mode and the first frame: a full redraw from the top-left;
* alt screen: only the changed rows, each addressed absolutely.

Views submitted with :meth:`StandardRenderer.write` are coalesced: a short
timer restarts on every submission, and a periodic tick at the configured
frame rate flushes whatever is pending. Rendering happens on the event loop
thread and every flush is a single synchronous write, so flushes never
overlap.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import sys
from collections.abc import Iterable
from typing import Protocol, TextIO

from pi.tea.mouse import MouseMode
from pi.tea.utils import truncate_to_width

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# ANSI escape constants
# ---------------------------------------------------------------------------

_HIDE_CURSOR = "\x1b[?25l"
_SHOW_CURSOR = "\x1b[?25h"
_ALT_SCREEN_ENTER = "\x1b[?1049h"
_ALT_SCREEN_EXIT = "\x1b[?1049l"
_CLEAR_SCREEN = "\x1b[2J\x1b[H"
_CURSOR_HOME = "\x1b[H"
_ERASE_DOWN = "\x1b[J"
_ERASE_LINE = "\x1b[2K"
_ERASE_LINE_RIGHT = "\x1b[K"
_MOUSE_CELL_MOTION_ENABLE = "\x1b[?1002h"
_MOUSE_CELL_MOTION_DISABLE = "\x1b[?1002l"
_MOUSE_ALL_MOTION_ENABLE = "\x1b[?1003h"
_MOUSE_ALL_MOTION_DISABLE = "\x1b[?1003l"
_MOUSE_SGR_ENABLE = "\x1b[?1006h"
_MOUSE_SGR_DISABLE = "\x1b[?1006l"
_BRACKETED_PASTE_ENABLE = "\x1b[?2004h"
_BRACKETED_PASTE_DISABLE = "\x1b[?2004l"
_REPORT_FOCUS_ENABLE = "\x1b[?1004h"
_REPORT_FOCUS_DISABLE = "\x1b[?1004l"
_RESET_SCROLL_REGION = "\x1b[r"
_SET_TITLE_FMT = "\x1b]0;{}\x07"
_CURSOR_POSITION_FMT = "\x1b[{};{}H"
_SCROLL_REGION_FMT = "\x1b[{};{}r"
_INSERT_LINES_FMT = "\x1b[{}L"

DEFAULT_FPS = 60
MAX_FPS = 120
COALESCE_INTERVAL = 0.016

WRITE_LOG_ENV = "PI_TEA_WRITE_LOG"


def _cursor_to(row: int, column: int = 1) -> str:
    return _CURSOR_POSITION_FMT.format(row, column)


# ---------------------------------------------------------------------------
# Renderer protocol
# ---------------------------------------------------------------------------


class Renderer(Protocol):
    """What the runtime drives. See :class:`StandardRenderer` for semantics."""

    @property
    def alt_screen(self) -> bool: ...

    @property
    def cursor_hidden(self) -> bool: ...

    @property
    def bracketed_paste(self) -> bool: ...

    @property
    def report_focus(self) -> bool: ...

    @property
    def mouse_mode(self) -> MouseMode: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def kill(self) -> None: ...

    def write(self, view: str) -> None: ...

    def repaint(self) -> None: ...

    def set_size(self, width: int, height: int) -> None: ...

    def reset_lines_rendered(self) -> None: ...

    def clear_screen(self) -> None: ...

    def enter_alt_screen(self) -> None: ...

    def exit_alt_screen(self) -> None: ...

    def show_cursor(self) -> None: ...

    def hide_cursor(self) -> None: ...

    def enable_mouse_cell_motion(self) -> None: ...

    def enable_mouse_all_motion(self) -> None: ...

    def disable_mouse(self) -> None: ...

    def enable_bracketed_paste(self) -> None: ...

    def disable_bracketed_paste(self) -> None: ...

    def enable_report_focus(self) -> None: ...

    def disable_report_focus(self) -> None: ...

    def set_window_title(self, title: str) -> None: ...

    def queue_message_line(self, text: str) -> None: ...

    def sync_scroll_area(self, lines: Iterable[str], top: int, bottom: int) -> None: ...

    def scroll_up(self, lines: Iterable[str], top: int, bottom: int) -> None: ...

    def scroll_down(self, lines: Iterable[str], top: int, bottom: int) -> None: ...

    def clear_scroll_area(self) -> None: ...


# ---------------------------------------------------------------------------
# StandardRenderer
# ---------------------------------------------------------------------------


class StandardRenderer:
    """Renderer writing ANSI to a text stream.

    Parameters
    ----------
    output:
        Stream receiving all escape sequences and frames.
    fps:
        Periodic flush rate, clamped to 1..120.
    """

    def __init__(self, output: TextIO | None = None, fps: int = DEFAULT_FPS) -> None:
        self._output = output if output is not None else sys.stdout
        self.fps = min(max(fps, 1), MAX_FPS)
        self.width = 80
        self.height = 24

        self._view = ""
        self._dirty = False
        self._lines_rendered: list[str] = []
        self._queued_lines: list[str] = []
        self._ignored_ranges: list[tuple[int, int]] = []
        self._ignored_patterns: list[re.Pattern[str]] = []

        self._running = False
        self._tick_handle: asyncio.TimerHandle | None = None
        self._coalesce_handle: asyncio.TimerHandle | None = None

        self._alt_screen = False
        self._cursor_hidden = False
        self._bracketed_paste = False
        self._report_focus = False
        self._mouse_mode = MouseMode.DISABLED
        self._mouse_sgr = False
        self._title: str | None = None

        self._write_log_path = os.environ.get(WRITE_LOG_ENV, "")

        self.write_count = 0
        self.full_redraws = 0

    # -- state --------------------------------------------------------------

    @property
    def alt_screen(self) -> bool:
        return self._alt_screen

    @property
    def cursor_hidden(self) -> bool:
        return self._cursor_hidden

    @property
    def bracketed_paste(self) -> bool:
        return self._bracketed_paste

    @property
    def report_focus(self) -> bool:
        return self._report_focus

    @property
    def mouse_mode(self) -> MouseMode:
        return self._mouse_mode

    @property
    def running(self) -> bool:
        return self._running

    @property
    def lines_rendered(self) -> list[str]:
        return list(self._lines_rendered)

    # -- lifecycle ----------------------------------------------------------

    def start(self) -> None:
        """Hide the cursor and start the periodic flush on the running loop."""
        if self._running:
            return
        self._running = True
        self.hide_cursor()
        self._schedule_tick()

    def stop(self) -> None:
        """Flush what is pending, stop the ticker and show the cursor."""
        if self._running:
            self.flush()
        self._halt()

    def kill(self) -> None:
        """Stop without the final flush."""
        self._halt()

    def _halt(self) -> None:
        self._running = False
        for handle in (self._tick_handle, self._coalesce_handle):
            if handle is not None:
                handle.cancel()
        self._tick_handle = None
        self._coalesce_handle = None
        self.show_cursor()

    def _schedule_tick(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._tick_handle = loop.call_later(1.0 / self.fps, self._on_tick)

    def _on_tick(self) -> None:
        self._tick_handle = None
        if not self._running:
            return
        self.flush()
        self._schedule_tick()

    # -- frames -------------------------------------------------------------

    def write(self, view: str) -> None:
        """Submit a new view; it is drawn after a short coalescing delay."""
        if view != self._view:
            self._view = view
            self._dirty = True
        if not self._running or not self._dirty:
            return
        if self._coalesce_handle is not None:
            self._coalesce_handle.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._coalesce_handle = loop.call_later(COALESCE_INTERVAL, self._on_coalesce)

    def _on_coalesce(self) -> None:
        self._coalesce_handle = None
        if self._running:
            self.flush()

    def repaint(self) -> None:
        """Flush immediately, bypassing the coalescing timer."""
        if self._coalesce_handle is not None:
            self._coalesce_handle.cancel()
            self._coalesce_handle = None
        self.flush()

    def reset_lines_rendered(self) -> None:
        """Forget the last frame so the next flush redraws everything."""
        self._lines_rendered = []
        self._dirty = True

    def set_size(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            return
        if (width, height) != (self.width, self.height):
            self.width = width
            self.height = height
            self.reset_lines_rendered()

    def flush(self) -> None:
        if not self._dirty and not self._queued_lines:
            return

        lines = self._frame_lines(self._view)
        if self._alt_screen and self._lines_rendered:
            data = self._diff_render(lines)
        else:
            data = self._full_render(lines)
            self._lines_rendered = lines
        self._queued_lines = []
        self._dirty = False
        if data:
            self._write(data)

    def _frame_lines(self, view: str) -> list[str]:
        lines = view.split("\n")[: self.height]
        return [truncate_to_width(line, self.width) for line in lines]

    def _full_render(self, lines: list[str]) -> str:
        self.full_redraws += 1
        body = lines
        if self._queued_lines and not self._alt_screen:
            body = self._queued_lines + lines
        buf = [_CURSOR_HOME, _ERASE_DOWN, "\r\n".join(body)]
        # Clear rows a longer previous frame left behind, within the screen.
        stale = min(len(self._lines_rendered), self.height) - len(body)
        for _ in range(max(stale, 0)):
            buf.append("\r\n" + _ERASE_LINE_RIGHT)
        return "".join(buf)

    def _diff_render(self, lines: list[str]) -> str:
        old = self._lines_rendered
        rows = min(max(len(old), len(lines)), self.height)
        changed = [_row(old, i) != _row(lines, i) for i in range(rows)]
        skipped = self._skippable_rows(lines, changed)

        buf: list[str] = []
        cache: list[str] = []
        for i in range(rows):
            new_line = _row(lines, i)
            if i in skipped:
                cache.append(old[i])
                continue
            if new_line is not None:
                cache.append(new_line)
            if not changed[i]:
                continue
            buf.append(_cursor_to(i + 1))
            buf.append(_ERASE_LINE)
            if new_line is not None:
                buf.append(new_line)

        self._lines_rendered = cache
        if buf:
            buf.append(_cursor_to(max(len(lines), 1)))
        return "".join(buf)

    # -- ignored lines ------------------------------------------------------

    def set_ignored_lines(self, start: int, end: int) -> None:
        """Leave rows ``start <= row < end`` (0-based) alone when they change."""
        if end > start:
            self._ignored_ranges.append((start, end))

    def add_ignored_pattern(self, pattern: str | re.Pattern[str]) -> None:
        """Leave rows whose new content matches *pattern* alone when they change."""
        self._ignored_patterns.append(re.compile(pattern) if isinstance(pattern, str) else pattern)

    def clear_ignored_lines(self) -> None:
        self._ignored_ranges = []
        self._ignored_patterns = []

    def _is_ignored(self, row: int, line: str | None) -> bool:
        if line is None:
            return False
        if any(start <= row < end for start, end in self._ignored_ranges):
            return True
        return any(p.search(line) for p in self._ignored_patterns)

    def _skippable_rows(self, lines: list[str], changed: list[bool]) -> set[int]:
        """Changed ignored rows whose surrounding rows did not change.

        Consecutive ignored rows are treated as one block: the block is
        skipped when the rows just above and below it are unchanged.
        """
        skipped: set[int] = set()
        if not self._ignored_ranges and not self._ignored_patterns:
            return skipped
        old = self._lines_rendered
        rows = len(changed)
        i = 0
        while i < rows:
            if not (changed[i] and i < len(old) and self._is_ignored(i, _row(lines, i))):
                i += 1
                continue
            j = i
            while j + 1 < rows and changed[j + 1] and j + 1 < len(old) and self._is_ignored(j + 1, _row(lines, j + 1)):
                j += 1
            above_same = i == 0 or not changed[i - 1]
            below_same = j + 1 >= rows or not changed[j + 1]
            if above_same and below_same:
                skipped.update(range(i, j + 1))
            i = j + 1
        return skipped

    # -- printing above the frame ------------------------------------------

    def queue_message_line(self, text: str) -> None:
        """Print *text* before the next frame. Dropped in the alt screen."""
        if self._alt_screen:
            return
        self._queued_lines.extend(text.split("\n"))
        self.repaint()

    # -- scroll regions -----------------------------------------------------

    def _clamp_region(self, top: int, bottom: int) -> tuple[int, int] | None:
        top = max(top, 1)
        bottom = min(bottom, self.height)
        if top > bottom:
            logger.debug("ignoring empty scroll region %d..%d", top, bottom)
            return None
        return top, bottom

    def _restore_region(self) -> str:
        return _SCROLL_REGION_FMT.format(0, self.height) + _cursor_to(max(len(self._lines_rendered), 1))

    def sync_scroll_area(self, lines: Iterable[str], top: int, bottom: int) -> None:
        """Fill rows *top*..*bottom* (1-based, inclusive) with *lines*.

        The rows are then ignored by the diff so frames do not overwrite them.
        """
        region = self._clamp_region(top, bottom)
        if region is None:
            return
        self.clear_ignored_lines()
        self.set_ignored_lines(region[0] - 1, region[1])
        self._insert_top(list(lines), *region)
        self.repaint()

    def scroll_up(self, lines: Iterable[str], top: int, bottom: int) -> None:
        """Insert *lines* at the top of the region, pushing content down."""
        region = self._clamp_region(top, bottom)
        if region is None:
            return
        self._insert_top(list(lines), *region)

    def scroll_down(self, lines: Iterable[str], top: int, bottom: int) -> None:
        """Append *lines* at the bottom of the region, scrolling content up."""
        region = self._clamp_region(top, bottom)
        if region is None:
            return
        top, bottom = region
        fitted = [truncate_to_width(line, self.width) for line in lines]
        if not fitted:
            logger.debug("ignoring scroll with no lines")
            return
        buf = [
            _SCROLL_REGION_FMT.format(top, bottom),
            _cursor_to(bottom),
            "\r\n" + "\r\n".join(fitted),
            self._restore_region(),
        ]
        self._write("".join(buf))

    def _insert_top(self, lines: list[str], top: int, bottom: int) -> None:
        fitted = [truncate_to_width(line, self.width) for line in lines]
        if not fitted:
            logger.debug("ignoring scroll with no lines")
            return
        buf = [
            _SCROLL_REGION_FMT.format(top, bottom),
            _cursor_to(top),
            _INSERT_LINES_FMT.format(len(fitted)),
            "\r\n".join(fitted),
            self._restore_region(),
        ]
        self._write("".join(buf))

    def clear_scroll_area(self) -> None:
        """Drop the scroll region and let frames own every row again."""
        self._write(_RESET_SCROLL_REGION)
        self.clear_ignored_lines()
        self.reset_lines_rendered()
        self.repaint()

    # -- screen and modes ---------------------------------------------------

    def clear_screen(self) -> None:
        self._write(_CLEAR_SCREEN)
        self.reset_lines_rendered()
        self.repaint()

    def enter_alt_screen(self) -> None:
        if self._alt_screen:
            return
        self._alt_screen = True
        self._write(_ALT_SCREEN_ENTER)
        self.reset_lines_rendered()

    def exit_alt_screen(self) -> None:
        if not self._alt_screen:
            return
        self._alt_screen = False
        self._write(_ALT_SCREEN_EXIT)
        self.reset_lines_rendered()

    def show_cursor(self) -> None:
        if not self._cursor_hidden:
            return
        self._cursor_hidden = False
        self._write(_SHOW_CURSOR)

    def hide_cursor(self) -> None:
        if self._cursor_hidden:
            return
        self._cursor_hidden = True
        self._write(_HIDE_CURSOR)

    def enable_mouse_cell_motion(self) -> None:
        self._set_mouse_mode(MouseMode.CELL_MOTION)

    def enable_mouse_all_motion(self) -> None:
        self._set_mouse_mode(MouseMode.ALL_MOTION)

    def disable_mouse(self) -> None:
        self._set_mouse_mode(MouseMode.DISABLED)

    def _set_mouse_mode(self, mode: MouseMode) -> None:
        if mode == self._mouse_mode:
            return
        buf = []
        if self._mouse_mode == MouseMode.CELL_MOTION:
            buf.append(_MOUSE_CELL_MOTION_DISABLE)
        elif self._mouse_mode == MouseMode.ALL_MOTION:
            buf.append(_MOUSE_ALL_MOTION_DISABLE)
        if mode == MouseMode.CELL_MOTION:
            buf.append(_MOUSE_CELL_MOTION_ENABLE)
        elif mode == MouseMode.ALL_MOTION:
            buf.append(_MOUSE_ALL_MOTION_ENABLE)
        sgr = mode != MouseMode.DISABLED
        if sgr != self._mouse_sgr:
            buf.append(_MOUSE_SGR_ENABLE if sgr else _MOUSE_SGR_DISABLE)
            self._mouse_sgr = sgr
        self._mouse_mode = mode
        self._write("".join(buf))

    def enable_bracketed_paste(self) -> None:
        if self._bracketed_paste:
            return
        self._bracketed_paste = True
        self._write(_BRACKETED_PASTE_ENABLE)

    def disable_bracketed_paste(self) -> None:
        if not self._bracketed_paste:
            return
        self._bracketed_paste = False
        self._write(_BRACKETED_PASTE_DISABLE)

    def enable_report_focus(self) -> None:
        if self._report_focus:
            return
        self._report_focus = True
        self._write(_REPORT_FOCUS_ENABLE)

    def disable_report_focus(self) -> None:
        if not self._report_focus:
            return
        self._report_focus = False
        self._write(_REPORT_FOCUS_DISABLE)

    def set_window_title(self, title: str) -> None:
        if title == self._title:
            return
        self._title = title
        self._write(_SET_TITLE_FMT.format(title))

    # -- output -------------------------------------------------------------

    def _write(self, data: str) -> None:
        self.write_count += 1
        try:
            self._output.write(data)
            self._output.flush()
        except (OSError, ValueError):
            logger.debug("renderer output is gone", exc_info=True)

        if self._write_log_path:
            try:
                with open(self._write_log_path, "a", encoding="utf-8") as f:
                    f.write(data)
            except OSError:
                logger.debug("cannot append to %s", self._write_log_path)


def _row(lines: list[str], i: int) -> str | None:
    return lines[i] if i < len(lines) else None


# ---------------------------------------------------------------------------
# NilRenderer
# ---------------------------------------------------------------------------


class NilRenderer:
    """Renderer that draws nothing, for headless programs and tests."""

    alt_screen = False
    cursor_hidden = False
    bracketed_paste = False
    report_focus = False
    mouse_mode = MouseMode.DISABLED

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass

    def kill(self) -> None:
        pass

    def write(self, view: str) -> None:
        pass

    def repaint(self) -> None:
        pass

    def set_size(self, width: int, height: int) -> None:
        pass

    def reset_lines_rendered(self) -> None:
        pass

    def clear_screen(self) -> None:
        pass

    def enter_alt_screen(self) -> None:
        pass

    def exit_alt_screen(self) -> None:
        pass

    def show_cursor(self) -> None:
        pass

    def hide_cursor(self) -> None:
        pass

    def enable_mouse_cell_motion(self) -> None:
        pass

    def enable_mouse_all_motion(self) -> None:
        pass

    def disable_mouse(self) -> None:
        pass

    def enable_bracketed_paste(self) -> None:
        pass

    def disable_bracketed_paste(self) -> None:
        pass

    def enable_report_focus(self) -> None:
        pass

    def disable_report_focus(self) -> None:
        pass

    def set_window_title(self, title: str) -> None:
        pass

    def queue_message_line(self, text: str) -> None:
        pass

    def sync_scroll_area(self, lines: Iterable[str], top: int, bottom: int) -> None:
        pass

    def scroll_up(self, lines: Iterable[str], top: int, bottom: int) -> None:
        pass

    def scroll_down(self, lines: Iterable[str], top: int, bottom: int) -> None:
        pass

    def clear_scroll_area(self) -> None:
        pass
