"""Built-in message types.

Every message is an immutable dataclass tagged with a ``type`` literal.
Applications may send any other object as a message; the runtime passes
unknown types straight to ``Model.update``.

System messages (quit, mode toggles, scroll-region operations, exec ...)
are intercepted by the runtime and never reach ``update``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal

from pi.tea.keys import KeyMsg
from pi.tea.mouse import MouseMsg

if TYPE_CHECKING:
    from pi.tea.commands import Command
    from pi.tea.exec import ExecCommand

# Anything can be a message.
Msg = Any


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class QuitMsg:
    type: Literal["quit"] = "quit"


@dataclass(frozen=True)
class InterruptMsg:
    type: Literal["interrupt"] = "interrupt"


@dataclass(frozen=True)
class SuspendMsg:
    type: Literal["suspend"] = "suspend"


@dataclass(frozen=True)
class ResumeMsg:
    """Sent to ``update`` after the process continues from a suspend."""

    type: Literal["resume"] = "resume"


# ---------------------------------------------------------------------------
# Terminal events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WindowSizeMsg:
    width: int
    height: int
    type: Literal["window_size"] = "window_size"


@dataclass(frozen=True)
class FocusMsg:
    type: Literal["focus"] = "focus"


@dataclass(frozen=True)
class BlurMsg:
    type: Literal["blur"] = "blur"


@dataclass(frozen=True)
class PasteMsg:
    """Text received between bracketed-paste markers, delivered as one unit."""

    text: str
    type: Literal["paste"] = "paste"


@dataclass(frozen=True)
class TickMsg:
    time: datetime
    type: Literal["tick"] = "tick"


@dataclass(frozen=True)
class UnknownCSISequenceMsg:
    """A complete CSI sequence the decoder does not recognise."""

    raw: bytes
    type: Literal["unknown_csi"] = "unknown_csi"


@dataclass(frozen=True)
class UnknownSequenceMsg:
    """Incomplete input left pending when the decoder was flushed."""

    raw: bytes
    type: Literal["unknown_sequence"] = "unknown_sequence"


# ---------------------------------------------------------------------------
# Terminal mode toggles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SetWindowTitleMsg:
    title: str
    type: Literal["set_window_title"] = "set_window_title"


@dataclass(frozen=True)
class ClearScreenMsg:
    type: Literal["clear_screen"] = "clear_screen"


@dataclass(frozen=True)
class EnterAltScreenMsg:
    type: Literal["enter_alt_screen"] = "enter_alt_screen"


@dataclass(frozen=True)
class ExitAltScreenMsg:
    type: Literal["exit_alt_screen"] = "exit_alt_screen"


@dataclass(frozen=True)
class ShowCursorMsg:
    type: Literal["show_cursor"] = "show_cursor"


@dataclass(frozen=True)
class HideCursorMsg:
    type: Literal["hide_cursor"] = "hide_cursor"


@dataclass(frozen=True)
class EnableReportFocusMsg:
    type: Literal["enable_report_focus"] = "enable_report_focus"


@dataclass(frozen=True)
class DisableReportFocusMsg:
    type: Literal["disable_report_focus"] = "disable_report_focus"


@dataclass(frozen=True)
class EnableBracketedPasteMsg:
    type: Literal["enable_bracketed_paste"] = "enable_bracketed_paste"


@dataclass(frozen=True)
class DisableBracketedPasteMsg:
    type: Literal["disable_bracketed_paste"] = "disable_bracketed_paste"


@dataclass(frozen=True)
class EnableMouseCellMotionMsg:
    type: Literal["enable_mouse_cell_motion"] = "enable_mouse_cell_motion"


@dataclass(frozen=True)
class EnableMouseAllMotionMsg:
    type: Literal["enable_mouse_all_motion"] = "enable_mouse_all_motion"


@dataclass(frozen=True)
class DisableMouseMsg:
    type: Literal["disable_mouse"] = "disable_mouse"


@dataclass(frozen=True)
class RepaintMsg:
    type: Literal["repaint"] = "repaint"


@dataclass(frozen=True)
class RequestWindowSizeMsg:
    type: Literal["request_window_size"] = "request_window_size"


# ---------------------------------------------------------------------------
# Printing and scroll regions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PrintLineMsg:
    """Print *text* above the program output (ignored in the alt screen)."""

    text: str
    type: Literal["print_line"] = "print_line"


@dataclass(frozen=True)
class PrintFormattedMsg:
    text: str
    type: Literal["print_formatted"] = "print_formatted"


@dataclass(frozen=True)
class SyncScrollAreaMsg:
    lines: tuple[str, ...]
    top: int
    bottom: int
    type: Literal["sync_scroll_area"] = "sync_scroll_area"


@dataclass(frozen=True)
class ScrollUpMsg:
    lines: tuple[str, ...]
    top: int
    bottom: int
    type: Literal["scroll_up"] = "scroll_up"


@dataclass(frozen=True)
class ScrollDownMsg:
    lines: tuple[str, ...]
    top: int
    bottom: int
    type: Literal["scroll_down"] = "scroll_down"


@dataclass(frozen=True)
class ClearScrollAreaMsg:
    type: Literal["clear_scroll_area"] = "clear_scroll_area"


# ---------------------------------------------------------------------------
# Command composition and exec
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BatchMsg:
    """Run *commands* concurrently; every result is delivered."""

    commands: tuple[Command, ...]
    type: Literal["batch"] = "batch"


@dataclass(frozen=True)
class SequenceMsg:
    """Run *commands* in order, stopping after the first one that yields a message."""

    commands: tuple[Command, ...]
    type: Literal["sequence"] = "sequence"


@dataclass(frozen=True)
class ExecMsg:
    """Hand the terminal to *command*; *callback* maps its error to a message."""

    command: ExecCommand
    callback: Callable[[BaseException | None], Msg] | None = field(default=None, compare=False)
    type: Literal["exec"] = "exec"


@dataclass(frozen=True)
class ExecFinishedMsg:
    error: BaseException | None = None
    type: Literal["exec_finished"] = "exec_finished"


__all__ = [
    "BatchMsg",
    "BlurMsg",
    "ClearScreenMsg",
    "ClearScrollAreaMsg",
    "DisableBracketedPasteMsg",
    "DisableMouseMsg",
    "DisableReportFocusMsg",
    "EnableBracketedPasteMsg",
    "EnableMouseAllMotionMsg",
    "EnableMouseCellMotionMsg",
    "EnableReportFocusMsg",
    "EnterAltScreenMsg",
    "ExecFinishedMsg",
    "ExecMsg",
    "ExitAltScreenMsg",
    "FocusMsg",
    "HideCursorMsg",
    "InterruptMsg",
    "KeyMsg",
    "MouseMsg",
    "Msg",
    "PasteMsg",
    "PrintFormattedMsg",
    "PrintLineMsg",
    "QuitMsg",
    "RepaintMsg",
    "RequestWindowSizeMsg",
    "ResumeMsg",
    "ScrollDownMsg",
    "ScrollUpMsg",
    "SequenceMsg",
    "SetWindowTitleMsg",
    "ShowCursorMsg",
    "SuspendMsg",
    "SyncScrollAreaMsg",
    "TickMsg",
    "UnknownCSISequenceMsg",
    "UnknownSequenceMsg",
    "WindowSizeMsg",
]
