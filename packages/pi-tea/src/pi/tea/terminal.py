"""Terminal controller: geometry, termios state and raw mode.

Provides a ``Terminal`` protocol (what the runtime needs from a terminal)
and ``ProcessTerminal``, the implementation for the controlling TTY of this
process. Output is not written here; the renderer owns the output stream.
"""

from __future__ import annotations

import copy
import logging
import os
import sys
import termios
from dataclasses import dataclass
from typing import Any, BinaryIO, Protocol, TextIO

from pi.tea.errors import NotATTYError, RawModeError

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 80
DEFAULT_HEIGHT = 24

TTY_PATH = "/dev/tty"

# termios attribute list indices
_IFLAG = 0
_OFLAG = 1
_CFLAG = 2
_LFLAG = 3
_CC = 6


@dataclass(frozen=True)
class TerminalSize:
    rows: int
    columns: int


@dataclass(frozen=True)
class TerminalState:
    """Snapshot of termios attributes, restored verbatim on exit."""

    attributes: tuple[Any, ...]

    def as_list(self) -> list[Any]:
        return copy.deepcopy(list(self.attributes))


# ---------------------------------------------------------------------------
# Terminal protocol
# ---------------------------------------------------------------------------


class Terminal(Protocol):
    """Operations the runtime performs on the terminal it owns."""

    def fileno(self) -> int: ...

    def is_tty(self) -> bool: ...

    def get_size(self) -> TerminalSize: ...

    def get_state(self) -> TerminalState: ...

    def set_state(self, state: TerminalState) -> None: ...

    def enter_raw_mode(self) -> None: ...


# ---------------------------------------------------------------------------
# ProcessTerminal implementation
# ---------------------------------------------------------------------------


def open_tty() -> BinaryIO:
    """Open the controlling terminal for reading, bypassing redirected stdin."""
    try:
        return open(TTY_PATH, "rb", buffering=0)
    except OSError as exc:
        raise NotATTYError(f"cannot open {TTY_PATH}: {exc}") from exc


class ProcessTerminal:
    """The terminal attached to this process.

    Reads from *input* when given. Otherwise stdin is used if it is a TTY and
    ``/dev/tty`` is opened if it is not (e.g. ``cat file | app``). The size is
    queried on *output* (stdout by default) and falls back to the input.
    """

    def __init__(self, input: BinaryIO | None = None, output: TextIO | None = None) -> None:
        self._owned_tty: BinaryIO | None = None
        if input is None:
            input = getattr(sys.stdin, "buffer", sys.stdin)
            if not _isatty(input):
                try:
                    input = self._owned_tty = open_tty()
                except NotATTYError:
                    logger.debug("no controlling terminal; using stdin")
        self.input = input
        self.output = output if output is not None else sys.stdout

    # -- queries ------------------------------------------------------------

    def fileno(self) -> int:
        return self.input.fileno()

    def is_tty(self) -> bool:
        return _isatty(self.input)

    def get_size(self) -> TerminalSize:
        for stream in (self.output, self.input):
            try:
                size = os.get_terminal_size(stream.fileno())
            except (AttributeError, ValueError, OSError):
                continue
            return TerminalSize(rows=size.lines, columns=size.columns)
        raise NotATTYError("cannot determine terminal size")

    # -- termios ------------------------------------------------------------

    def get_state(self) -> TerminalState:
        fd = self._tty_fd()
        try:
            return TerminalState(tuple(termios.tcgetattr(fd)))
        except termios.error as exc:
            raise RawModeError(f"tcgetattr failed: {exc}") from exc

    def set_state(self, state: TerminalState) -> None:
        fd = self._tty_fd()
        try:
            termios.tcsetattr(fd, termios.TCSADRAIN, state.as_list())
        except termios.error as exc:
            raise RawModeError(f"tcsetattr failed: {exc}") from exc

    def enter_raw_mode(self) -> None:
        """Disable line editing, echo, signal keys and output processing."""
        fd = self._tty_fd()
        try:
            attrs = termios.tcgetattr(fd)
        except termios.error as exc:
            raise RawModeError(f"tcgetattr failed: {exc}") from exc

        # The cfmakeraw(3) flag set, which tty.setraw only matches from Python 3.12.
        attrs[_IFLAG] &= ~(
            termios.IGNBRK
            | termios.BRKINT
            | termios.PARMRK
            | termios.ISTRIP
            | termios.INLCR
            | termios.IGNCR
            | termios.ICRNL
            | termios.IXON
        )
        attrs[_OFLAG] &= ~termios.OPOST
        attrs[_LFLAG] &= ~(
            termios.ECHO | termios.ECHONL | termios.ICANON | termios.ISIG | termios.IEXTEN
        )
        attrs[_CFLAG] &= ~(termios.CSIZE | termios.PARENB)
        attrs[_CFLAG] |= termios.CS8
        attrs[_CC][termios.VMIN] = 1
        attrs[_CC][termios.VTIME] = 0

        try:
            termios.tcsetattr(fd, termios.TCSAFLUSH, attrs)
        except termios.error as exc:
            raise RawModeError(f"tcsetattr failed: {exc}") from exc

    def close(self) -> None:
        if self._owned_tty is not None:
            self._owned_tty.close()
            self._owned_tty = None

    def _tty_fd(self) -> int:
        if not self.is_tty():
            raise NotATTYError()
        return self.fileno()


def _isatty(stream: Any) -> bool:
    try:
        return os.isatty(stream.fileno())
    except (AttributeError, ValueError, OSError):
        return False


def is_raw_mode(fd: int) -> bool:
    """Return True if canonical mode and echo are both off on *fd*."""
    try:
        attrs = termios.tcgetattr(fd)
    except termios.error:
        return False
    return not (attrs[_LFLAG] & (termios.ICANON | termios.ECHO))
