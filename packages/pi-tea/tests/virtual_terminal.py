"""Virtual terminal for testing -- implements the Terminal protocol in-memory.

``VirtualTerminal`` satisfies ``pi.tea.terminal.Terminal`` without touching a
real TTY. Input goes through an ``os.pipe`` so the program's event-loop
reader sees real readable file descriptors; the same object doubles as the
output stream, capturing everything the renderer writes.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable

from pi.tea.terminal import TerminalSize, TerminalState


class VirtualTerminal:
    """In-memory terminal that records writes and termios calls.

    Parameters
    ----------
    rows:
        Number of terminal rows (height).
    columns:
        Number of terminal columns (width).
    tty:
        What :meth:`is_tty` reports; ``False`` simulates piped input.
    """

    def __init__(self, rows: int = 24, columns: int = 80, *, tty: bool = True) -> None:
        self._rows = rows
        self._columns = columns
        self._tty = tty
        self._buffer: list[str] = []
        self._read_fd, self._write_fd = os.pipe()
        self._input_closed = False

        self.state = TerminalState(("cooked",))
        self.raw = False
        self.get_state_calls = 0
        self.set_state_calls = 0
        self.raw_mode_calls = 0
        self.restored_states: list[TerminalState] = []

    # -- Terminal protocol --------------------------------------------------

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def columns(self) -> int:
        return self._columns

    def fileno(self) -> int:
        return self._read_fd

    def is_tty(self) -> bool:
        return self._tty

    def get_size(self) -> TerminalSize:
        return TerminalSize(rows=self._rows, columns=self._columns)

    def get_state(self) -> TerminalState:
        self.get_state_calls += 1
        return self.state

    def set_state(self, state: TerminalState) -> None:
        self.set_state_calls += 1
        self.restored_states.append(state)
        self.raw = False

    def enter_raw_mode(self) -> None:
        self.raw_mode_calls += 1
        self.raw = True

    # -- Output stream ------------------------------------------------------

    def write(self, data: str) -> int:
        self._buffer.append(data)
        return len(data)

    def flush(self) -> None:
        pass

    # -- Test helpers -------------------------------------------------------

    @property
    def written(self) -> str:
        """Everything the renderer wrote, as a single string."""
        return "".join(self._buffer)

    @property
    def write_count(self) -> int:
        return len(self._buffer)

    def clear_buffer(self) -> None:
        self._buffer.clear()

    def simulate_input(self, data: bytes | str) -> None:
        """Make *data* readable on the input descriptor."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        os.write(self._write_fd, data)

    def close_input(self) -> None:
        """Signal end-of-file on the input descriptor."""
        if not self._input_closed:
            os.close(self._write_fd)
            self._input_closed = True

    def simulate_resize(self, rows: int | None = None, columns: int | None = None) -> None:
        """Change the dimensions reported by :meth:`get_size`."""
        if rows is not None:
            self._rows = rows
        if columns is not None:
            self._columns = columns

    def close(self) -> None:
        self.close_input()
        os.close(self._read_fd)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll *predicate* until it holds, failing the test after *timeout*."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)
