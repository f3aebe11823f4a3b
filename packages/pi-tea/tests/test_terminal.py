"""Tests for pi.tea.terminal -- geometry and raw mode on a pseudo-terminal."""

from __future__ import annotations

import fcntl
import io
import os
import struct
import termios
from collections.abc import Iterator

import pytest

from pi.tea import terminal as terminal_module
from pi.tea.errors import NotATTYError
from pi.tea.terminal import ProcessTerminal, TerminalSize, TerminalState, is_raw_mode, open_tty


@pytest.fixture
def pty_terminal() -> Iterator[tuple[ProcessTerminal, int]]:
    master, slave = os.openpty()
    stream = os.fdopen(slave, "rb", buffering=0)
    term = ProcessTerminal(input=stream, output=io.StringIO())
    try:
        yield term, slave
    finally:
        stream.close()
        os.close(master)


class TestProcessTerminalOnPty:
    def test_is_tty(self, pty_terminal) -> None:
        term, slave = pty_terminal
        assert term.is_tty()
        assert term.fileno() == slave

    def test_size_falls_back_to_input(self, pty_terminal) -> None:
        term, slave = pty_terminal
        fcntl.ioctl(slave, termios.TIOCSWINSZ, struct.pack("HHHH", 30, 100, 0, 0))
        assert term.get_size() == TerminalSize(rows=30, columns=100)

    def test_raw_mode_and_restore(self, pty_terminal) -> None:
        term, slave = pty_terminal
        saved = term.get_state()
        assert not is_raw_mode(slave)

        term.enter_raw_mode()
        assert is_raw_mode(slave)
        attrs = termios.tcgetattr(slave)
        assert not attrs[3] & termios.ISIG
        assert not attrs[1] & termios.OPOST
        assert attrs[6][termios.VMIN] == 1

        term.set_state(saved)
        assert not is_raw_mode(slave)

    def test_state_snapshot_is_not_mutated(self, pty_terminal) -> None:
        term, _ = pty_terminal
        saved = term.get_state()
        attrs = saved.as_list()
        attrs[6][termios.VMIN] = 99
        assert saved.attributes[6][termios.VMIN] != 99


class TestProcessTerminalWithoutTty:
    def test_not_a_tty(self) -> None:
        term = ProcessTerminal(input=io.BytesIO(), output=io.StringIO())
        assert not term.is_tty()

    def test_termios_calls_raise(self) -> None:
        term = ProcessTerminal(input=io.BytesIO(), output=io.StringIO())
        with pytest.raises(NotATTYError):
            term.get_state()
        with pytest.raises(NotATTYError):
            term.enter_raw_mode()
        with pytest.raises(NotATTYError):
            term.set_state(TerminalState(()))

    def test_size_raises(self) -> None:
        term = ProcessTerminal(input=io.BytesIO(), output=io.StringIO())
        with pytest.raises(NotATTYError):
            term.get_size()

    def test_open_tty_failure(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(terminal_module, "TTY_PATH", str(tmp_path / "missing"))
        with pytest.raises(NotATTYError):
            open_tty()
