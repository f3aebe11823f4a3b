"""Tests for pi.tea.exec -- foreground commands."""

from __future__ import annotations

import io
import sys

import pytest

from pi.tea.errors import ExecProcessError
from pi.tea.exec import FuncExecCommand, ProcessExecCommand


class TestProcessExecCommand:
    def test_success(self, tmp_path) -> None:
        out_path = tmp_path / "out.txt"
        with open(out_path, "w") as out:
            c = ProcessExecCommand([sys.executable, "-c", "print('hi')"], stdout=out)
            c.run()
        assert c.returncode == 0
        assert out_path.read_text() == "hi\n"

    def test_non_zero_exit_raises(self) -> None:
        c = ProcessExecCommand([sys.executable, "-c", "import sys; sys.exit(3)"])
        with pytest.raises(ExecProcessError) as exc_info:
            c.run()
        assert exc_info.value.status == 3
        assert c.returncode == 3

    def test_missing_program_raises_os_error(self, tmp_path) -> None:
        c = ProcessExecCommand([str(tmp_path / "no-such-program")])
        with pytest.raises(OSError):
            c.run()

    def test_explicit_streams_are_kept(self) -> None:
        mine = io.StringIO()
        inherited = io.StringIO()
        c = ProcessExecCommand(["true"], stdout=mine)
        c.set_stdout(inherited)
        c.set_stdin(inherited)
        c.set_stderr(inherited)
        assert c.stdout is mine
        assert c.stdin is inherited
        assert c.stderr is inherited


class TestFuncExecCommand:
    def test_runs_callable(self) -> None:
        calls: list[str] = []
        c = FuncExecCommand(lambda: calls.append("ran"))
        c.set_stdin(io.StringIO())
        c.set_stdout(io.StringIO())
        c.set_stderr(io.StringIO())
        c.run()
        assert calls == ["ran"]

    def test_errors_propagate(self) -> None:
        def fail() -> None:
            raise RuntimeError("editor crashed")

        with pytest.raises(RuntimeError, match="editor crashed"):
            FuncExecCommand(fail).run()
