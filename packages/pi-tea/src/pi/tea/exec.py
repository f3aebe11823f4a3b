"""Commands that take over the terminal while the program is paused.

The runtime releases the terminal (cooked mode, main screen, cursor shown),
runs the command in a worker thread, then restores everything and reports
the outcome through an ``ExecFinishedMsg`` or a user callback.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable
from typing import IO, Any, Protocol

from pi.tea.errors import ExecProcessError

logger = logging.getLogger(__name__)


class ExecCommand(Protocol):
    """Something that can be run in the foreground with the real terminal."""

    def run(self) -> None: ...

    def set_stdin(self, stream: IO[Any]) -> None: ...

    def set_stdout(self, stream: IO[Any]) -> None: ...

    def set_stderr(self, stream: IO[Any]) -> None: ...


class ProcessExecCommand:
    """Run an external program and wait for it.

    Streams not supplied explicitly are inherited from the program's own
    input and output. A non-zero exit status raises :class:`ExecProcessError`.
    """

    def __init__(
        self,
        args: list[str],
        *,
        stdin: IO[Any] | None = None,
        stdout: IO[Any] | None = None,
        stderr: IO[Any] | None = None,
        **popen_kwargs: Any,
    ) -> None:
        self.args = list(args)
        self.stdin = stdin
        self.stdout = stdout
        self.stderr = stderr
        self._popen_kwargs = popen_kwargs
        self.returncode: int | None = None

    def set_stdin(self, stream: IO[Any]) -> None:
        if self.stdin is None:
            self.stdin = stream

    def set_stdout(self, stream: IO[Any]) -> None:
        if self.stdout is None:
            self.stdout = stream

    def set_stderr(self, stream: IO[Any]) -> None:
        if self.stderr is None:
            self.stderr = stream

    def run(self) -> None:
        logger.debug("exec %s", self.args)
        completed = subprocess.run(
            self.args,
            stdin=self.stdin,
            stdout=self.stdout,
            stderr=self.stderr,
            check=False,
            **self._popen_kwargs,
        )
        self.returncode = completed.returncode
        if completed.returncode != 0:
            raise ExecProcessError(completed.returncode)


class FuncExecCommand:
    """Adapt a plain callable into an :class:`ExecCommand`."""

    def __init__(self, func: Callable[[], None]) -> None:
        self._func = func

    def set_stdin(self, stream: IO[Any]) -> None:
        pass

    def set_stdout(self, stream: IO[Any]) -> None:
        pass

    def set_stderr(self, stream: IO[Any]) -> None:
        pass

    def run(self) -> None:
        self._func()
