"""Exception hierarchy for the pi-tea runtime.

Two families: ``TerminalError`` for failures talking to the controlling
terminal, and ``ProgramError`` for the ways a running :class:`Program` can
end other than a clean quit.
"""

from __future__ import annotations


# ---------------------------------------------------------------------------
# Terminal errors
# ---------------------------------------------------------------------------


class TerminalError(Exception):
    """Base class for terminal controller failures."""


class NotATTYError(TerminalError):
    """The file descriptor is not attached to a terminal."""

    def __init__(self, message: str = "not a terminal") -> None:
        super().__init__(message)


class AlreadyRunningError(TerminalError):
    """The terminal is already owned by a running program."""

    def __init__(self, message: str = "program is already running") -> None:
        super().__init__(message)


class RawModeError(TerminalError):
    """Reading or applying terminal attributes failed."""


# ---------------------------------------------------------------------------
# Program errors
# ---------------------------------------------------------------------------


class ProgramError(Exception):
    """Base class for abnormal program termination."""


class ProgramPanicError(ProgramError):
    """An unhandled exception escaped ``init``, ``update`` or ``view``.

    The original exception is chained as ``__cause__``.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"program panicked: {reason}")
        self.reason = reason


class ProgramKilledError(ProgramError):
    """The program was killed or its cancellation context fired."""

    def __init__(self, reason: str = "killed", *, context_cancelled: bool = False) -> None:
        super().__init__(f"program was killed: {reason}")
        self.reason = reason
        self.context_cancelled = context_cancelled


class ProgramInterruptedError(ProgramError):
    """The program received an interrupt (ctrl+c / SIGINT)."""

    def __init__(self) -> None:
        super().__init__("program was interrupted")


class ProgramTerminalError(ProgramError):
    """Setting up or restoring the terminal failed; wraps a TerminalError."""


# ---------------------------------------------------------------------------
# Exec
# ---------------------------------------------------------------------------


class ExecProcessError(Exception):
    """An external process run via exec exited with a non-zero status."""

    def __init__(self, status: int) -> None:
        super().__init__(f"process exited with status {status}")
        self.status = status
