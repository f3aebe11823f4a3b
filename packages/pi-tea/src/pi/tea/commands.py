"""Commands: deferred units of work that produce at most one message.

``update`` and ``init`` return a :class:`Command` (or ``None``). The runtime
schedules it and feeds the resulting message back into the queue.

Kinds:

* ``pure``     - already resolved to a message.
* ``async``    - wraps a callable; coroutine functions are awaited, plain
  functions are called on the loop (or in a worker thread with
  ``thread=True``).
* ``batch``    - members run concurrently.
* ``sequence`` - members run in order, stopping at the first one that yields
  a message.
* ``quit``     - asks the program to exit.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from pi.tea.exec import ExecCommand, ProcessExecCommand
from pi.tea.messages import (
    ClearScreenMsg,
    ClearScrollAreaMsg,
    DisableBracketedPasteMsg,
    DisableMouseMsg,
    DisableReportFocusMsg,
    EnableBracketedPasteMsg,
    EnableMouseAllMotionMsg,
    EnableMouseCellMotionMsg,
    EnableReportFocusMsg,
    EnterAltScreenMsg,
    ExecMsg,
    ExitAltScreenMsg,
    HideCursorMsg,
    InterruptMsg,
    Msg,
    PrintFormattedMsg,
    PrintLineMsg,
    QuitMsg,
    RepaintMsg,
    RequestWindowSizeMsg,
    ScrollDownMsg,
    ScrollUpMsg,
    SetWindowTitleMsg,
    ShowCursorMsg,
    SuspendMsg,
    SyncScrollAreaMsg,
    TickMsg,
)

CommandKind = Literal["pure", "async", "batch", "sequence", "quit"]

ExecCallback = Callable[[BaseException | None], Msg]


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    message: Msg = None
    func: Callable[[], Any] | None = None
    commands: tuple[Command, ...] = ()
    thread: bool = False

    # -- constructors -------------------------------------------------------

    @classmethod
    def pure(cls, message: Msg) -> Command:
        return cls("pure", message=message)

    @classmethod
    def of(cls, func: Callable[[], Any], *, thread: bool = False) -> Command:
        return cls("async", func=func, thread=thread)

    @classmethod
    def quit(cls) -> Command:
        return cls("quit")

    @classmethod
    def batch(cls, *commands: Command | None) -> Command:
        return cls("batch", commands=_compact(commands))

    @classmethod
    def sequence(cls, *commands: Command | None) -> Command:
        return cls("sequence", commands=_compact(commands))

    # -- execution ----------------------------------------------------------

    async def execute(self) -> Msg | None:
        """Run the command directly and return its message, if any.

        A batch returns the first non-empty member result and cancels the
        members still running. A sequence returns the first non-empty result
        and does not start the remaining members.
        """
        if self.kind == "pure":
            return self.message
        if self.kind == "quit":
            return QuitMsg()
        if self.kind == "async":
            return await self.call()
        if self.kind == "sequence":
            for command in self.commands:
                msg = await command.execute()
                if msg is not None:
                    return msg
            return None
        return await _first_of(self.commands)

    async def call(self) -> Msg | None:
        """Invoke the wrapped callable of an ``async`` command."""
        assert self.func is not None
        if self.thread:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(None, self.func)
        else:
            result = self.func()
        if inspect.isawaitable(result):
            result = await result
        return result


def _compact(commands: Iterable[Command | None]) -> tuple[Command, ...]:
    return tuple(c for c in commands if c is not None)


async def _first_of(commands: tuple[Command, ...]) -> Msg | None:
    if not commands:
        return None
    tasks = [asyncio.ensure_future(c.execute()) for c in commands]
    try:
        for next_done in asyncio.as_completed(tasks):
            msg = await next_done
            if msg is not None:
                return msg
        return None
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def cmd(func: Callable[[], Any], *, thread: bool = False) -> Command:
    """Wrap *func* (sync or async, zero arguments) as a command."""
    return Command.of(func, thread=thread)


def batch(*commands: Command | None) -> Command | None:
    """Combine commands to run concurrently; ``None`` entries are skipped.

    Returns ``None`` when nothing is left and the single command when only
    one remains.
    """
    valid = _compact(commands)
    if not valid:
        return None
    if len(valid) == 1:
        return valid[0]
    return Command.batch(*valid)


def sequence(*commands: Command | None) -> Command | None:
    """Combine commands to run one after another; ``None`` entries are skipped."""
    valid = _compact(commands)
    if not valid:
        return None
    return Command.sequence(*valid)


# ---------------------------------------------------------------------------
# Timers
# ---------------------------------------------------------------------------


def tick(seconds: float, func: Callable[[datetime], Msg] = TickMsg) -> Command:
    """Produce ``func(now)`` once, *seconds* after the command is scheduled.

    Without *func* the message is a :class:`TickMsg`.

    Return it again from ``update`` to keep ticking.
    """

    async def _tick() -> Msg:
        await asyncio.sleep(seconds)
        return func(datetime.now())

    return Command.of(_tick)


def every(seconds: float, func: Callable[[datetime], Msg] = TickMsg) -> Command:
    """Like :func:`tick` but fires on the next multiple of *seconds* of wall-clock time."""

    async def _every() -> Msg:
        delay = seconds - (time.time() % seconds) if seconds > 0 else 0
        await asyncio.sleep(delay)
        return func(datetime.now())

    return Command.of(_every)


# ---------------------------------------------------------------------------
# Program control
# ---------------------------------------------------------------------------


def suspend() -> Command:
    return Command.pure(SuspendMsg())


def interrupt() -> Command:
    return Command.pure(InterruptMsg())


def window_size() -> Command:
    """Ask the runtime to query the terminal and send a ``WindowSizeMsg``."""
    return Command.pure(RequestWindowSizeMsg())


def repaint() -> Command:
    return Command.pure(RepaintMsg())


# ---------------------------------------------------------------------------
# Terminal modes
# ---------------------------------------------------------------------------


def set_window_title(title: str) -> Command:
    return Command.pure(SetWindowTitleMsg(title))


def clear_screen() -> Command:
    return Command.pure(ClearScreenMsg())


def enter_alt_screen() -> Command:
    return Command.pure(EnterAltScreenMsg())


def exit_alt_screen() -> Command:
    return Command.pure(ExitAltScreenMsg())


def show_cursor() -> Command:
    return Command.pure(ShowCursorMsg())


def hide_cursor() -> Command:
    return Command.pure(HideCursorMsg())


def enable_report_focus() -> Command:
    return Command.pure(EnableReportFocusMsg())


def disable_report_focus() -> Command:
    return Command.pure(DisableReportFocusMsg())


def enable_bracketed_paste() -> Command:
    return Command.pure(EnableBracketedPasteMsg())


def disable_bracketed_paste() -> Command:
    return Command.pure(DisableBracketedPasteMsg())


def enable_mouse_cell_motion() -> Command:
    return Command.pure(EnableMouseCellMotionMsg())


def enable_mouse_all_motion() -> Command:
    return Command.pure(EnableMouseAllMotionMsg())


def disable_mouse() -> Command:
    return Command.pure(DisableMouseMsg())


# ---------------------------------------------------------------------------
# Printing and scroll regions
# ---------------------------------------------------------------------------


def println(*items: Any) -> Command:
    """Print a line above the program output. No-op in the alt screen."""
    return Command.pure(PrintLineMsg(" ".join(str(item) for item in items)))


def printf(fmt: str, *args: Any) -> Command:
    return Command.pure(PrintFormattedMsg(fmt % args if args else fmt))


def sync_scroll_area(lines: Iterable[str], top: int, bottom: int) -> Command:
    return Command.pure(SyncScrollAreaMsg(tuple(lines), top, bottom))


def scroll_up(lines: Iterable[str], top: int, bottom: int) -> Command:
    return Command.pure(ScrollUpMsg(tuple(lines), top, bottom))


def scroll_down(lines: Iterable[str], top: int, bottom: int) -> Command:
    return Command.pure(ScrollDownMsg(tuple(lines), top, bottom))


def clear_scroll_area() -> Command:
    return Command.pure(ClearScrollAreaMsg())


# ---------------------------------------------------------------------------
# Exec
# ---------------------------------------------------------------------------


def exec_command(command: ExecCommand, callback: ExecCallback | None = None) -> Command:
    """Suspend the program, run *command* in the foreground, then resume.

    *callback* receives the error (or ``None``) and returns the message to
    deliver; without one an ``ExecFinishedMsg`` is sent.
    """
    return Command.pure(ExecMsg(command, callback))


def exec_process(
    args: list[str],
    callback: ExecCallback | None = None,
    **popen_kwargs: Any,
) -> Command:
    """Run an external program (e.g. ``$EDITOR``) with the terminal handed over."""
    return exec_command(ProcessExecCommand(args, **popen_kwargs), callback)
