"""The program runtime: owns the model and drives the update/view cycle.

A :class:`Program` reads terminal input, turns it into messages, passes each
message to ``Model.update`` in arrival order, runs the returned commands
concurrently and hands every new view to the renderer. ::

    class Counter:
        def __init__(self, n: int = 0) -> None:
            self.n = n

        def init(self) -> Command | None:
            return None

        def update(self, msg: Msg) -> tuple[Counter, Command | None]:
            if isinstance(msg, KeyMsg) and str(msg) == "q":
                return self, Command.quit()
            if isinstance(msg, KeyMsg) and str(msg) == "+":
                return Counter(self.n + 1), None
            return self, None

        def view(self) -> str:
            return f"count: {self.n}"

    final = asyncio.run(Program(Counter()).run())

Only the program's own loop task ever touches the model, the renderer or
the decoder. Everything else (input, signals, commands, other threads via
:meth:`Program.send`) communicates by putting messages on the queue.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
import threading
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any, BinaryIO, Protocol, TextIO

from pi.tea.commands import Command
from pi.tea.decoder import InputDecoder
from pi.tea.errors import (
    AlreadyRunningError,
    ProgramError,
    ProgramInterruptedError,
    ProgramKilledError,
    ProgramPanicError,
    ProgramTerminalError,
    TerminalError,
)
from pi.tea.messages import (
    BatchMsg,
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
    ExecFinishedMsg,
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
    ResumeMsg,
    ScrollDownMsg,
    ScrollUpMsg,
    SequenceMsg,
    SetWindowTitleMsg,
    ShowCursorMsg,
    SuspendMsg,
    SyncScrollAreaMsg,
    WindowSizeMsg,
)
from pi.tea.mouse import MouseMode
from pi.tea.renderer import NilRenderer, Renderer, StandardRenderer
from pi.tea.signals import Signal, SignalDispatcher, get_dispatcher
from pi.tea.terminal import (
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    ProcessTerminal,
    Terminal,
    TerminalState,
)

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class Model(Protocol):
    """Application state plus its three Elm-architecture hooks."""

    def init(self) -> Command | None: ...

    def update(self, msg: Msg) -> tuple[Model, Command | None]: ...

    def view(self) -> str: ...


MessageFilter = Callable[[Model, Msg], Msg | None]


@dataclass(frozen=True)
class ProgramOptions:
    """Settings read once when the program starts.

    ``input`` is a binary stream (stdin or ``/dev/tty`` by default) and
    ``output`` a text stream (stdout by default). ``context`` is an event
    that, once set, kills the program. ``on_command_error`` turns an
    exception raised by a command into a message; without it failures are
    only logged.
    """

    alt_screen: bool = False
    mouse_mode: MouseMode = MouseMode.DISABLED
    fps: int = 60
    bracketed_paste: bool = True
    report_focus: bool = False
    window_title: str | None = None
    catch_panics: bool = True
    handle_signals: bool = True
    filter: MessageFilter | None = None
    input: BinaryIO | None = None
    output: TextIO | None = None
    disable_input: bool = False
    disable_renderer: bool = False
    context: asyncio.Event | None = None
    shutdown_timeout: float = 0.5
    on_command_error: Callable[[BaseException], Msg | None] | None = None
    on_finish: Callable[[Model], None] | None = None


@dataclass(frozen=True)
class _Modes:
    """Terminal modes active before the terminal was released."""

    alt_screen: bool
    mouse_mode: MouseMode
    bracketed_paste: bool
    report_focus: bool


def suspend_process() -> None:
    """Stop this process as job control would; returns once continued."""
    os.kill(os.getpid(), signal.SIGSTOP)


# ---------------------------------------------------------------------------
# Program
# ---------------------------------------------------------------------------


class Program:
    """Runs a :class:`Model` against a terminal.

    The terminal, renderer and signal dispatcher default to the real ones and
    can be replaced, which is how the tests drive a program headlessly.
    """

    def __init__(
        self,
        model: Model,
        options: ProgramOptions | None = None,
        *,
        terminal: Terminal | None = None,
        renderer: Renderer | None = None,
        dispatcher: SignalDispatcher | None = None,
    ) -> None:
        self.options = options or ProgramOptions()
        self._model = model

        self._owns_terminal = terminal is None
        if terminal is None:
            terminal = ProcessTerminal(self.options.input, self.options.output)
        self._terminal = terminal

        if renderer is None:
            if self.options.disable_renderer:
                renderer = NilRenderer()
            else:
                renderer = StandardRenderer(self.options.output, self.options.fps)
        self._renderer = renderer

        self._dispatcher = dispatcher if dispatcher is not None else get_dispatcher()
        self._decoder = InputDecoder()

        self._send_lock = threading.Lock()
        self._pending: list[Msg] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[Msg] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

        self._started = False
        self._finished = False
        self._shut_down = False
        self._kill_requested = False
        self._kill_event = asyncio.Event()
        self._finished_event = asyncio.Event()

        self._interactive = False
        self._saved_state: TerminalState | None = None
        self._signals_installed = False
        self._ignore_signals = False
        self._resume_pending = False
        self._released_modes: _Modes | None = None

        self._reader_fd: int | None = None
        self._reader_thread: threading.Thread | None = None
        self._held_input: list[bytes] = []
        self._reading = False

    # -- public API ---------------------------------------------------------

    @property
    def model(self) -> Model:
        return self._model

    @property
    def renderer(self) -> Renderer:
        return self._renderer

    @property
    def finished(self) -> bool:
        return self._finished

    def send(self, msg: Msg) -> None:
        """Queue *msg* for the program. Safe to call from any thread.

        Messages sent before :meth:`run` are delivered, in order, once it
        starts; messages sent after the program finished are dropped.
        """
        with self._send_lock:
            if self._finished:
                return
            if self._loop is None or self._queue is None:
                self._pending.append(msg)
                return
            loop, queue = self._loop, self._queue
        if _on_loop(loop):
            queue.put_nowait(msg)
        elif not loop.is_closed():
            loop.call_soon_threadsafe(queue.put_nowait, msg)

    def quit(self) -> None:
        self.send(QuitMsg())

    def kill(self) -> None:
        """Stop immediately; :meth:`run` raises :class:`ProgramKilledError`."""
        with self._send_lock:
            self._kill_requested = True
            loop = self._loop
        if loop is None:
            return
        if _on_loop(loop):
            self._kill_event.set()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(self._kill_event.set)

    async def wait(self) -> None:
        """Wait until the program has finished and cleaned up."""
        await self._finished_event.wait()

    def println(self, *items: Any) -> None:
        self.send(PrintLineMsg(" ".join(str(item) for item in items)))

    def printf(self, fmt: str, *args: Any) -> None:
        self.send(PrintFormattedMsg(fmt % args if args else fmt))

    # -- run ----------------------------------------------------------------

    async def run(self) -> Model:
        """Run until the program quits and return the final model.

        Raises :class:`ProgramKilledError`, :class:`ProgramInterruptedError`,
        :class:`ProgramPanicError` or :class:`ProgramTerminalError` otherwise.
        The terminal is restored before any of them propagates.
        """
        if self._started:
            raise AlreadyRunningError()
        self._started = True

        loop = asyncio.get_running_loop()
        with self._send_lock:
            self._loop = loop
            self._queue = asyncio.Queue()
            if self._kill_requested:
                self._kill_event.set()

        failed = True
        try:
            try:
                self._setup()
            except TerminalError as exc:
                raise ProgramTerminalError(str(exc)) from exc
            model = await self._wait_for_exit()
            failed = False
            return model
        except (ProgramError, asyncio.CancelledError):
            raise
        except Exception as exc:
            if not self.options.catch_panics:
                raise
            logger.exception("program panicked")
            raise ProgramPanicError(f"{type(exc).__name__}: {exc}") from exc
        finally:
            await self._shutdown(killed=failed)

    def _setup(self) -> None:
        opts = self.options
        renderer = self._renderer

        self._interactive = not opts.disable_input and self._terminal.is_tty()
        if self._interactive:
            self._saved_state = self._terminal.get_state()
            self._terminal.enter_raw_mode()

        renderer.start()
        self._apply_modes(
            _Modes(
                alt_screen=opts.alt_screen,
                mouse_mode=opts.mouse_mode,
                bracketed_paste=opts.bracketed_paste,
                report_focus=opts.report_focus,
            )
        )
        if opts.window_title is not None:
            renderer.set_window_title(opts.window_title)
        renderer.hide_cursor()
        renderer.clear_screen()

        if opts.handle_signals:
            self._dispatcher.subscribe(self._on_signal, self._loop)
            self._signals_installed = True

        self._start_reader()

        assert self._queue is not None
        self._queue.put_nowait(self._query_window_size())
        with self._send_lock:
            for msg in self._pending:
                self._queue.put_nowait(msg)
            self._pending.clear()

        self._schedule(self._model.init())
        renderer.write(self._model.view())

    async def _wait_for_exit(self) -> Model:
        loop_task = asyncio.ensure_future(self._event_loop())
        kill_task = asyncio.ensure_future(self._kill_event.wait())
        waiters: set[asyncio.Future[Any]] = {loop_task, kill_task}
        context_task = None
        if self.options.context is not None:
            context_task = asyncio.ensure_future(self.options.context.wait())
            waiters.add(context_task)

        try:
            done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                if waiter is not loop_task and not waiter.done():
                    waiter.cancel()
            if not loop_task.done():
                loop_task.cancel()

        if loop_task in done:
            return loop_task.result()

        # Let the cancelled loop unwind before tearing the terminal down.
        await asyncio.wait({loop_task})
        if context_task is not None and context_task in done:
            raise ProgramKilledError("context cancelled", context_cancelled=True)
        raise ProgramKilledError()

    # -- event loop ---------------------------------------------------------

    async def _event_loop(self) -> Model:
        assert self._queue is not None
        queue = self._queue
        msg_filter = self.options.filter

        while True:
            msg = await queue.get()

            if msg_filter is not None:
                msg = msg_filter(self._model, msg)
                if msg is None:
                    continue

            if isinstance(msg, QuitMsg):
                return self._model
            if isinstance(msg, InterruptMsg):
                raise ProgramInterruptedError()
            if isinstance(msg, ExecMsg):
                await self._exec(msg)
                continue
            if isinstance(msg, SuspendMsg):
                self._suspend()
                continue
            if self._handle_system_message(msg):
                continue

            if isinstance(msg, WindowSizeMsg):
                self._renderer.set_size(msg.width, msg.height)

            self._model, command = self._model.update(msg)
            self._schedule(command)
            self._renderer.write(self._model.view())

    def _handle_system_message(self, msg: Msg) -> bool:
        """Apply runtime-level messages; return False for anything else."""
        renderer = self._renderer

        if isinstance(msg, SetWindowTitleMsg):
            renderer.set_window_title(msg.title)
        elif isinstance(msg, ClearScreenMsg):
            renderer.clear_screen()
        elif isinstance(msg, EnterAltScreenMsg):
            renderer.enter_alt_screen()
        elif isinstance(msg, ExitAltScreenMsg):
            renderer.exit_alt_screen()
        elif isinstance(msg, ShowCursorMsg):
            renderer.show_cursor()
        elif isinstance(msg, HideCursorMsg):
            renderer.hide_cursor()
        elif isinstance(msg, EnableReportFocusMsg):
            renderer.enable_report_focus()
        elif isinstance(msg, DisableReportFocusMsg):
            renderer.disable_report_focus()
        elif isinstance(msg, EnableBracketedPasteMsg):
            renderer.enable_bracketed_paste()
        elif isinstance(msg, DisableBracketedPasteMsg):
            renderer.disable_bracketed_paste()
        elif isinstance(msg, EnableMouseCellMotionMsg):
            renderer.enable_mouse_cell_motion()
        elif isinstance(msg, EnableMouseAllMotionMsg):
            renderer.enable_mouse_all_motion()
        elif isinstance(msg, DisableMouseMsg):
            renderer.disable_mouse()
        elif isinstance(msg, (PrintLineMsg, PrintFormattedMsg)):
            renderer.queue_message_line(msg.text)
        elif isinstance(msg, BatchMsg):
            self._schedule(Command.batch(*msg.commands))
        elif isinstance(msg, SequenceMsg):
            self._schedule(Command.sequence(*msg.commands))
        elif isinstance(msg, RepaintMsg):
            renderer.reset_lines_rendered()
            renderer.write(self._model.view())
            renderer.repaint()
        elif isinstance(msg, SyncScrollAreaMsg):
            renderer.sync_scroll_area(msg.lines, msg.top, msg.bottom)
        elif isinstance(msg, ScrollUpMsg):
            renderer.scroll_up(msg.lines, msg.top, msg.bottom)
        elif isinstance(msg, ScrollDownMsg):
            renderer.scroll_down(msg.lines, msg.top, msg.bottom)
        elif isinstance(msg, ClearScrollAreaMsg):
            renderer.clear_scroll_area()
        elif isinstance(msg, RequestWindowSizeMsg):
            self._deliver(self._query_window_size())
        else:
            return False
        return True

    # -- commands -----------------------------------------------------------

    def _schedule(self, command: Command | None) -> None:
        if command is None:
            return
        if command.kind == "pure":
            self._deliver(command.message)
        elif command.kind == "quit":
            self._deliver(QuitMsg())
        else:
            self._spawn(self._run_command(command))

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        assert self._loop is not None
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_command(self, command: Command) -> bool:
        """Run *command*, delivering its results; True if anything was delivered."""
        kind = command.kind
        if kind == "pure":
            return self._deliver(command.message)
        if kind == "quit":
            return self._deliver(QuitMsg())
        if kind == "batch":
            results = await asyncio.gather(*(self._run_command(c) for c in command.commands))
            return any(results)
        if kind == "sequence":
            for member in command.commands:
                if await self._run_command(member):
                    return True
            return False

        try:
            msg = await command.call()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            return self._command_failed(exc)
        return self._deliver(msg)

    def _command_failed(self, exc: Exception) -> bool:
        logger.error("command failed: %s", exc, exc_info=exc)
        handler = self.options.on_command_error
        if handler is None:
            return False
        return self._deliver(handler(exc))

    def _deliver(self, msg: Msg | None) -> bool:
        if msg is None:
            return False
        if self._finished or self._queue is None:
            return True
        self._queue.put_nowait(msg)
        return True

    # -- input --------------------------------------------------------------

    def _start_reader(self) -> None:
        if self.options.disable_input or self._reading:
            return
        assert self._loop is not None
        try:
            fd = self._terminal.fileno()
        except (AttributeError, ValueError, OSError):
            fd = None

        if fd is not None:
            try:
                self._loop.add_reader(fd, self._on_input_ready, fd)
            except (OSError, ValueError, NotImplementedError):
                logger.debug("fd %d is not selectable; reading in a thread", fd)
                self._start_reader_thread(lambda: os.read(fd, READ_CHUNK_SIZE))
                return
            self._reader_fd = fd
            self._reading = True
            return

        stream = self.options.input
        if stream is None:
            logger.debug("no readable input")
            return
        read = getattr(stream, "read1", stream.read)
        self._start_reader_thread(lambda: read(READ_CHUNK_SIZE))

    def _start_reader_thread(self, read: Callable[[], bytes]) -> None:
        loop = self._loop
        assert loop is not None
        self._reading = True

        held, self._held_input = self._held_input, []
        for data in held:
            self._on_input(data)
        if not self._reading:
            return  # EOF arrived while released

        # A blocked read cannot be interrupted, so one thread lives until EOF
        # and pausing only changes where its chunks go.
        if self._reader_thread is not None and self._reader_thread.is_alive():
            return

        def _read_forever() -> None:
            while not self._finished:
                try:
                    data = read()
                except (OSError, ValueError) as exc:
                    logger.warning("input read failed: %s", exc)
                    data = b""
                if loop.is_closed():
                    return
                loop.call_soon_threadsafe(self._on_thread_input, data)
                if not data:
                    return

        self._reader_thread = threading.Thread(target=_read_forever, name="pi-tea-input", daemon=True)
        self._reader_thread.start()

    def _on_thread_input(self, data: bytes) -> None:
        if self._reading:
            self._on_input(data)
        elif not self._finished:
            # Read while the terminal was released; replayed on restore.
            self._held_input.append(data)

    def _stop_reader(self) -> None:
        self._reading = False
        if self._reader_fd is not None and self._loop is not None:
            self._loop.remove_reader(self._reader_fd)
        self._reader_fd = None

    def _on_input_ready(self, fd: int) -> None:
        try:
            data = os.read(fd, READ_CHUNK_SIZE)
        except BlockingIOError:
            return
        except OSError as exc:
            logger.warning("input read failed: %s", exc)
            data = b""
        self._on_input(data)

    def _on_input(self, data: bytes) -> None:
        if not self._reading:
            return
        if data:
            messages = self._decoder.feed(data)
        else:
            self._stop_reader()
            messages = self._decoder.flush()
        for msg in messages:
            self._deliver(msg)

    # -- signals ------------------------------------------------------------

    def _on_signal(self, sig: Signal) -> None:
        if sig is Signal.WINDOW_CHANGE:
            self._deliver(self._query_window_size())
        elif sig is Signal.CONTINUE:
            if self._resume_pending:
                self._resume_pending = False
            else:
                # Stopped by someone else; the screen may have been scribbled on.
                self._renderer.reset_lines_rendered()
                self._renderer.repaint()
            self._deliver(ResumeMsg())
        elif self._ignore_signals:
            return
        elif sig is Signal.INTERRUPT:
            self._deliver(InterruptMsg())
        elif sig is Signal.SUSPEND:
            self._deliver(SuspendMsg())
        elif sig is Signal.TERMINATE:
            self._deliver(QuitMsg())

    def _query_window_size(self) -> WindowSizeMsg:
        try:
            size = self._terminal.get_size()
        except TerminalError:
            return WindowSizeMsg(DEFAULT_WIDTH, DEFAULT_HEIGHT)
        return WindowSizeMsg(size.columns, size.rows)

    # -- terminal hand-over -------------------------------------------------

    def _current_modes(self) -> _Modes:
        r = self._renderer
        return _Modes(
            alt_screen=r.alt_screen,
            mouse_mode=r.mouse_mode,
            bracketed_paste=r.bracketed_paste,
            report_focus=r.report_focus,
        )

    def _apply_modes(self, modes: _Modes) -> None:
        r = self._renderer
        if modes.alt_screen:
            r.enter_alt_screen()
        if modes.mouse_mode == MouseMode.CELL_MOTION:
            r.enable_mouse_cell_motion()
        elif modes.mouse_mode == MouseMode.ALL_MOTION:
            r.enable_mouse_all_motion()
        if modes.bracketed_paste:
            r.enable_bracketed_paste()
        if modes.report_focus:
            r.enable_report_focus()

    def _reset_modes(self) -> None:
        r = self._renderer
        r.show_cursor()
        r.disable_mouse()
        r.disable_bracketed_paste()
        r.disable_report_focus()
        r.exit_alt_screen()

    def release_terminal(self) -> None:
        """Give the terminal back to the user (cooked mode, main screen).

        Input reading and the renderer stop until :meth:`restore_terminal`.
        """
        self._ignore_signals = True
        self._stop_reader()
        self._decoder.reset()
        self._released_modes = self._current_modes()
        self._renderer.stop()
        self._reset_modes()
        if self._interactive and self._saved_state is not None:
            self._terminal.set_state(self._saved_state)

    def restore_terminal(self) -> None:
        """Take the terminal back after :meth:`release_terminal`."""
        self._ignore_signals = False
        if self._interactive:
            self._terminal.enter_raw_mode()
        renderer = self._renderer
        renderer.start()
        if self._released_modes is not None:
            self._apply_modes(self._released_modes)
            self._released_modes = None
        renderer.hide_cursor()
        renderer.clear_screen()
        renderer.reset_lines_rendered()
        renderer.write(self._model.view())
        renderer.repaint()
        self._start_reader()

    async def _exec(self, msg: ExecMsg) -> None:
        command = msg.command
        error: BaseException | None = None
        self.release_terminal()
        try:
            stdin = getattr(self._terminal, "input", None) or sys.stdin
            stdout = getattr(self._terminal, "output", None) or sys.stdout
            for setter, stream in (
                (command.set_stdin, stdin),
                (command.set_stdout, stdout),
                (command.set_stderr, sys.stderr),
            ):
                if _has_fileno(stream):
                    setter(stream)
            assert self._loop is not None
            await self._loop.run_in_executor(None, command.run)
        except Exception as exc:
            error = exc
        finally:
            try:
                self.restore_terminal()
            except TerminalError:
                logger.exception("failed to restore the terminal after exec")

        if msg.callback is not None:
            self._deliver(msg.callback(error))
        else:
            self._deliver(ExecFinishedMsg(error))

    def _suspend(self) -> None:
        self.release_terminal()
        self._resume_pending = self._signals_installed
        try:
            suspend_process()
        finally:
            self.restore_terminal()
        if not self._signals_installed:
            self._deliver(ResumeMsg())

    # -- shutdown -----------------------------------------------------------

    async def _shutdown(self, killed: bool) -> None:
        if self._shut_down:
            return
        self._shut_down = True
        with self._send_lock:
            self._finished = True

        self._stop_reader()
        self._decoder.reset()

        renderer = self._renderer
        if killed:
            renderer.kill()
        else:
            renderer.stop()
        self._reset_modes()

        if self._saved_state is not None:
            try:
                self._terminal.set_state(self._saved_state)
            except TerminalError:
                logger.exception("failed to restore terminal state")
            self._saved_state = None

        if self._signals_installed:
            self._dispatcher.unsubscribe()
            self._signals_installed = False

        pending = {t for t in self._tasks if not t.done()}
        if pending:
            logger.debug("waiting for %d command(s) to finish", len(pending))
            await asyncio.wait(pending, timeout=self.options.shutdown_timeout)

        if self._owns_terminal and isinstance(self._terminal, ProcessTerminal):
            self._terminal.close()

        try:
            if self.options.on_finish is not None:
                self.options.on_finish(self._model)
        finally:
            self._finished_event.set()


def _on_loop(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


def _has_fileno(stream: Any) -> bool:
    try:
        stream.fileno()
    except (AttributeError, ValueError, OSError):
        return False
    return True
