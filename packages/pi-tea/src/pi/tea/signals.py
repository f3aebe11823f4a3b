"""Process-wide dispatch of terminal-related POSIX signals.

Signal handlers are global to the process, so one :class:`SignalDispatcher`
owns them and forwards each signal to a single subscriber on that
subscriber's event loop. Subscribing again replaces the previous
subscriber; unsubscribing reinstalls whatever handlers were there before.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import threading
from collections.abc import Callable
from enum import Enum
from types import FrameType
from typing import Any

logger = logging.getLogger(__name__)


class Signal(Enum):
    INTERRUPT = "interrupt"
    SUSPEND = "suspend"
    CONTINUE = "continue"
    WINDOW_CHANGE = "window_change"
    TERMINATE = "terminate"


_OS_SIGNALS: dict[Signal, str] = {
    Signal.INTERRUPT: "SIGINT",
    Signal.SUSPEND: "SIGTSTP",
    Signal.CONTINUE: "SIGCONT",
    Signal.WINDOW_CHANGE: "SIGWINCH",
    Signal.TERMINATE: "SIGTERM",
}

SignalHandler = Callable[[Signal], None]


class SignalDispatcher:
    """Routes INT/TSTP/CONT/WINCH/TERM to the current subscriber."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._handler: SignalHandler | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous: dict[int, Any] = {}

    @property
    def active(self) -> bool:
        return self._handler is not None

    def subscribe(
        self,
        handler: SignalHandler,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Deliver signals to *handler*, called on *loop*.

        Must be called from the main thread; installing handlers elsewhere is
        not possible and only logs a warning.
        """
        with self._lock:
            self._handler = handler
            self._loop = loop or asyncio.get_running_loop()
            if self._previous:
                return
            for sig in _OS_SIGNALS.values():
                signum = getattr(signal, sig, None)
                if signum is None:
                    continue
                try:
                    self._previous[signum] = signal.signal(signum, self._on_signal)
                except ValueError:
                    logger.warning("cannot install %s handler outside the main thread", sig)
                    break

    def unsubscribe(self) -> None:
        with self._lock:
            self._handler = None
            self._loop = None
            previous, self._previous = self._previous, {}
        for signum, handler in previous.items():
            try:
                signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
            except ValueError:
                logger.warning("cannot restore handler for signal %d", signum)

    def dispatch(self, event: Signal) -> None:
        """Forward *event* to the subscriber as if the OS had delivered it."""
        with self._lock:
            handler, loop = self._handler, self._loop
        if handler is None or loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(handler, event)

    def _on_signal(self, signum: int, frame: FrameType | None) -> None:
        for event, name in _OS_SIGNALS.items():
            if getattr(signal, name, None) == signum:
                self.dispatch(event)
                return


_dispatcher = SignalDispatcher()


def get_dispatcher() -> SignalDispatcher:
    """Return the process-wide dispatcher."""
    return _dispatcher
