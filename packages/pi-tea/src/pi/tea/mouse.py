"""Mouse events decoded from SGR (1006) mouse reports."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal


class MouseMode(Enum):
    """Which mouse events the terminal is asked to report."""

    DISABLED = "disabled"
    CELL_MOTION = "cell_motion"  # presses, releases and drags
    ALL_MOTION = "all_motion"  # also motion with no button held


class MouseAction(Enum):
    PRESS = "press"
    RELEASE = "release"
    MOTION = "motion"


class MouseButton(Enum):
    NONE = "none"
    LEFT = "left"
    MIDDLE = "middle"
    RIGHT = "right"
    WHEEL_UP = "wheel up"
    WHEEL_DOWN = "wheel down"
    WHEEL_LEFT = "wheel left"
    WHEEL_RIGHT = "wheel right"
    BACKWARD = "backward"
    FORWARD = "forward"


_WHEEL_BUTTONS = (
    MouseButton.WHEEL_UP,
    MouseButton.WHEEL_DOWN,
    MouseButton.WHEEL_LEFT,
    MouseButton.WHEEL_RIGHT,
)

# SGR button code bits
_MOD_SHIFT = 0b0000_0100
_MOD_ALT = 0b0000_1000
_MOD_CTRL = 0b0001_0000
_MOTION = 0b0010_0000
_WHEEL = 0b0100_0000
_EXTRA = 0b1000_0000


@dataclass(frozen=True)
class MouseMsg:
    """A mouse event at 0-based cell coordinates (*x* column, *y* row)."""

    x: int
    y: int
    action: MouseAction
    button: MouseButton = MouseButton.NONE
    shift: bool = False
    alt: bool = False
    ctrl: bool = False
    type: Literal["mouse"] = "mouse"

    @property
    def is_wheel(self) -> bool:
        return self.button in _WHEEL_BUTTONS

    def __str__(self) -> str:
        parts = ""
        if self.ctrl:
            parts += "ctrl+"
        if self.alt:
            parts += "alt+"
        if self.shift:
            parts += "shift+"
        if self.button == MouseButton.NONE:
            if self.action in (MouseAction.MOTION, MouseAction.RELEASE):
                return parts + self.action.value
            return parts + "unknown"
        if self.is_wheel:
            return parts + self.button.value
        return f"{parts}{self.button.value} {self.action.value}"


def parse_sgr_mouse(code: int, column: int, row: int, release: bool) -> MouseMsg:
    """Build a :class:`MouseMsg` from the fields of ``CSI < code ; col ; row M/m``.

    *column* and *row* are the 1-based values from the report.
    """
    shift = bool(code & _MOD_SHIFT)
    alt = bool(code & _MOD_ALT)
    ctrl = bool(code & _MOD_CTRL)
    low = code & 0b11

    if code & _WHEEL:
        button = _WHEEL_BUTTONS[low]
        action = MouseAction.PRESS
    elif code & _EXTRA:
        button = (MouseButton.BACKWARD, MouseButton.FORWARD, MouseButton.NONE, MouseButton.NONE)[low]
        action = MouseAction.RELEASE if release else MouseAction.PRESS
    else:
        button = (MouseButton.LEFT, MouseButton.MIDDLE, MouseButton.RIGHT, MouseButton.NONE)[low]
        if code & _MOTION:
            action = MouseAction.MOTION
        elif release:
            action = MouseAction.RELEASE
        else:
            action = MouseAction.PRESS
        # Button code 3 is "no button" (plain motion in all-motion mode).
        if low == 3 and action == MouseAction.PRESS:
            action = MouseAction.RELEASE

    return MouseMsg(
        x=column - 1,
        y=row - 1,
        action=action,
        button=button,
        shift=shift,
        alt=alt,
        ctrl=ctrl,
    )
