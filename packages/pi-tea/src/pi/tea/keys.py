"""Key types and the ``KeyMsg`` delivered to ``update`` on every key press.

``str(KeyMsg)`` yields a stable name such as ``"ctrl+c"``, ``"alt+x"`` or
``"shift+up"`` which is intended for comparisons in application code::

    match str(msg):
        case "ctrl+c" | "q":
            return self, Command.quit()
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Literal


class KeyType(IntEnum):
    """Identifies the key pressed; ``RUNES`` carries printable text."""

    # C0 control codes keep their byte values.
    NULL = 0
    CTRL_A = 1
    CTRL_B = 2
    CTRL_C = 3
    CTRL_D = 4
    CTRL_E = 5
    CTRL_F = 6
    CTRL_G = 7
    CTRL_H = 8
    CTRL_I = 9
    CTRL_J = 10
    CTRL_K = 11
    CTRL_L = 12
    CTRL_M = 13
    CTRL_N = 14
    CTRL_O = 15
    CTRL_P = 16
    CTRL_Q = 17
    CTRL_R = 18
    CTRL_S = 19
    CTRL_T = 20
    CTRL_U = 21
    CTRL_V = 22
    CTRL_W = 23
    CTRL_X = 24
    CTRL_Y = 25
    CTRL_Z = 26
    CTRL_OPEN_BRACKET = 27
    CTRL_BACKSLASH = 28
    CTRL_CLOSE_BRACKET = 29
    CTRL_CARET = 30
    CTRL_UNDERSCORE = 31
    SPACE = 32
    DELETE = 127

    RUNES = 256

    BACKSPACE = 257
    TAB = 258
    ENTER = 259
    ESCAPE = 260

    UP = 261
    DOWN = 262
    RIGHT = 263
    LEFT = 264
    HOME = 265
    END = 266
    PAGE_UP = 267
    PAGE_DOWN = 268
    INSERT = 269

    F1 = 270
    F2 = 271
    F3 = 272
    F4 = 273
    F5 = 274
    F6 = 275
    F7 = 276
    F8 = 277
    F9 = 278
    F10 = 279
    F11 = 280
    F12 = 281
    F13 = 282
    F14 = 283
    F15 = 284
    F16 = 285
    F17 = 286
    F18 = 287
    F19 = 288
    F20 = 289

    SHIFT_TAB = 290
    SHIFT_UP = 291
    SHIFT_DOWN = 292
    SHIFT_RIGHT = 293
    SHIFT_LEFT = 294
    SHIFT_HOME = 295
    SHIFT_END = 296

    CTRL_UP = 297
    CTRL_DOWN = 298
    CTRL_RIGHT = 299
    CTRL_LEFT = 300
    CTRL_HOME = 301
    CTRL_END = 302
    CTRL_PAGE_UP = 303
    CTRL_PAGE_DOWN = 304

    ALT_UP = 305
    ALT_DOWN = 306
    ALT_RIGHT = 307
    ALT_LEFT = 308

    CTRL_SHIFT_UP = 309
    CTRL_SHIFT_DOWN = 310
    CTRL_SHIFT_RIGHT = 311
    CTRL_SHIFT_LEFT = 312


_CTRL_SYMBOLS = {
    KeyType.NULL: "ctrl+@",
    KeyType.CTRL_OPEN_BRACKET: "ctrl+[",
    KeyType.CTRL_BACKSLASH: "ctrl+\\",
    KeyType.CTRL_CLOSE_BRACKET: "ctrl+]",
    KeyType.CTRL_CARET: "ctrl+^",
    KeyType.CTRL_UNDERSCORE: "ctrl+_",
}

_SPECIAL_NAMES = {
    KeyType.SPACE: "space",
    KeyType.DELETE: "delete",
    KeyType.BACKSPACE: "backspace",
    KeyType.TAB: "tab",
    KeyType.ENTER: "enter",
    KeyType.ESCAPE: "esc",
    KeyType.PAGE_UP: "pgup",
    KeyType.PAGE_DOWN: "pgdown",
    KeyType.CTRL_PAGE_UP: "ctrl+pgup",
    KeyType.CTRL_PAGE_DOWN: "ctrl+pgdown",
}


def key_name(key_type: KeyType) -> str:
    """Return the display name of *key_type* (``""`` for ``RUNES``)."""
    if key_type == KeyType.RUNES:
        return ""
    if key_type in _CTRL_SYMBOLS:
        return _CTRL_SYMBOLS[key_type]
    if key_type in _SPECIAL_NAMES:
        return _SPECIAL_NAMES[key_type]
    if KeyType.CTRL_A <= key_type <= KeyType.CTRL_Z:
        return "ctrl+" + chr(ord("a") + key_type - KeyType.CTRL_A)
    # SHIFT_UP -> "shift+up", CTRL_SHIFT_LEFT -> "ctrl+shift+left"
    return key_type.name.lower().replace("_", "+")


# Control byte -> key type. Backspace, tab and enter get their semantic keys.
CONTROL_KEYS: dict[int, KeyType] = {code: KeyType(code) for code in range(0x20)}
CONTROL_KEYS.update(
    {
        0x08: KeyType.BACKSPACE,
        0x09: KeyType.TAB,
        0x0A: KeyType.ENTER,
        0x0D: KeyType.ENTER,
        0x1B: KeyType.ESCAPE,
    }
)


@dataclass(frozen=True)
class KeyMsg:
    """A key press.

    ``runes`` holds the typed text when ``key_type`` is ``RUNES``.
    ``alt`` is set when the key arrived prefixed with ESC.
    """

    key_type: KeyType
    runes: str = ""
    alt: bool = False
    type: Literal["key"] = "key"

    def __str__(self) -> str:
        prefix = "alt+" if self.alt else ""
        if self.key_type == KeyType.RUNES:
            return prefix + self.runes
        return prefix + key_name(self.key_type)

    @classmethod
    def char(cls, text: str, *, alt: bool = False) -> KeyMsg:
        return cls(KeyType.RUNES, runes=text, alt=alt)
