"""Incremental decoder from raw terminal input bytes to messages.

:class:`InputDecoder` is a small state machine (ground, escape, CSI, OSC,
paste) fed with whatever chunks ``os.read`` returns. Sequences may be split
across chunks at any byte; the decoder keeps the partial sequence in a
bounded buffer until the rest arrives.

Nothing is dropped silently: complete CSI sequences the decoder does not
understand become :class:`UnknownCSISequenceMsg`, and anything still
pending when :meth:`InputDecoder.flush` is called becomes
:class:`UnknownSequenceMsg` (or the key it unambiguously is).
"""

from __future__ import annotations

import codecs
import logging
from enum import Enum

from pi.tea.keys import CONTROL_KEYS, KeyMsg, KeyType
from pi.tea.messages import (
    BlurMsg,
    FocusMsg,
    Msg,
    PasteMsg,
    UnknownCSISequenceMsg,
    UnknownSequenceMsg,
)
from pi.tea.mouse import parse_sgr_mouse

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ESC = 0x1B
BEL = 0x07
DEL = 0x7F

BRACKETED_PASTE_START = b"\x1b[200~"
BRACKETED_PASTE_END = b"\x1b[201~"

# Longest CSI / OSC sequence kept before giving up on it.
MAX_SEQUENCE_LENGTH = 256


class ParserState(Enum):
    GROUND = "ground"
    ESCAPE = "escape"
    CSI = "csi"
    OSC = "osc"
    PASTE = "paste"


# ---------------------------------------------------------------------------
# Key tables
# ---------------------------------------------------------------------------

_SS3_KEYS = {
    ord("P"): KeyType.F1,
    ord("Q"): KeyType.F2,
    ord("R"): KeyType.F3,
    ord("S"): KeyType.F4,
    ord("A"): KeyType.UP,
    ord("B"): KeyType.DOWN,
    ord("C"): KeyType.RIGHT,
    ord("D"): KeyType.LEFT,
    ord("H"): KeyType.HOME,
    ord("F"): KeyType.END,
}

_CSI_LETTER_KEYS = {
    "A": KeyType.UP,
    "B": KeyType.DOWN,
    "C": KeyType.RIGHT,
    "D": KeyType.LEFT,
    "H": KeyType.HOME,
    "F": KeyType.END,
    "P": KeyType.F1,
    "Q": KeyType.F2,
    "R": KeyType.F3,
    "S": KeyType.F4,
}

_CSI_TILDE_KEYS = {
    1: KeyType.HOME,
    2: KeyType.INSERT,
    3: KeyType.DELETE,
    4: KeyType.END,
    5: KeyType.PAGE_UP,
    6: KeyType.PAGE_DOWN,
    7: KeyType.HOME,
    8: KeyType.END,
}
# xterm function key numbering skips 16, 22, 27 and 30.
for _code, _key in (
    *((n, KeyType.F1 + n - 11) for n in range(11, 16)),
    *((n, KeyType.F6 + n - 17) for n in range(17, 22)),
    *((n, KeyType.F11 + n - 23) for n in range(23, 27)),
    *((n, KeyType.F15 + n - 28) for n in range(28, 30)),
    *((n, KeyType.F17 + n - 31) for n in range(31, 35)),
):
    _CSI_TILDE_KEYS[_code] = KeyType(_key)

# Modifier parameter m encodes 1 + (shift=1 | alt=2 | ctrl=4).
_MOD_SHIFT = 1
_MOD_ALT = 2
_MOD_CTRL = 4

_MODIFIED_KEYS = {
    (KeyType.UP, _MOD_SHIFT): KeyType.SHIFT_UP,
    (KeyType.DOWN, _MOD_SHIFT): KeyType.SHIFT_DOWN,
    (KeyType.RIGHT, _MOD_SHIFT): KeyType.SHIFT_RIGHT,
    (KeyType.LEFT, _MOD_SHIFT): KeyType.SHIFT_LEFT,
    (KeyType.HOME, _MOD_SHIFT): KeyType.SHIFT_HOME,
    (KeyType.END, _MOD_SHIFT): KeyType.SHIFT_END,
    (KeyType.UP, _MOD_ALT): KeyType.ALT_UP,
    (KeyType.DOWN, _MOD_ALT): KeyType.ALT_DOWN,
    (KeyType.RIGHT, _MOD_ALT): KeyType.ALT_RIGHT,
    (KeyType.LEFT, _MOD_ALT): KeyType.ALT_LEFT,
    (KeyType.UP, _MOD_CTRL): KeyType.CTRL_UP,
    (KeyType.DOWN, _MOD_CTRL): KeyType.CTRL_DOWN,
    (KeyType.RIGHT, _MOD_CTRL): KeyType.CTRL_RIGHT,
    (KeyType.LEFT, _MOD_CTRL): KeyType.CTRL_LEFT,
    (KeyType.HOME, _MOD_CTRL): KeyType.CTRL_HOME,
    (KeyType.END, _MOD_CTRL): KeyType.CTRL_END,
    (KeyType.PAGE_UP, _MOD_CTRL): KeyType.CTRL_PAGE_UP,
    (KeyType.PAGE_DOWN, _MOD_CTRL): KeyType.CTRL_PAGE_DOWN,
    (KeyType.UP, _MOD_CTRL | _MOD_SHIFT): KeyType.CTRL_SHIFT_UP,
    (KeyType.DOWN, _MOD_CTRL | _MOD_SHIFT): KeyType.CTRL_SHIFT_DOWN,
    (KeyType.RIGHT, _MOD_CTRL | _MOD_SHIFT): KeyType.CTRL_SHIFT_RIGHT,
    (KeyType.LEFT, _MOD_CTRL | _MOD_SHIFT): KeyType.CTRL_SHIFT_LEFT,
}


def _modified_key(key: KeyType, modifier: int) -> KeyMsg:
    """Apply an xterm modifier parameter (``1;<modifier>``) to *key*."""
    bits = max(modifier - 1, 0)
    mapped = _MODIFIED_KEYS.get((key, bits))
    if mapped is not None:
        return KeyMsg(mapped)
    return KeyMsg(key, alt=bool(bits & _MOD_ALT))


def _control_key(byte: int, alt: bool = False) -> KeyMsg:
    if byte == DEL:
        return KeyMsg(KeyType.DELETE, alt=alt)
    return KeyMsg(CONTROL_KEYS[byte], alt=alt)


def _is_number(field: str) -> bool:
    # str.isdigit also accepts superscripts such as "\u00b2".
    return field.isascii() and field.isdigit()


def decode_csi(seq: bytes) -> Msg:
    """Decode one complete ``ESC [ ... final`` sequence.

    Returns an :class:`UnknownCSISequenceMsg` for anything unrecognised.
    """
    params = seq[2:-1].decode("latin-1")
    final = chr(seq[-1])

    if params.startswith("<") and final in "Mm":
        fields = params[1:].split(";")
        if len(fields) == 3 and all(_is_number(f) for f in fields):
            code, column, row = (int(f) for f in fields)
            return parse_sgr_mouse(code, column, row, release=final == "m")
        return UnknownCSISequenceMsg(seq)

    if not params and final == "I":
        return FocusMsg()
    if not params and final == "O":
        return BlurMsg()
    if not params and final == "Z":
        return KeyMsg(KeyType.SHIFT_TAB)

    numbers = params.split(";") if params else []
    if not all(_is_number(n) for n in numbers) or len(numbers) > 2:
        return UnknownCSISequenceMsg(seq)
    values = [int(n) for n in numbers]
    modifier = values[1] if len(values) == 2 else 1

    if final in _CSI_LETTER_KEYS:
        if values and values[0] != 1:
            return UnknownCSISequenceMsg(seq)
        return _modified_key(_CSI_LETTER_KEYS[final], modifier)

    if final == "~" and values:
        key = _CSI_TILDE_KEYS.get(values[0])
        if key is not None:
            return _modified_key(key, modifier)

    return UnknownCSISequenceMsg(seq)


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------


class InputDecoder:
    """Turns terminal input bytes into key, mouse, focus and paste messages.

    Feed it chunks with :meth:`feed`; each call returns the messages that
    became complete. The decoder never blocks and never waits for a timeout:
    a lone ESC stays pending until more input arrives or :meth:`flush` is
    called.
    """

    def __init__(self) -> None:
        self._state = ParserState.GROUND
        self._buffer = bytearray()
        self._paste = bytearray()
        self._alt_next = False
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def state(self) -> ParserState:
        return self._state

    @property
    def pending(self) -> bytes:
        """Bytes of the sequence currently being accumulated."""
        if self._state == ParserState.PASTE:
            return BRACKETED_PASTE_START + bytes(self._paste)
        return bytes(self._buffer)

    def reset(self) -> None:
        self._state = ParserState.GROUND
        self._buffer.clear()
        self._paste.clear()
        self._alt_next = False
        self._utf8.reset()

    # -- feeding ------------------------------------------------------------

    def feed(self, data: bytes) -> list[Msg]:
        out: list[Msg] = []
        i = 0
        n = len(data)
        while i < n:
            if self._state == ParserState.PASTE:
                i = self._feed_paste(data, i, out)
                continue
            self._feed_byte(data[i], out)
            i += 1
        return out

    def _feed_byte(self, byte: int, out: list[Msg]) -> None:
        state = self._state
        if state == ParserState.GROUND:
            self._ground(byte, out)
        elif state == ParserState.ESCAPE:
            self._escape(byte, out)
        elif state == ParserState.CSI:
            self._csi(byte, out)
        elif state == ParserState.OSC:
            self._osc(byte, out)

    def _ground(self, byte: int, out: list[Msg]) -> None:
        if byte == ESC or byte < 0x20 or byte == DEL:
            self._flush_utf8(out)
            if byte == ESC:
                self._state = ParserState.ESCAPE
                self._buffer = bytearray((ESC,))
            else:
                out.append(_control_key(byte, alt=self._take_alt()))
            return

        for ch in self._utf8.decode(bytes((byte,))):
            alt = self._take_alt()
            if ch == " ":
                out.append(KeyMsg(KeyType.SPACE, runes=" ", alt=alt))
            else:
                out.append(KeyMsg(KeyType.RUNES, runes=ch, alt=alt))

    def _escape(self, byte: int, out: list[Msg]) -> None:
        if len(self._buffer) == 2:
            # ESC O <x>: SS3 function and cursor keys
            self._state = ParserState.GROUND
            self._buffer.clear()
            key = _SS3_KEYS.get(byte)
            if key is not None:
                out.append(KeyMsg(key))
                return
            out.append(KeyMsg(KeyType.RUNES, runes="O", alt=True))
            self._feed_byte(byte, out)
            return

        if byte == ord("["):
            self._state = ParserState.CSI
            self._buffer.append(byte)
        elif byte == ord("]"):
            self._state = ParserState.OSC
            self._buffer.append(byte)
        elif byte == ord("O"):
            self._buffer.append(byte)
        elif byte == ESC:
            # A second ESC resolves the first as a plain escape key.
            out.append(KeyMsg(KeyType.ESCAPE))
            self._buffer = bytearray((ESC,))
        elif byte < 0x20 or byte == DEL:
            self._state = ParserState.GROUND
            self._buffer.clear()
            out.append(_control_key(byte, alt=True))
        else:
            self._state = ParserState.GROUND
            self._buffer.clear()
            self._alt_next = True
            self._ground(byte, out)

    def _csi(self, byte: int, out: list[Msg]) -> None:
        if byte == ESC:
            # Sequence interrupted by a new one.
            out.append(UnknownCSISequenceMsg(bytes(self._buffer)))
            self._buffer = bytearray((ESC,))
            self._state = ParserState.ESCAPE
            return

        self._buffer.append(byte)
        if 0x40 <= byte <= 0x7E:
            seq = bytes(self._buffer)
            self._buffer.clear()
            if seq == BRACKETED_PASTE_START:
                self._state = ParserState.PASTE
                self._paste.clear()
                return
            self._state = ParserState.GROUND
            out.append(decode_csi(seq))
        elif len(self._buffer) >= MAX_SEQUENCE_LENGTH:
            logger.debug("CSI sequence exceeded %d bytes", MAX_SEQUENCE_LENGTH)
            out.append(UnknownCSISequenceMsg(bytes(self._buffer)))
            self._buffer.clear()
            self._state = ParserState.GROUND

    def _osc(self, byte: int, out: list[Msg]) -> None:
        self._buffer.append(byte)
        terminated = byte == BEL or (byte == ord("\\") and self._buffer[-2] == ESC)
        if terminated:
            self._buffer.clear()
            self._state = ParserState.GROUND
        elif len(self._buffer) >= MAX_SEQUENCE_LENGTH:
            out.append(UnknownSequenceMsg(bytes(self._buffer)))
            self._buffer.clear()
            self._state = ParserState.GROUND

    def _feed_paste(self, data: bytes, start: int, out: list[Msg]) -> int:
        """Consume paste content from *data*; return the index to resume at."""
        # The end marker may straddle the previous chunk.
        overlap = min(len(self._paste), len(BRACKETED_PASTE_END) - 1)
        self._paste += data[start:]
        end = self._paste.find(BRACKETED_PASTE_END, len(self._paste) - (len(data) - start) - overlap)
        if end < 0:
            return len(data)

        tail = len(self._paste) - (end + len(BRACKETED_PASTE_END))
        out.append(PasteMsg(self._paste[:end].decode("utf-8", errors="replace")))
        self._paste.clear()
        self._state = ParserState.GROUND
        return len(data) - tail

    # -- flushing -----------------------------------------------------------

    def flush(self) -> list[Msg]:
        """Resolve whatever is pending, e.g. when the input reaches EOF.

        A lone ESC becomes the escape key, an unterminated paste is delivered
        as a paste, and any other partial sequence becomes an
        :class:`UnknownSequenceMsg`.
        """
        out: list[Msg] = []
        state = self._state
        if state == ParserState.ESCAPE:
            if len(self._buffer) == 2:
                out.append(KeyMsg(KeyType.RUNES, runes="O", alt=True))
            else:
                out.append(KeyMsg(KeyType.ESCAPE))
        elif state == ParserState.PASTE:
            out.append(PasteMsg(self._paste.decode("utf-8", errors="replace")))
        elif state in (ParserState.CSI, ParserState.OSC):
            out.append(UnknownSequenceMsg(bytes(self._buffer)))
        else:
            self._flush_utf8(out)
        self.reset()
        return out

    def _flush_utf8(self, out: list[Msg]) -> None:
        for ch in self._utf8.decode(b"", final=True):
            out.append(KeyMsg(KeyType.RUNES, runes=ch, alt=self._take_alt()))

    def _take_alt(self) -> bool:
        alt = self._alt_next
        self._alt_next = False
        return alt
