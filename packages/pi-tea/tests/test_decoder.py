"""Tests for pi.tea.decoder -- bytes to key, mouse, focus and paste messages."""

from __future__ import annotations

import pytest

from pi.tea.decoder import MAX_SEQUENCE_LENGTH, InputDecoder, ParserState, decode_csi
from pi.tea.keys import KeyMsg, KeyType
from pi.tea.messages import (
    BlurMsg,
    FocusMsg,
    PasteMsg,
    UnknownCSISequenceMsg,
    UnknownSequenceMsg,
)
from pi.tea.mouse import MouseAction, MouseButton, MouseMsg


def decode(data: bytes) -> list:
    return InputDecoder().feed(data)


# ---------------------------------------------------------------------------
# Ground state: characters and control bytes
# ---------------------------------------------------------------------------


class TestGround:
    def test_printable_ascii(self) -> None:
        assert decode(b"ab") == [KeyMsg.char("a"), KeyMsg.char("b")]

    def test_space_is_its_own_key(self) -> None:
        msgs = decode(b" ")
        assert msgs == [KeyMsg(KeyType.SPACE, runes=" ")]
        assert str(msgs[0]) == "space"

    @pytest.mark.parametrize(
        ("byte", "key_type"),
        [
            (b"\x00", KeyType.NULL),
            (b"\x01", KeyType.CTRL_A),
            (b"\x03", KeyType.CTRL_C),
            (b"\x08", KeyType.BACKSPACE),
            (b"\x09", KeyType.TAB),
            (b"\x0a", KeyType.ENTER),
            (b"\x0d", KeyType.ENTER),
            (b"\x1a", KeyType.CTRL_Z),
            (b"\x1c", KeyType.CTRL_BACKSLASH),
            (b"\x1f", KeyType.CTRL_UNDERSCORE),
            (b"\x7f", KeyType.DELETE),
        ],
    )
    def test_control_bytes(self, byte: bytes, key_type: KeyType) -> None:
        assert decode(byte) == [KeyMsg(key_type)]

    def test_ctrl_c_name(self) -> None:
        assert str(decode(b"\x03")[0]) == "ctrl+c"

    def test_multibyte_utf8(self) -> None:
        assert decode("日本".encode()) == [KeyMsg.char("日"), KeyMsg.char("本")]

    def test_utf8_split_across_feeds(self) -> None:
        decoder = InputDecoder()
        encoded = "é".encode()
        assert decoder.feed(encoded[:1]) == []
        assert decoder.feed(encoded[1:]) == [KeyMsg.char("é")]

    def test_invalid_utf8_becomes_replacement_character(self) -> None:
        assert decode(b"\xff") == [KeyMsg.char("\ufffd")]


# ---------------------------------------------------------------------------
# Escape state: alt prefix, lone escape, SS3
# ---------------------------------------------------------------------------


class TestEscape:
    def test_alt_letter(self) -> None:
        msgs = decode(b"\x1bx")
        assert msgs == [KeyMsg.char("x", alt=True)]
        assert str(msgs[0]) == "alt+x"

    def test_alt_control_byte(self) -> None:
        assert decode(b"\x1b\x01") == [KeyMsg(KeyType.CTRL_A, alt=True)]

    def test_lone_escape_stays_pending(self) -> None:
        decoder = InputDecoder()
        assert decoder.feed(b"\x1b") == []
        assert decoder.state == ParserState.ESCAPE
        assert decoder.pending == b"\x1b"

    def test_lone_escape_resolved_by_flush(self) -> None:
        decoder = InputDecoder()
        decoder.feed(b"\x1b")
        assert decoder.flush() == [KeyMsg(KeyType.ESCAPE)]
        assert decoder.state == ParserState.GROUND

    def test_double_escape_emits_first(self) -> None:
        decoder = InputDecoder()
        assert decoder.feed(b"\x1b\x1b") == [KeyMsg(KeyType.ESCAPE)]
        assert decoder.state == ParserState.ESCAPE

    @pytest.mark.parametrize(
        ("seq", "key_type"),
        [
            (b"\x1bOP", KeyType.F1),
            (b"\x1bOQ", KeyType.F2),
            (b"\x1bOR", KeyType.F3),
            (b"\x1bOS", KeyType.F4),
            (b"\x1bOA", KeyType.UP),
            (b"\x1bOD", KeyType.LEFT),
            (b"\x1bOH", KeyType.HOME),
            (b"\x1bOF", KeyType.END),
        ],
    )
    def test_ss3_keys(self, seq: bytes, key_type: KeyType) -> None:
        assert decode(seq) == [KeyMsg(key_type)]

    def test_unknown_ss3_is_alt_o_then_byte(self) -> None:
        assert decode(b"\x1bOx") == [KeyMsg.char("O", alt=True), KeyMsg.char("x")]

    def test_pending_ss3_flushes_as_alt_o(self) -> None:
        decoder = InputDecoder()
        decoder.feed(b"\x1bO")
        assert decoder.flush() == [KeyMsg.char("O", alt=True)]


# ---------------------------------------------------------------------------
# CSI sequences
# ---------------------------------------------------------------------------


class TestCSI:
    def test_arrow_up_returns_to_ground(self) -> None:
        decoder = InputDecoder()
        assert decoder.feed(b"\x1b[A") == [KeyMsg(KeyType.UP)]
        assert decoder.state == ParserState.GROUND
        assert decoder.pending == b""

    def test_sequence_split_at_every_byte(self) -> None:
        decoder = InputDecoder()
        out = []
        for b in b"\x1b[1;5C":
            out.extend(decoder.feed(bytes((b,))))
        assert out == [KeyMsg(KeyType.CTRL_RIGHT)]

    @pytest.mark.parametrize(
        ("seq", "key_type"),
        [
            (b"\x1b[B", KeyType.DOWN),
            (b"\x1b[C", KeyType.RIGHT),
            (b"\x1b[D", KeyType.LEFT),
            (b"\x1b[H", KeyType.HOME),
            (b"\x1b[F", KeyType.END),
            (b"\x1b[Z", KeyType.SHIFT_TAB),
            (b"\x1b[1;2A", KeyType.SHIFT_UP),
            (b"\x1b[1;3D", KeyType.ALT_LEFT),
            (b"\x1b[1;5A", KeyType.CTRL_UP),
            (b"\x1b[1;6B", KeyType.CTRL_SHIFT_DOWN),
            (b"\x1b[1;2H", KeyType.SHIFT_HOME),
            (b"\x1b[2~", KeyType.INSERT),
            (b"\x1b[3~", KeyType.DELETE),
            (b"\x1b[5~", KeyType.PAGE_UP),
            (b"\x1b[6~", KeyType.PAGE_DOWN),
            (b"\x1b[5;5~", KeyType.CTRL_PAGE_UP),
            (b"\x1b[11~", KeyType.F1),
            (b"\x1b[15~", KeyType.F5),
            (b"\x1b[17~", KeyType.F6),
            (b"\x1b[21~", KeyType.F10),
            (b"\x1b[23~", KeyType.F11),
            (b"\x1b[24~", KeyType.F12),
        ],
    )
    def test_key_sequences(self, seq: bytes, key_type: KeyType) -> None:
        assert decode(seq) == [KeyMsg(key_type)]

    def test_focus_and_blur(self) -> None:
        assert decode(b"\x1b[I\x1b[O") == [FocusMsg(), BlurMsg()]

    def test_unknown_sequence_is_reported(self) -> None:
        assert decode(b"\x1b[99x") == [UnknownCSISequenceMsg(b"\x1b[99x")]

    def test_unknown_tilde_code_is_reported(self) -> None:
        assert decode(b"\x1b[99~") == [UnknownCSISequenceMsg(b"\x1b[99~")]

    def test_escape_inside_sequence_starts_a_new_one(self) -> None:
        assert decode(b"\x1b[1\x1b[A") == [
            UnknownCSISequenceMsg(b"\x1b[1"),
            KeyMsg(KeyType.UP),
        ]

    def test_overflow_is_reported_and_parser_recovers(self) -> None:
        decoder = InputDecoder()
        msgs = decoder.feed(b"\x1b[" + b"1" * (MAX_SEQUENCE_LENGTH + 10))
        assert isinstance(msgs[0], UnknownCSISequenceMsg)
        assert len(msgs[0].raw) == MAX_SEQUENCE_LENGTH
        assert decoder.state == ParserState.GROUND
        assert decoder.feed(b"\x1b[A") == [KeyMsg(KeyType.UP)]

    def test_incomplete_sequence_flushes_as_unknown(self) -> None:
        decoder = InputDecoder()
        decoder.feed(b"\x1b[1;")
        assert decoder.flush() == [UnknownSequenceMsg(b"\x1b[1;")]

    def test_decode_csi_directly(self) -> None:
        assert decode_csi(b"\x1b[A") == KeyMsg(KeyType.UP)

    def test_non_ascii_digit_parameter_is_unknown(self) -> None:
        # 0xB2 is "\u00b2" in latin-1, which str.isdigit accepts.
        assert decode(b"\x1b[\xb2Ax") == [
            UnknownCSISequenceMsg(b"\x1b[\xb2A"),
            KeyMsg.char("x"),
        ]

    @pytest.mark.parametrize("seq", [b"\x1b[\xb9;5A", b"\x1b[\xb3~", b"\x1b[1;\xb2C"])
    def test_decode_csi_rejects_non_ascii_digits(self, seq: bytes) -> None:
        assert decode_csi(seq) == UnknownCSISequenceMsg(seq)


# ---------------------------------------------------------------------------
# Mouse
# ---------------------------------------------------------------------------


class TestMouse:
    def test_left_press_coordinates_are_zero_based(self) -> None:
        assert decode(b"\x1b[<0;11;21M") == [
            MouseMsg(x=10, y=20, action=MouseAction.PRESS, button=MouseButton.LEFT)
        ]

    def test_release(self) -> None:
        (msg,) = decode(b"\x1b[<2;1;1m")
        assert msg.action == MouseAction.RELEASE
        assert msg.button == MouseButton.RIGHT

    def test_wheel(self) -> None:
        up, down = decode(b"\x1b[<64;5;5M\x1b[<65;5;5M")
        assert up.button == MouseButton.WHEEL_UP
        assert down.button == MouseButton.WHEEL_DOWN
        assert up.is_wheel

    def test_drag_is_motion(self) -> None:
        (msg,) = decode(b"\x1b[<32;3;4M")
        assert msg.action == MouseAction.MOTION
        assert msg.button == MouseButton.LEFT

    def test_modifiers(self) -> None:
        (msg,) = decode(b"\x1b[<20;1;1M")
        assert msg.shift and msg.ctrl and not msg.alt

    def test_malformed_report_is_unknown(self) -> None:
        assert decode(b"\x1b[<0;1M") == [UnknownCSISequenceMsg(b"\x1b[<0;1M")]

    def test_non_ascii_digit_in_report_is_unknown(self) -> None:
        assert decode(b"\x1b[<0;\xb3;1Mx") == [
            UnknownCSISequenceMsg(b"\x1b[<0;\xb3;1M"),
            KeyMsg.char("x"),
        ]


# ---------------------------------------------------------------------------
# Bracketed paste
# ---------------------------------------------------------------------------


class TestPaste:
    def test_single_paste_message(self) -> None:
        assert decode(b"\x1b[200~abc\x1b[201~") == [PasteMsg("abc")]

    def test_paste_content_is_not_interpreted(self) -> None:
        assert decode(b"\x1b[200~a\x03\x1b[A\x1b[201~") == [PasteMsg("a\x03\x1b[A")]

    def test_paste_followed_by_keys(self) -> None:
        assert decode(b"\x1b[200~hi\x1b[201~x") == [PasteMsg("hi"), KeyMsg.char("x")]

    def test_markers_split_across_feeds(self) -> None:
        decoder = InputDecoder()
        out = []
        for chunk in (b"\x1b[20", b"0~ab", b"c\x1b[2", b"01~"):
            out.extend(decoder.feed(chunk))
        assert out == [PasteMsg("abc")]
        assert decoder.state == ParserState.GROUND

    def test_utf8_paste(self) -> None:
        assert decode("\x1b[200~héllo\x1b[201~".encode()) == [PasteMsg("héllo")]

    def test_unterminated_paste_flushes_as_paste(self) -> None:
        decoder = InputDecoder()
        decoder.feed(b"\x1b[200~partial")
        assert decoder.state == ParserState.PASTE
        assert decoder.flush() == [PasteMsg("partial")]


# ---------------------------------------------------------------------------
# OSC and reset
# ---------------------------------------------------------------------------


class TestOSCAndReset:
    def test_osc_terminated_by_bel_is_discarded(self) -> None:
        assert decode(b"\x1b]0;title\x07a") == [KeyMsg.char("a")]

    def test_osc_terminated_by_st_is_discarded(self) -> None:
        assert decode(b"\x1b]11;rgb:0/0/0\x1b\\a") == [KeyMsg.char("a")]

    def test_reset_drops_pending_bytes(self) -> None:
        decoder = InputDecoder()
        decoder.feed(b"\x1b[1;")
        decoder.reset()
        assert decoder.state == ParserState.GROUND
        assert decoder.pending == b""
        assert decoder.flush() == []
