"""Tests for key names and SGR mouse parsing."""

from __future__ import annotations

import pytest

from pi.tea.keys import CONTROL_KEYS, KeyMsg, KeyType, key_name
from pi.tea.mouse import MouseAction, MouseButton, MouseMsg, parse_sgr_mouse


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class TestKeyNames:
    @pytest.mark.parametrize(
        ("key_type", "name"),
        [
            (KeyType.CTRL_C, "ctrl+c"),
            (KeyType.CTRL_Z, "ctrl+z"),
            (KeyType.NULL, "ctrl+@"),
            (KeyType.CTRL_BACKSLASH, "ctrl+\\"),
            (KeyType.ENTER, "enter"),
            (KeyType.ESCAPE, "esc"),
            (KeyType.TAB, "tab"),
            (KeyType.SPACE, "space"),
            (KeyType.PAGE_UP, "pgup"),
            (KeyType.F1, "f1"),
            (KeyType.F12, "f12"),
            (KeyType.SHIFT_UP, "shift+up"),
            (KeyType.CTRL_SHIFT_LEFT, "ctrl+shift+left"),
            (KeyType.SHIFT_TAB, "shift+tab"),
            (KeyType.RUNES, ""),
        ],
    )
    def test_key_name(self, key_type, name) -> None:
        assert key_name(key_type) == name

    def test_runes_str(self) -> None:
        assert str(KeyMsg.char("q")) == "q"
        assert str(KeyMsg.char("x", alt=True)) == "alt+x"

    def test_alt_prefixes_named_keys(self) -> None:
        assert str(KeyMsg(KeyType.ENTER, alt=True)) == "alt+enter"

    def test_messages_compare_by_value(self) -> None:
        assert KeyMsg.char("a") == KeyMsg(KeyType.RUNES, runes="a")
        assert KeyMsg.char("a").type == "key"

    def test_control_bytes(self) -> None:
        assert CONTROL_KEYS[0x03] == KeyType.CTRL_C
        assert CONTROL_KEYS[0x0D] == KeyType.ENTER
        assert CONTROL_KEYS[0x0A] == KeyType.ENTER
        assert CONTROL_KEYS[0x09] == KeyType.TAB
        assert CONTROL_KEYS[0x1B] == KeyType.ESCAPE
        assert CONTROL_KEYS[0x00] == KeyType.NULL


# ---------------------------------------------------------------------------
# Mouse
# ---------------------------------------------------------------------------


class TestParseSgrMouse:
    def test_left_press_is_zero_based(self) -> None:
        msg = parse_sgr_mouse(0, 10, 5, release=False)
        assert (msg.x, msg.y) == (9, 4)
        assert msg.button == MouseButton.LEFT
        assert msg.action == MouseAction.PRESS
        assert str(msg) == "left press"

    def test_release(self) -> None:
        msg = parse_sgr_mouse(2, 1, 1, release=True)
        assert msg.button == MouseButton.RIGHT
        assert str(msg) == "right release"

    def test_wheel(self) -> None:
        msg = parse_sgr_mouse(64, 1, 1, release=False)
        assert msg.is_wheel
        assert str(msg) == "wheel up"
        assert str(parse_sgr_mouse(65, 1, 1, release=False)) == "wheel down"

    def test_modifiers(self) -> None:
        msg = parse_sgr_mouse(16, 3, 3, release=False)
        assert msg.ctrl
        assert str(msg) == "ctrl+left press"
        assert str(parse_sgr_mouse(4 | 8, 1, 1, release=False)) == "alt+shift+left press"

    def test_drag_with_button(self) -> None:
        msg = parse_sgr_mouse(32, 4, 2, release=False)
        assert msg.action == MouseAction.MOTION
        assert msg.button == MouseButton.LEFT

    def test_motion_without_button(self) -> None:
        msg = parse_sgr_mouse(35, 4, 2, release=False)
        assert msg.button == MouseButton.NONE
        assert str(msg) == "motion"

    def test_extra_buttons(self) -> None:
        assert parse_sgr_mouse(128, 1, 1, release=False).button == MouseButton.BACKWARD
        assert parse_sgr_mouse(129, 1, 1, release=False).button == MouseButton.FORWARD

    def test_message_type(self) -> None:
        msg = MouseMsg(0, 0, MouseAction.PRESS, MouseButton.LEFT)
        assert msg.type == "mouse"
