import pytest

from teachos.kbd import (
    CAPSLOCK,
    CTL,
    KEY_DEL,
    KEY_UP,
    SHIFT,
    KeyboardDecoder,
    ctrl,
)

A_KEY = 0x1E
LSHIFT = 0x2A
LCTRL = 0x1D
CAPS = 0x3A
ENTER = 0x1C


def test_plain_letter():
    kbd = KeyboardDecoder()
    assert kbd.feed(A_KEY) == ord("a")


def test_key_release_yields_nothing():
    kbd = KeyboardDecoder()
    assert kbd.feed(A_KEY | 0x80) == 0


def test_shift_held_and_released():
    kbd = KeyboardDecoder()
    assert kbd.feed(LSHIFT) == 0
    assert kbd.shift & SHIFT
    assert kbd.feed(A_KEY) == ord("A")
    assert kbd.feed(LSHIFT | 0x80) == 0
    assert not kbd.shift & SHIFT
    assert kbd.feed(A_KEY) == ord("a")


def test_shifted_digit_row():
    kbd = KeyboardDecoder()
    kbd.feed(LSHIFT)
    assert kbd.feed(0x02) == ord("!")


def test_capslock_toggles_and_inverts_with_shift():
    kbd = KeyboardDecoder()
    kbd.feed(CAPS)
    assert kbd.shift & CAPSLOCK
    assert kbd.feed(A_KEY) == ord("A")
    kbd.feed(LSHIFT)
    assert kbd.feed(A_KEY) == ord("a")
    kbd.feed(LSHIFT | 0x80)
    kbd.feed(CAPS | 0x80)
    kbd.feed(CAPS)
    assert not kbd.shift & CAPSLOCK
    assert kbd.feed(A_KEY) == ord("a")


def test_control_letter():
    kbd = KeyboardDecoder()
    kbd.feed(LCTRL)
    assert kbd.shift & CTL
    assert kbd.feed(A_KEY) == ctrl("A")


def test_enter_normal_and_with_control():
    kbd = KeyboardDecoder()
    assert kbd.feed(ENTER) == ord("\n")
    kbd.feed(LCTRL)
    assert kbd.feed(ENTER) == ord("\r")


def test_escaped_arrow_key():
    kbd = KeyboardDecoder()
    assert kbd.feed(0xE0) == 0
    assert kbd.feed(0x48) == KEY_UP
    assert kbd.feed(0xE0) == 0
    assert kbd.feed(0xC8) == 0
    assert kbd.feed(0xE0) == 0
    assert kbd.feed(0x53) == KEY_DEL


def test_escaped_right_control_acts_as_control():
    kbd = KeyboardDecoder()
    kbd.feed(0xE0)
    kbd.feed(LCTRL)
    assert kbd.feed(A_KEY) == ctrl("A")
    kbd.feed(0xE0)
    kbd.feed(LCTRL | 0x80)
    assert kbd.feed(A_KEY) == ord("a")


def test_out_of_range_scancode():
    with pytest.raises(ValueError):
        KeyboardDecoder().feed(256)