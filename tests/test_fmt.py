import pytest

from teachos.fmt import (
    LOWER_DIGITS,
    cprintf_format,
    format_int,
    printf_format,
)
from teachos.layout import Panic


@pytest.mark.parametrize("value", [0, 1, 7, 42, 1000, 2147483647, -1, -99, -2147483648])
def test_format_int_decimal_round_trip(value):
    assert int(format_int(value, 10, True), 10) == value


@pytest.mark.parametrize("value", [0, 15, 255, 4096, 0x7FFFFFFF, 0xFFFFFFFF])
def test_format_int_hex_round_trip(value):
    assert int(format_int(value, 16, False), 16) == value


def test_format_int_unsigned_wraps_negative():
    assert format_int(-1, 16, False) == "FFFFFFFF"


def test_format_int_lower_digits():
    text = format_int(0xABC, 16, False, LOWER_DIGITS)
    assert text == text.lower()
    assert int(text, 16) == 0xABC


def test_format_int_bad_base():
    with pytest.raises(ValueError):
        format_int(5, 1)


def test_printf_strings_and_null():
    assert printf_format("%s and %s", "a", None) == "a and (null)"


def test_printf_percent_and_unknown():
    assert printf_format("100%%") == "100%"
    assert printf_format("%q") == "%q"


def test_printf_hex_is_upper_cprintf_lower():
    assert printf_format("%x", 255) == "FF"
    assert cprintf_format("%x", 255) == "ff"


def test_printf_decimal_negative():
    assert printf_format("n=%d", -5) == "n=-5"


def test_printf_char():
    assert printf_format("%c%c", ord("o"), "k") == "ok"


def test_cprintf_has_no_char_conversion():
    assert cprintf_format("%c") == "%c"


def test_trailing_percent_is_dropped():
    assert printf_format("abc%") == "abc"
    assert cprintf_format("abc%") == "abc"


def test_missing_argument():
    with pytest.raises(TypeError):
        printf_format("%d")


def test_cprintf_null_format():
    with pytest.raises(Panic):
        cprintf_format(None)