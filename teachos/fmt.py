"""printf-style formatting with the few conversions the system understands."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from .layout import Panic

UPPER_DIGITS = "0123456789ABCDEF"
LOWER_DIGITS = "0123456789abcdef"

_MASK = 0xFFFFFFFF
_SIGN = 0x80000000


def format_int(
    value: int, base: int, signed: bool = True, digits: str = UPPER_DIGITS
) -> str:
    """Render value as a 32-bit integer in the given base."""
    if not 2 <= base <= len(digits):
        raise ValueError(f"unsupported base {base}")
    x = value & _MASK
    negative = signed and x & _SIGN
    if negative:
        x = -x & _MASK
    out = []
    while True:
        out.append(digits[x % base])
        x //= base
        if x == 0:
            break
    if negative:
        out.append("-")
    return "".join(reversed(out))


def _next_arg(args: Iterator[Any]) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _render(fmt: str, args: tuple[Any, ...], digits: str, with_char: bool) -> str:
    out: list[str] = []
    values = iter(args)
    chars = iter(fmt)
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        spec = next(chars, None)
        if spec is None:
            break
        if spec == "d":
            out.append(format_int(_next_arg(values), 10, True, digits))
        elif spec in "xp":
            out.append(format_int(_next_arg(values), 16, False, digits))
        elif spec == "s":
            s = _next_arg(values)
            out.append("(null)" if s is None else str(s))
        elif spec == "c" and with_char:
            ch = _next_arg(values)
            out.append(chr(ch & 0xFF) if isinstance(ch, int) else str(ch)[:1])
        elif spec == "%":
            out.append("%")
        else:
            # Unknown sequences are printed as-is to draw attention.
            out.append("%" + spec)
    return "".join(out)


def printf_format(fmt: str, *args: Any) -> str:
    """Format as user programs do: %d %x %p %s %c %%, upper-case hex."""
    return _render(fmt, args, UPPER_DIGITS, with_char=True)


def cprintf_format(fmt: str, *args: Any) -> str:
    """Format as the kernel console does: %d %x %p %s %%, lower-case hex."""
    if fmt is None:
        raise Panic("null fmt")
    return _render(fmt, args, LOWER_DIGITS, with_char=False)