"""PC keyboard: turn scan codes into characters, tracking modifier keys."""

from __future__ import annotations

SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2

CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5

E0ESC = 1 << 6

# Special keycodes.
KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9


def ctrl(ch: str) -> int:
    """Code produced by Control together with ch."""
    return (ord(ch) - ord("@")) & 0xFF


_SHIFTCODE = {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT}
_TOGGLECODE = {0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK}

_EXTENDED = {
    0xC8: KEY_UP,
    0xD0: KEY_DN,
    0xC9: KEY_PGUP,
    0xD1: KEY_PGDN,
    0xCB: KEY_LF,
    0xCD: KEY_RT,
    0x97: KEY_HOME,
    0xCF: KEY_END,
    0xD2: KEY_INS,
    0xD3: KEY_DEL,
}

_KEYPAD = "\0" * 7 + "789-456+1230.\0\0\0\0"


def _table(base: list[int], extra: dict[int, int]) -> tuple[int, ...]:
    table = base + [0] * (256 - len(base))
    for code, value in {**_EXTENDED, **extra}.items():
        table[code] = value
    return tuple(table)


_NORMALMAP = _table(
    [
        ord(ch)
        for ch in "\0\x1b1234567890-=\b\t"
        "qwertyuiop[]\n\0as"
        "dfghjkl;'`\0\\zxcv"
        "bnm,./\0*\0 \0\0\0\0\0\0" + _KEYPAD
    ],
    {0x9C: ord("\n"), 0xB5: ord("/")},
)

_SHIFTMAP = _table(
    [
        ord(ch)
        for ch in "\0\x1b!@#$%^&*()_+\b\t"
        "QWERTYUIOP{}\n\0AS"
        'DFGHJKL:"~\0|ZXCV'
        "BNM<>?\0*\0 \0\0\0\0\0\0" + _KEYPAD
    ],
    {0x9C: ord("\n"), 0xB5: ord("/")},
)


def _ctl_entry(ch: str) -> int:
    if ch == "\0":
        return 0
    if ch == "\r":
        return ord("\r")
    return ctrl(ch)


_CTLMAP = _table(
    [
        _ctl_entry(ch)
        for ch in "\0" * 16
        + "QWERTYUIOP\0\0\r\0AS"
        + "DFGHJKL\0"
        + "\0\0\0\\ZXCV"
        + "BNM\0\0/\0\0"
    ],
    {0x9C: ord("\r"), 0xB5: ctrl("/")},
)

_CHARCODE = (_NORMALMAP, _SHIFTMAP, _CTLMAP, _CTLMAP)


class KeyboardDecoder:
    """Decodes a stream of scan codes, one byte at a time."""

    def __init__(self) -> None:
        self.shift = 0

    def feed(self, scancode: int) -> int:
        """Take one scan code; return the character code it yields, or 0."""
        if not 0 <= scancode <= 0xFF:
            raise ValueError(f"scan code out of range: {scancode}")
        data = scancode
        if data == 0xE0:
            self.shift |= E0ESC
            return 0
        if data & 0x80:
            # Key released.
            if not self.shift & E0ESC:
                data &= 0x7F
            self.shift &= ~(_SHIFTCODE.get(data, 0) | E0ESC)
            return 0
        if self.shift & E0ESC:
            # Last byte was an E0 escape.
            data |= 0x80
            self.shift &= ~E0ESC

        self.shift |= _SHIFTCODE.get(data, 0)
        self.shift ^= _TOGGLECODE.get(data, 0)
        c = _CHARCODE[self.shift & (CTL | SHIFT)][data]
        if self.shift & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c += ord("A") - ord("a")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c