"""Console: line-edited keyboard input, output to a CGA text screen and a serial line."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

from .layout import Panic

BACKSPACE = 0x100
INPUT_BUF = 128

COLUMNS = 80
ROWS = 25

_ATTR = 0x0700  # black on white


def _ctrl(ch: str) -> int:
    return ord(ch) - ord("@")


class CgaScreen:
    """An 80x25 text screen that scrolls when output reaches its last line."""

    def __init__(self) -> None:
        self.cells = [0] * (COLUMNS * ROWS)
        self.pos = 0

    def putc(self, c: int) -> None:
        pos = self.pos
        if c == ord("\n"):
            pos += COLUMNS - pos % COLUMNS
        elif c == BACKSPACE:
            if pos > 0:
                pos -= 1
        else:
            self.cells[pos] = (c & 0xFF) | _ATTR
            pos += 1

        if pos < 0 or pos > ROWS * COLUMNS:
            raise Panic("pos under/overflow")

        if pos // COLUMNS >= 24:  # Scroll up.
            self.cells[: 23 * COLUMNS] = self.cells[COLUMNS : 24 * COLUMNS]
            pos -= COLUMNS
            self.cells[pos : 24 * COLUMNS] = [0] * (24 * COLUMNS - pos)

        self.pos = pos
        self.cells[pos] = ord(" ") | _ATTR

    def lines(self) -> list[str]:
        """The text of every row, without trailing blanks."""
        rows = []
        for start in range(0, ROWS * COLUMNS, COLUMNS):
            text = "".join(
                chr(cell & 0xFF) if cell & 0xFF else " "
                for cell in self.cells[start : start + COLUMNS]
            )
            rows.append(text.rstrip())
        return rows


class Console:
    """The console device: echoes typed input and hands out whole lines."""

    def __init__(self, procdump: Callable[[], None] | None = None) -> None:
        self.screen = CgaScreen()
        self.serial = bytearray()
        self.procdump = procdump
        self._cond = threading.Condition()
        self._buf = [0] * INPUT_BUF
        self._r = 0  # read index
        self._w = 0  # write index
        self._e = 0  # edit index
        self._killed = False

    def putc(self, c: int) -> None:
        """Write one character to the serial line and the screen."""
        if c == BACKSPACE:
            self.serial += b"\b \b"
        else:
            self.serial.append(c & 0xFF)
        self.screen.putc(c)

    def interrupt(self, chars: Iterable[int] | str) -> None:
        """Handle typed characters: line editing, echo, and waking readers."""
        if isinstance(chars, str):
            chars = [ord(ch) for ch in chars]
        doprocdump = False
        with self._cond:
            for c in chars:
                if c == _ctrl("P"):
                    doprocdump = True
                elif c == _ctrl("U"):
                    while (
                        self._e != self._w
                        and self._buf[(self._e - 1) % INPUT_BUF] != ord("\n")
                    ):
                        self._e -= 1
                        self.putc(BACKSPACE)
                elif c in (_ctrl("H"), 0x7F):
                    if self._e != self._w:
                        self._e -= 1
                        self.putc(BACKSPACE)
                elif c != 0 and self._e - self._r < INPUT_BUF:
                    if c == ord("\r"):
                        c = ord("\n")
                    self._buf[self._e % INPUT_BUF] = c
                    self._e += 1
                    self.putc(c)
                    if (
                        c == ord("\n")
                        or c == _ctrl("D")
                        or self._e == self._r + INPUT_BUF
                    ):
                        self._w = self._e
                        self._cond.notify_all()
        if doprocdump and self.procdump is not None:
            self.procdump()

    def kill_readers(self) -> None:
        """Make reads waiting for input, now or later, fail."""
        with self._cond:
            self._killed = True
            self._cond.notify_all()

    def read(self, n: int) -> bytes:
        """Read up to n bytes, stopping after a newline; b"" at end of input."""
        out = bytearray()
        with self._cond:
            while len(out) < n:
                while self._r == self._w:
                    if self._killed:
                        raise InterruptedError("console read interrupted")
                    self._cond.wait()
                c = self._buf[self._r % INPUT_BUF]
                self._r += 1
                if c == _ctrl("D"):  # end of input
                    if out:
                        # Keep ^D so the next read returns nothing.
                        self._r -= 1
                    break
                out.append(c)
                if c == ord("\n"):
                    break
        return bytes(out)

    def write(self, data: bytes) -> int:
        """Write data to the console; return the count written."""
        with self._cond:
            for byte in data:
                self.putc(byte & 0xFF)
        return len(data)