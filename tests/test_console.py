from concurrent.futures import ThreadPoolExecutor

import pytest

from teachos.console import BACKSPACE, INPUT_BUF, CgaScreen, Console


def test_typed_line_is_echoed_and_read():
    con = Console()
    con.interrupt(b"hi\n")
    assert con.serial == b"hi\n"
    assert con.read(10) == b"hi\n"


def test_read_stops_after_each_newline():
    con = Console()
    con.interrupt(b"a\nb\n")
    assert con.read(10) == b"a\n"
    assert con.read(10) == b"b\n"


def test_read_limited_by_count():
    con = Console()
    con.interrupt(b"abcd\n")
    assert con.read(2) == b"ab"
    assert con.read(10) == b"cd\n"


def test_carriage_return_becomes_newline():
    con = Console()
    con.interrupt("ok\r")
    assert con.read(10) == b"ok\n"


def test_backspace_erases_last_character():
    con = Console()
    con.interrupt(b"ab\x7fc\n")
    assert con.read(10) == b"ac\n"
    assert con.serial == b"ab\b \bc\n"


def test_backspace_cannot_cross_committed_line():
    con = Console()
    con.interrupt(b"x\n\x08y\n")
    assert con.read(10) == b"x\n"
    assert con.read(10) == b"y\n"


def test_kill_line():
    con = Console()
    con.interrupt(b"abc\x15z\n")
    assert con.read(10) == b"z\n"


def test_end_of_input_after_partial_line():
    con = Console()
    con.interrupt(b"ab\x04")
    assert con.read(10) == b"ab"
    assert con.read(10) == b""


def test_full_buffer_is_committed():
    con = Console()
    con.interrupt(b"x" * (INPUT_BUF + 5))
    assert con.read(INPUT_BUF) == b"x" * INPUT_BUF


def test_procdump_called_on_control_p():
    calls = []
    con = Console(procdump=lambda: calls.append(True))
    con.interrupt(b"\x10")
    assert calls == [True]
    assert con.serial == b""


def test_killed_reader_raises():
    con = Console()
    con.kill_readers()
    with pytest.raises(InterruptedError):
        con.read(5)


def test_waiting_reader_woken_by_input():
    con = Console()
    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(con.read, 10)
        con.interrupt(b"go\n")
        data = future.result(timeout=5)
    assert data == b"go\n"


def test_write_shows_on_screen_and_serial():
    con = Console()
    assert con.write(b"hello\nworld") == 11
    assert con.serial == b"hello\nworld"
    lines = con.screen.lines()
    assert lines[0] == "hello"
    assert lines[1] == "world"


def test_screen_backspace_at_origin_stays():
    screen = CgaScreen()
    screen.putc(BACKSPACE)
    assert screen.pos == 0
    screen.putc(ord("q"))
    screen.putc(BACKSPACE)
    assert screen.pos == 0


def test_screen_scrolls_keeping_cursor_on_screen():
    screen = CgaScreen()
    for i in range(30):
        for ch in f"line{i}\n":
            screen.putc(ord(ch))
        assert screen.pos // 80 < 24
    lines = screen.lines()
    assert lines[22] == "line29"
    assert lines[23] == ""
    assert all(row.startswith("line") for row in lines[:23])
    numbers = [int(row[4:]) for row in lines[:23]]
    assert numbers == sorted(numbers)
    assert len(set(numbers)) == 23