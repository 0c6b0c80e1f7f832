import io

import pytest

from teachos.console import CgaScreen, Console


def make():
    out = io.StringIO()
    return out, Console(out)


def test_write_echoes_to_output_and_screen():
    out, con = make()
    assert con.write(b"hi\nyo") == 5
    assert out.getvalue() == "hi\nyo"
    assert con.screen.text() == "hi\nyo"


def test_line_input():
    _, con = make()
    con.intr("ab\r")
    assert con.read(10) == b"ab\n"


def test_read_without_line_blocks():
    _, con = make()
    con.intr("ab")
    with pytest.raises(BlockingIOError):
        con.read(10)


def test_backspace_and_kill_line():
    out, con = make()
    con.intr("abc\x7f\n")
    assert con.read(10) == b"ab\n"
    con.intr("xyz\x15ok\n")
    assert con.read(10) == b"ok\n"
    assert "\b \b" in out.getvalue()


def test_ctrl_d_gives_eof():
    _, con = make()
    con.intr("ab\x04")
    assert con.read(10) == b"ab"
    assert con.read(10) == b""


def test_cprintf():
    out, con = make()
    con.cprintf("%d %x %s %% %q", -5, 255, None)
    assert out.getvalue() == "-5 ff (null) % %q"


def test_procdump_called():
    _, con = make()
    calls = []
    con.procdump = lambda: calls.append(1)
    con.intr("\x10")
    assert calls == [1]


def test_screen_scrolls():
    screen = CgaScreen()
    for i in range(30):
        for ch in f"{i}\n":
            screen.putc(ord(ch))
    lines = screen.text().split("\n")
    assert lines[-1] == "29"
    assert len(lines) <= 24