import pytest

from hpingkit.adbuf import AdBuffer

PATTERN = ".,;-+*#*+-;,."


def test_new_buffer_is_empty():
    b = AdBuffer()
    assert len(b) == 0
    assert bytes(b) == b""
    assert str(b) == ""


def test_add_and_length():
    b = AdBuffer()
    for _ in range(6):
        b.add(PATTERN)
    assert len(b) == 6 * len(PATTERN)
    assert str(b) == PATTERN * 6


def test_triangle_trim():
    b = AdBuffer()
    for _ in range(6):
        b.add(PATTERN)
    full = PATTERN * 6
    lines = []
    while len(b) > 0:
        lines.append(str(b))
        b.rtrim(1)
        b.ltrim(1)
    assert lines[0] == full
    assert lines[1] == full[1:-1]
    assert all(len(a) - len(c) in (1, 2) for a, c in zip(lines, lines[1:]))


def test_many_chars_then_rtrim_keeps_prefix():
    b = AdBuffer()
    letters = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    for _ in range(6000):
        for c in letters:
            b.add_char(c)
    assert len(b) == 6000 * 26
    b.rtrim(len(b) - 500)
    assert str(b) == (letters * 20)[:500]


def test_add_char_int_masks():
    b = AdBuffer()
    b.add_char(0x141)
    b.add_char(ord("B"))
    assert bytes(b) == b"AB"


def test_add_char_rejects_multiple():
    with pytest.raises(ValueError):
        AdBuffer().add_char("ab")


def test_printf_small():
    b = AdBuffer("adbuf_printf with small output: ")
    b.printf("%d %04x", 255, 10)
    assert str(b) == "adbuf_printf with small output: 255 000a"


def test_printf_big():
    b = AdBuffer()
    for _ in range(1024):
        b.add_char("X")
    bb = AdBuffer()
    bb.printf("%s---%s", str(b), str(b))
    assert len(bb) == 1024 * 2 + 3


def test_add_long_and_ulong():
    b = AdBuffer()
    b.add_long(-42)
    b.add(",")
    b.add_ulong(0)
    b.add(",")
    b.add_long(0)
    assert str(b) == "-42,0,0"


def test_add_ulong_negative_rejected():
    with pytest.raises(ValueError):
        AdBuffer().add_ulong(-1)


def test_cut_noop_when_shorter():
    b = AdBuffer("abc")
    b.cut(10)
    assert str(b) == "abc"
    b.cut(1)
    assert str(b) == "a"


def test_rtrim_more_than_length_is_noop():
    b = AdBuffer("abc")
    b.rtrim(4)
    assert str(b) == "abc"
    b.rtrim(3)
    assert str(b) == ""


def test_ltrim_all_resets():
    b = AdBuffer("abc")
    b.ltrim(100)
    assert len(b) == 0


def test_clone_is_independent():
    a = AdBuffer("hello")
    c = a.clone()
    c.add(" world")
    assert str(a) == "hello"
    assert str(c) == "hello world"


def test_add_other_buffer():
    a = AdBuffer("x")
    a.add(AdBuffer("yz"))
    assert bytes(a) == b"xyz"


def test_reset():
    b = AdBuffer("data")
    b.reset()
    assert bytes(b) == b""


def test_binary_safe():
    b = AdBuffer(b"\x00\x01")
    b.add(b"\x00")
    assert bytes(b) == b"\x00\x01\x00"


def test_negative_count_rejected():
    with pytest.raises(ValueError):
        AdBuffer("abc").ltrim(-1)