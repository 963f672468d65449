import pytest

from hpingkit.ipopts import RouteOptionFormatter, build_ip_options

LSRR = bytes([0x83, 7, 4, 10, 0, 0, 1])


def ip_packet(options: bytes) -> bytes:
    ihl = (20 + len(options)) // 4
    return bytes([0x40 | ihl]) + bytes(19) + options


def test_no_options():
    assert build_ip_options() == b""


def test_record_route_only():
    opts = build_ip_options(record_route=True)
    assert len(opts) == 40
    assert opts[:7] == bytes([7, 39, 8, 1, 2, 3, 4])
    assert opts[7:39] == bytes([1]) * 32
    assert opts[-1] == 0


def test_lsrr_padded():
    assert build_ip_options(lsrr=LSRR) == LSRR + b"\x00"


def test_lsrr_then_record_route():
    opts = build_ip_options(lsrr=LSRR, record_route=True)
    assert len(opts) == 40
    assert opts[: len(LSRR)] == LSRR
    assert opts[len(LSRR)] == 7


def test_lsrr_too_long_discarded():
    with pytest.warns(UserWarning):
        assert build_ip_options(lsrr=bytes(40)) == b""


def test_record_route_without_room():
    lsrr = bytes(range(1, 21))
    ssrr = bytes(range(30, 45))
    with pytest.warns(UserWarning):
        opts = build_ip_options(lsrr=lsrr, ssrr=ssrr, record_route=True)
    assert len(opts) % 4 == 0
    assert opts[:20] == lsrr
    assert opts[20:35] == ssrr
    assert opts[-1] == 0


def test_ssrr_too_long_discarded():
    with pytest.warns(UserWarning):
        opts = build_ip_options(lsrr=LSRR, ssrr=bytes(33))
    assert opts == LSRR + b"\x00"


def test_format_nops():
    packet = ip_packet(b"\x01\x01\x01\x00")
    assert RouteOptionFormatter().format(packet) == "NOP\nNOP\nNOP\n"


def test_format_unknown_option():
    packet = ip_packet(b"\x44\x00\x00\x00")
    assert RouteOptionFormatter().format(packet) == "unknown option 44\n"


def test_format_lsrr():
    options = bytes([0x83, 11, 4, 10, 0, 0, 1, 10, 0, 0, 2, 0])
    text = RouteOptionFormatter().format(ip_packet(options))
    assert text == "LSRR: \t10.0.0.1\n\t10.0.0.2"


def test_format_record_route_and_same_route():
    packet = ip_packet(build_ip_options(record_route=True))
    formatter = RouteOptionFormatter()
    first = formatter.format(packet)
    header = "RR: \t1.2.3.4\n"
    assert first.startswith(header)
    tail = first[len(header):]
    assert formatter.format(packet) == "\t(same route)\n" + tail
    assert RouteOptionFormatter().format(packet) == first


def test_format_no_options():
    assert RouteOptionFormatter().format(ip_packet(b"")) == ""


def test_format_short_packet():
    with pytest.raises(ValueError):
        RouteOptionFormatter().format(bytes(10))


def test_format_truncated_header():
    packet = bytes([0x4F]) + bytes(19)
    with pytest.raises(ValueError):
        RouteOptionFormatter().format(packet)