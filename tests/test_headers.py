import pytest

from hpingkit.headers import (
    IcmpHeader,
    IcmpType,
    IgrpEntry,
    IgrpHeader,
    IpHeader,
    IpOptionKind,
    LayerType,
    PseudoHeader,
    TcpFlag,
    TcpHeader,
    TcpOptionKind,
    UdpHeader,
)


def test_layer_type_lookup_by_value():
    assert LayerType(1) is LayerType.IP
    assert LayerType(8) is LayerType.IGRPENTRY
    assert LayerType(31) is LayerType.DATA


def test_ip_option_kind_composition():
    lsrr = IpOptionKind(0x83)
    assert lsrr is IpOptionKind.LSRR
    assert lsrr.copied
    assert lsrr.number == 3
    rr = IpOptionKind(7)
    assert rr is IpOptionKind.RR
    assert not rr.copied
    assert IpOptionKind(1) is IpOptionKind.NOP
    assert IpOptionKind(0x44) is IpOptionKind.TS


def test_tcp_option_and_flag_values():
    assert TcpOptionKind(8) is TcpOptionKind.TIMESTAMP
    raw = TcpHeader(flags=TcpFlag.SYN | TcpFlag.ACK).pack()
    assert raw[13] == 0x12
    assert IcmpType(8) is IcmpType.ECHO


@pytest.mark.parametrize(
    "cls", [IpHeader, UdpHeader, TcpHeader, IcmpHeader, IgrpHeader, IgrpEntry]
)
def test_default_pack_length_and_round_trip(cls):
    header = cls()
    raw = header.pack()
    assert len(raw) == cls.SIZE
    assert cls.unpack(raw) == header


def test_ip_round_trip_and_layout():
    header = IpHeader(version=4, ihl=6, tos=3, tot_len=60, id=0x1234,
                      frag_off=0x4000, ttl=64, protocol=6, check=0xBEEF,
                      saddr=0x0A000001, daddr=0xC0A80101)
    raw = header.pack()
    assert raw[0] >> 4 == 4
    assert raw[0] & 0xF == 6
    assert raw[8] == 64
    assert raw[12:16] == bytes([10, 0, 0, 1])
    assert raw[16:20] == bytes([192, 168, 1, 1])
    assert IpHeader.unpack(raw) == header


def test_ip_rejects_bad_nibble_and_short_data():
    with pytest.raises(ValueError):
        IpHeader(ihl=16).pack()
    with pytest.raises(ValueError):
        IpHeader.unpack(b"\x45" * 10)
    with pytest.raises(ValueError):
        IpHeader(ttl=256).pack()


def test_udp_layout():
    raw = UdpHeader(sport=1024, dport=53, length=8, checksum=7).pack()
    assert int.from_bytes(raw[0:2], "big") == 1024
    assert int.from_bytes(raw[2:4], "big") == 53
    assert UdpHeader.unpack(raw + b"extra") == UdpHeader(1024, 53, 8, 7)


def test_tcp_offset_and_flags():
    header = TcpHeader(sport=80, dport=1234, seq=1, ack=2, x2=0, off=5,
                       flags=TcpFlag.SYN | TcpFlag.ACK, win=512)
    raw = header.pack()
    assert raw[12] >> 4 == 5
    assert raw[13] == int(TcpFlag.SYN | TcpFlag.ACK)
    back = TcpHeader.unpack(raw)
    assert back.off == 5
    assert TcpFlag(back.flags) == TcpFlag.SYN | TcpFlag.ACK


def test_icmp_gateway_shares_id_and_sequence():
    icmp = IcmpHeader()
    icmp.gateway = 0x01020304
    assert icmp.id == 0x0102
    assert icmp.sequence == 0x0304
    assert icmp.pack()[4:8] == bytes([1, 2, 3, 4])
    with pytest.raises(ValueError):
        icmp.gateway = -1


def test_icmp_default_is_echo():
    assert IcmpHeader().pack()[0] == IcmpType.ECHO


def test_igrp_version_and_opcode_nibbles():
    raw = IgrpHeader(version=1, opcode=2, autosys=100).pack()
    assert raw[0] >> 4 == 1
    assert raw[0] & 0xF == 2
    assert IgrpHeader.unpack(raw).autosys == 100


def test_igrp_entry_24bit_fields():
    entry = IgrpEntry(destination=bytes([10, 1, 2]), delay=0x123456,
                      bandwidth=0xABCDEF, mtu=1500, reliability=255,
                      load=1, hopcount=3)
    raw = entry.pack()
    assert raw[0:3] == bytes([10, 1, 2])
    assert int.from_bytes(raw[3:6], "big") == 0x123456
    assert int.from_bytes(raw[6:9], "big") == 0xABCDEF
    assert IgrpEntry.unpack(raw) == entry


def test_igrp_entry_rejects_bad_values():
    with pytest.raises(ValueError):
        IgrpEntry(delay=1 << 24).pack()
    with pytest.raises(ValueError):
        IgrpEntry(destination=b"\x01").pack()


def test_pseudo_header_layout():
    raw = PseudoHeader(saddr=0x01020304, daddr=0x05060708, protocol=6,
                       length=20).pack()
    assert len(raw) == PseudoHeader.SIZE
    assert raw[0:4] == bytes([1, 2, 3, 4])
    assert raw[8] == 0
    assert raw[9] == 6
    assert int.from_bytes(raw[10:12], "big") == 20