import pytest

from hpingkit.apd import (
    Keyword,
    decode_hex_data,
    decode_string_data,
    lookup_keyword,
    main,
    parse_description,
    set_data_field,
    tokenize,
)
from hpingkit.checksum import internet_checksum
from hpingkit.headers import (
    IPPROTO_UDP,
    IpHeader,
    LayerType,
    PseudoHeader,
    TcpFlag,
    TcpHeader,
    TcpOptionKind,
    UdpHeader,
)
from hpingkit.packet import Packet, PacketError


def test_tokenize_splits_punctuation():
    assert list(tokenize("ip(ttl=64)+udp")) == ["ip", "(", "ttl", "=", "64", ")", "+", "udp"]


def test_tokenize_rejoins_to_input():
    text = "ip(saddr=1.2.3.4,daddr=5.6.7.8)+tcp(flags=S)+data(str=a b)"
    assert "".join(tokenize(text)) == text


def test_tokenize_splits_very_long_tokens():
    tokens = list(tokenize("a" * 12000))
    assert len(tokens) == 2
    assert "".join(tokens) == "a" * 12000


def test_lookup_keyword_ignores_case():
    keyword = lookup_keyword("TCP.MSS")
    assert isinstance(keyword, Keyword)
    assert keyword.name == "tcp.mss"
    assert keyword.option == TcpOptionKind.MAXSEG


def test_lookup_keyword_unknown():
    assert lookup_keyword("nosuchlayer") is None


def test_decode_hex_roundtrip():
    data = bytes(range(256))
    assert decode_hex_data(data.hex()) == data
    assert decode_hex_data(data.hex().upper()) == data


def test_decode_hex_odd_length():
    with pytest.raises(PacketError, match="Odd length"):
        decode_hex_data("abc")


def test_decode_hex_bad_digit():
    with pytest.raises(PacketError, match="Wrong byte"):
        decode_hex_data("zz")


def test_decode_string_escape():
    assert decode_string_data("a\\41b") == b"aAb"


def test_decode_string_plain_and_short_escape():
    assert decode_string_data("hello") == b"hello"
    assert decode_string_data("x\\4") == b"x\\4"


def test_set_data_field_uint_values():
    packet = Packet()
    packet.add_data(0)
    set_data_field(packet, -1, "uint32", "0x01020304")
    set_data_field(packet, -1, "uint16", "0x0506")
    set_data_field(packet, -1, "uint8", "0x1ff")
    raw = bytes(packet.layers[-1])
    assert len(raw) == 7
    assert int.from_bytes(raw[:4], "big") == 0x01020304
    assert int.from_bytes(raw[4:6], "big") == 0x0506
    assert raw[6] == 0xFF


def test_set_data_field_uint24_width():
    packet = Packet()
    packet.add_data(0)
    set_data_field(packet, 0, "uint24", "0x0a0b0c")
    assert bytes(packet.layers[0]) == (0x0A0B0C).to_bytes(3, "big")


def test_set_data_field_file(tmp_path):
    path = tmp_path / "payload.bin"
    path.write_bytes(b"payload-bytes")
    packet = Packet()
    packet.add_data(0)
    set_data_field(packet, -1, "FILE", str(path))
    assert bytes(packet.layers[-1]) == b"payload-bytes"


def test_set_data_field_missing_file(tmp_path):
    packet = Packet()
    packet.add_data(0)
    with pytest.raises(PacketError, match="Can't open the DATA file"):
        set_data_field(packet, -1, "file", str(tmp_path / "missing"))


def test_set_data_field_unknown_field():
    packet = Packet()
    packet.add_data(0)
    with pytest.raises(PacketError, match="Invalid field for DATA layer"):
        set_data_field(packet, -1, "bogus", "1")


def test_parse_udp_packet_compiles_consistently():
    packet = Packet()
    parse_description(
        packet,
        "ip(saddr=10.0.0.1,daddr=10.0.0.2,ttl=64)+udp(sport=1000,dport=2000)+data(str=hello)",
    )
    assert [layer.type for layer in packet.layers] == [
        LayerType.IP,
        LayerType.UDP,
        LayerType.DATA,
    ]
    packet.compile()
    raw = packet.build()
    ip = IpHeader.unpack(raw)
    assert ip.ttl == 64
    assert ip.protocol == IPPROTO_UDP
    assert ip.tot_len == len(raw)
    assert internet_checksum(raw[:20]) == 0
    udp = UdpHeader.unpack(raw[20:])
    assert udp.sport == 1000
    assert udp.dport == 2000
    assert udp.length == len(raw) - 20
    assert raw.endswith(b"hello")
    pseudo = PseudoHeader(ip.saddr, ip.daddr, IPPROTO_UDP, len(raw) - 20)
    assert internet_checksum(pseudo.pack() + raw[20:]) == 0


def test_parse_tcp_flags():
    packet = Packet()
    parse_description(packet, "ip(daddr=127.0.0.1)+tcp(flags=SA,dport=80)")
    tcp = TcpHeader.unpack(bytes(packet.layers[1]))
    assert tcp.flags == TcpFlag.SYN | TcpFlag.ACK
    assert tcp.dport == 80


def test_parse_layer_size_truncates():
    packet = Packet()
    parse_description(packet, "ip+data(str=abcdef)4")
    assert bytes(packet.layers[-1]) == b"abcd"


def test_parse_layer_size_cannot_grow():
    packet = Packet()
    with pytest.raises(PacketError, match="Invalid layer size"):
        parse_description(packet, "data(str=ab)10")


def test_parse_ignored_tcp_timestamp_fields():
    packet = Packet()
    parse_description(packet, "tcp.ts(anything=1)")
    assert packet.layers[0].type == LayerType.TCPOPT


def test_parse_missing_plus():
    packet = Packet()
    with pytest.raises(PacketError, match="Missing plus"):
        parse_description(packet, "data(str=abc)2(")


def test_main_reports_error(capsys):
    assert main(["bogus("]) == 1
    assert "APD error" in capsys.readouterr().err