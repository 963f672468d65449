"""Setting named fields of packet layers from textual values.

These functions give the field assignments of a packet description their
meaning, e.g. ``ttl=64`` for an IP layer or ``flags=SA`` for a TCP layer.
Field names are case-insensitive.  Numeric values are read like C's
``strtoul`` with automatic base: ``0x`` prefix for hex, a leading ``0``
for octal, decimal otherwise.  Text that is not a number reads as 0.
Values are truncated to the width of the field they go into.  Every error
raises :class:`~hpingkit.packet.PacketError`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping

from .headers import (
    IGRP_OPCODE_REQUEST,
    IGRP_OPCODE_UPDATE,
    IP_DF,
    IP_MF,
    IP_RF,
    IPOPT_TS_PRESPEC,
    IPOPT_TS_TSANDADDR,
    IPOPT_TS_TSONLY,
    IPPROTO_ICMP,
    IPPROTO_TCP,
    IPPROTO_UDP,
    TAKE_ICMP_CKSUM,
    TAKE_IGRP_CKSUM,
    TAKE_IP_CKSUM,
    TAKE_IP_HDRLEN,
    TAKE_IP_PROTOCOL,
    TAKE_IP_TOTLEN,
    TAKE_IP_VERSION,
    TAKE_IPOPT_PTR,
    TAKE_TCP_CKSUM,
    TAKE_TCP_HDRLEN,
    TAKE_UDP_CKSUM,
    TAKE_UDP_LEN,
    IpOptionKind,
    LayerType,
    TcpFlag,
)
from .hexconv import hex_to_bin
from .packet import LAST_LAYER, Layer, Packet, PacketError, resolve
from .strutil import is_number, split_fields

__all__ = [
    "set_layer_size",
    "set_ip_field",
    "set_ipopt_route_field",
    "set_ipopt_timestamp_field",
    "set_ipopt_sid_field",
    "set_ipopt_security_field",
    "set_ipopt_plain_field",
    "set_udp_field",
    "set_tcp_field",
    "set_tcpopt_mss_field",
    "set_tcpopt_wscale_field",
    "set_tcpopt_sack_field",
    "set_tcpopt_echo_field",
    "set_tcpopt_plain_field",
    "set_icmp_field",
    "set_igrp_field",
    "set_igrp_entry_field",
]

IPOPT_RR_MAX_ENTRIES = 9
IPOPT_TS_MAX_ENTRIES = 9
TCPOPT_SACK_MAX_ENTRIES = 4

_ULONG_MAX = (1 << 64) - 1
_ATOU_RE = re.compile(
    r"[ \t\n\v\f\r]*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)"
)


def _atou(text: str) -> int:
    """Read an unsigned number the way strtoul(text, NULL, 0) does."""
    match = _ATOU_RE.match(text)
    if match is None:
        return 0
    sign, digits = match.groups()
    if digits[:2].lower() == "0x":
        value = int(digits[2:], 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits)
    value = min(value, _ULONG_MAX)
    if sign == "-":
        value = -value & _ULONG_MAX
    return value


@dataclass(frozen=True)
class _Num:
    """A big-endian numeric field: byte offset, width in bytes, TAKE flag."""

    offset: int
    width: int
    flag: int = 0


def _layer(packet: Packet, index: int, *expected: LayerType) -> Layer:
    if index == LAST_LAYER:
        index = len(packet.layers) - 1
    if not 0 <= index < len(packet.layers):
        raise PacketError(f"Invalid layer: {index}")
    layer = packet.layers[index]
    if expected and layer.type not in expected:
        names = "/".join(t.name for t in expected)
        raise PacketError(f"Layer {index} is {layer.type.name}, not {names}")
    return layer


def _put(layer: Layer, offset: int, raw: bytes) -> None:
    if offset + len(raw) > len(layer.data):
        raise PacketError(f"Field at offset {offset} does not fit in the layer")
    layer.data[offset : offset + len(raw)] = raw


def _put_uint(layer: Layer, offset: int, width: int, value: int) -> None:
    value &= (1 << (8 * width)) - 1
    _put(layer, offset, value.to_bytes(width, "big"))


def _get_uint(layer: Layer, offset: int, width: int) -> int:
    if offset + width > len(layer.data):
        raise PacketError(f"Field at offset {offset} does not fit in the layer")
    return int.from_bytes(layer.data[offset : offset + width], "big")


def _set_num(layer: Layer, spec: _Num, value: str) -> None:
    _put_uint(layer, spec.offset, spec.width, _atou(value))
    layer.flags |= spec.flag


def _set_nibble(layer: Layer, offset: int, high: bool, value: int) -> None:
    current = _get_uint(layer, offset, 1)
    value &= 0xF
    if high:
        current = (current & 0x0F) | (value << 4)
    else:
        current = (current & 0xF0) | value
    _put_uint(layer, offset, 1, current)


def _put_address(layer: Layer, offset: int, host: str) -> None:
    _put(layer, offset, resolve(host).to_bytes(4, "big"))


def _numeric_or_fail(layer: Layer, table: Mapping[str, _Num], name: str,
                     field: str, value: str, what: str) -> None:
    spec = table.get(name)
    if spec is None:
        raise PacketError(f"Invalid field for {what} layer: '{field}'")
    _set_num(layer, spec, value)


# ---------------------------------------------------------------- layers --

def set_layer_size(packet: Packet, index: int, size: str) -> None:
    """Shrink a layer to ``size`` bytes; it may not grow nor become empty."""
    layer = _layer(packet, index)
    newsize = _atou(size)
    if newsize < 1 or newsize > layer.size:
        raise PacketError("Invalid layer size in description")
    layer.size = newsize


# -------------------------------------------------------------------- IP --

_IP_NUMERIC = {
    "tos": _Num(1, 1),
    "totlen": _Num(2, 2, TAKE_IP_TOTLEN),
    "id": _Num(4, 2),
    "ttl": _Num(8, 1),
    "cksum": _Num(10, 2, TAKE_IP_CKSUM),
}
_IP_FRAG_BITS = {"mf": IP_MF, "df": IP_DF, "rf": IP_RF}
_IP_PROTO_NAMES = {"icmp": IPPROTO_ICMP, "udp": IPPROTO_UDP, "tcp": IPPROTO_TCP}


def set_ip_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set a field of an IP header layer."""
    layer = _layer(packet, index, LayerType.IP)
    name = field.lower()
    if name == "saddr":
        _put_address(layer, 12, value)
    elif name == "daddr":
        _put_address(layer, 16, value)
    elif name == "ihl":
        _set_nibble(layer, 0, high=False, value=_atou(value))
        layer.flags |= TAKE_IP_HDRLEN
    elif name == "ver":
        _set_nibble(layer, 0, high=True, value=_atou(value))
        layer.flags |= TAKE_IP_VERSION
    elif name == "fragoff":
        frag = _get_uint(layer, 6, 2)
        frag = (frag & 0xE000) | ((_atou(value) >> 3) & 0xFFFF)
        _put_uint(layer, 6, 2, frag)
    elif name in _IP_FRAG_BITS:
        bit = _IP_FRAG_BITS[name]
        frag = _get_uint(layer, 6, 2)
        frag = frag & ~bit if _atou(value) == 0 else frag | bit
        _put_uint(layer, 6, 2, frag)
    elif name == "proto":
        proto = _IP_PROTO_NAMES.get(value.lower())
        _put_uint(layer, 9, 1, proto if proto is not None else _atou(value))
        layer.flags |= TAKE_IP_PROTOCOL
    else:
        _numeric_or_fail(layer, _IP_NUMERIC, name, field, value, "IP")


# ------------------------------------------------------------ IP options --

def set_ipopt_route_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set a field of a record route or source route (LSRR/SSRR) option."""
    layer = _layer(packet, index, LayerType.IPOPT)
    name = field.lower()
    if name == "optlen":
        _put_uint(layer, 1, 1, _atou(value))
    elif name == "ptr":
        _put_uint(layer, 2, 1, _atou(value))
        layer.flags |= TAKE_IPOPT_PTR
    elif name == "data":
        hosts = split_fields("/", value, IPOPT_RR_MAX_ENTRIES)
        for i, host in enumerate(hosts):
            _put_address(layer, 3 + i * 4, host)
        if not layer.flags & TAKE_IPOPT_PTR:
            if _get_uint(layer, 0, 1) == IpOptionKind.RR:
                # Record route points past the entries given.
                _put_uint(layer, 2, 1, 4 + len(hosts) * 4)
            else:
                _put_uint(layer, 2, 1, 4)
    else:
        raise PacketError(f"Invalid field for IP.RR layer: '{field}'")


_TS_FLAG_NAMES = {
    "tsonly": IPOPT_TS_TSONLY,
    "tsandaddr": IPOPT_TS_TSANDADDR,
    "prespec": IPOPT_TS_PRESPEC,
}


def set_ipopt_timestamp_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set a field of an IP timestamp option.

    ``data`` is a ``/`` separated list of timestamps, each written
    ``ts@host`` when the flags ask for addresses too.
    """
    layer = _layer(packet, index, LayerType.IPOPT)
    current = _get_uint(layer, 3, 1)
    overflow = current >> 4
    flags = current & 0xF
    name = field.lower()
    if name == "optlen":
        _put_uint(layer, 1, 1, _atou(value))
    elif name == "ptr":
        _put_uint(layer, 2, 1, _atou(value))
        layer.flags |= TAKE_IPOPT_PTR
    elif name == "flags":
        if is_number(value):
            flags = _atou(value) & 0xF
        else:
            symbol = _TS_FLAG_NAMES.get(value.lower())
            if symbol is None:
                raise PacketError(
                    f"Invalid symbol for ip.ts flags: '{value}' (use: tsonly, "
                    "tsandaddr, prespec or a numerical value)"
                )
            flags = symbol
        _put_uint(layer, 3, 1, (overflow << 4) | flags)
    elif name == "overflow":
        overflow = _atou(value) & 0xF
        _put_uint(layer, 3, 1, (overflow << 4) | flags)
    elif name == "data":
        entries = split_fields("/", value, IPOPT_TS_MAX_ENTRIES)
        with_address = flags in (IPOPT_TS_TSANDADDR, IPOPT_TS_PRESPEC)
        for i, entry in enumerate(entries):
            stamp, at, host = entry.partition("@")
            if at:
                if flags == IPOPT_TS_TSONLY:
                    raise PacketError(
                        "Gateway specified but ip.ts flags set to 'tsonly'. "
                        "(Try flags=tsandaddr,data=...)"
                    )
                address = resolve(host)
                if i < 4:
                    _put_uint(layer, 4 + i * 8, 4, address)
                    _put_uint(layer, 8 + i * 8, 4, _atou(stamp))
            else:
                if with_address:
                    raise PacketError(
                        "Gateway not specified in data for ip.ts, but flags set "
                        "to 'tsandaddr' or 'prespec'. (Try flags=tsonly)"
                    )
                _put_uint(layer, 4 + i * 4, 4, _atou(stamp))
        if not layer.flags & TAKE_IPOPT_PTR:
            step = 8 if with_address else 4
            _put_uint(layer, 2, 1, 5 + len(entries) * step)
    else:
        raise PacketError(f"Invalid field for IP.TS layer: '{field}'")


def set_ipopt_sid_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set a field of an IP stream identifier option."""
    layer = _layer(packet, index, LayerType.IPOPT)
    table = {"optlen": _Num(1, 1), "sid": _Num(2, 2)}
    _numeric_or_fail(layer, table, field.lower(), field, value, "IP.SID")


def set_ipopt_security_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set a field of an IP security option; hrest and tcc take hex digits."""
    layer = _layer(packet, index, LayerType.IPOPT)
    name = field.lower()
    hex_fields = {"hrest": (6, 4, "252A"), "tcc": (8, 6, "252A27")}
    if name in hex_fields:
        offset, digits, example = hex_fields[name]
        if len(value) != digits:
            raise PacketError(
                f"Invalid ip.sec {name} field value of '{value}'(should be "
                f"{digits} hex digits, like this: ...,{name}={example},...)"
            )
        try:
            raw = hex_to_bin(value)
        except ValueError:
            raise PacketError(f"Invalid hex value for ip.sec hex: '{value}'") from None
        _put(layer, offset, raw)
        return
    table = {"optlen": _Num(1, 1), "seclev": _Num(2, 2), "comp": _Num(4, 2)}
    _numeric_or_fail(layer, table, name, field, value, "IP.SEC")


def set_ipopt_plain_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set the length of an IP option that has no other settable field."""
    layer = _layer(packet, index, LayerType.IPOPT)
    _numeric_or_fail(layer, {"optlen": _Num(1, 1)}, field.lower(), field, value, "IP.?")


# ----------------------------------------------------------------- UDP --

_UDP_NUMERIC = {
    "sport": _Num(0, 2),
    "dport": _Num(2, 2),
    "len": _Num(4, 2, TAKE_UDP_LEN),
    "cksum": _Num(6, 2, TAKE_UDP_CKSUM),
}


def set_udp_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set a field of a UDP header layer."""
    layer = _layer(packet, index, LayerType.UDP)
    _numeric_or_fail(layer, _UDP_NUMERIC, field.lower(), field, value, "UDP")


# ----------------------------------------------------------------- TCP --

_TCP_NUMERIC = {
    "sport": _Num(0, 2),
    "dport": _Num(2, 2),
    "seq": _Num(4, 4),
    "ack": _Num(8, 4),
    "win": _Num(14, 2),
    "cksum": _Num(16, 2, TAKE_TCP_CKSUM),
    "urp": _Num(18, 2),
}
_TCP_FLAG_LETTERS = {
    "f": TcpFlag.FIN,
    "s": TcpFlag.SYN,
    "r": TcpFlag.RST,
    "p": TcpFlag.PUSH,
    "a": TcpFlag.ACK,
    "u": TcpFlag.URG,
    "x": TcpFlag.X,
    "y": TcpFlag.Y,
}


def set_tcp_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set a field of a TCP header layer; flags are letters from ``FSRPAUXY``."""
    layer = _layer(packet, index, LayerType.TCP)
    name = field.lower()
    if name == "x2":
        _set_nibble(layer, 12, high=False, value=_atou(value))
    elif name == "off":
        _set_nibble(layer, 12, high=True, value=_atou(value))
        layer.flags |= TAKE_TCP_HDRLEN
    elif name == "flags":
        letters = set(value.lower())
        bits = TcpFlag(0)
        for letter, flag in _TCP_FLAG_LETTERS.items():
            if letter in letters:
                bits |= flag
        _put_uint(layer, 13, 1, int(bits))
    else:
        _numeric_or_fail(layer, _TCP_NUMERIC, name, field, value, "TCP")


def set_tcpopt_mss_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set a field of a TCP maximum segment size option."""
    layer = _layer(packet, index, LayerType.TCPOPT)
    table = {"optlen": _Num(1, 1), "size": _Num(2, 2)}
    _numeric_or_fail(layer, table, field.lower(), field, value, "TCP.MSS")


def set_tcpopt_wscale_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set a field of a TCP window scale option."""
    layer = _layer(packet, index, LayerType.TCPOPT)
    table = {"optlen": _Num(1, 1), "shift": _Num(2, 1)}
    _numeric_or_fail(layer, table, field.lower(), field, value, "TCP.WSCALE")


def set_tcpopt_sack_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set a field of a TCP SACK option; blocks are ``origin-len/...``."""
    layer = _layer(packet, index, LayerType.TCPOPT)
    name = field.lower()
    if name == "blocks":
        for i, block in enumerate(split_fields("/", value, TCPOPT_SACK_MAX_ENTRIES)):
            origin, dash, length = block.partition("-")
            if not dash:
                raise PacketError(
                    f"Invalid syntax for tcp.sack blocks: '{value}' (try "
                    "...tcp.sack(blocks=123342-10/12653-50/0-0/0-0)... )"
                )
            _put_uint(layer, 2 + i * 8, 4, _atou(origin))
            _put_uint(layer, 6 + i * 8, 4, _atou(length))
        return
    _numeric_or_fail(layer, {"optlen": _Num(1, 1)}, name, field, value, "TCP.SACK")


def set_tcpopt_echo_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set a field of a TCP echo request or echo reply option."""
    layer = _layer(packet, index, LayerType.TCPOPT)
    table = {"optlen": _Num(1, 1), "info": _Num(2, 4)}
    _numeric_or_fail(layer, table, field.lower(), field, value, "TCP.ECHO")


def set_tcpopt_plain_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set the length of a TCP option that has no other settable field."""
    layer = _layer(packet, index, LayerType.TCPOPT)
    _numeric_or_fail(layer, {"optlen": _Num(1, 1)}, field.lower(), field, value, "TCP.?")


# ---------------------------------------------------------------- ICMP --

_ICMP_NUMERIC = {
    "type": _Num(0, 1),
    "code": _Num(1, 1),
    "cksum": _Num(2, 2, TAKE_ICMP_CKSUM),
    "id": _Num(4, 2),
    "seq": _Num(6, 2),
    "unused": _Num(4, 4),
}


def set_icmp_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set a field of an ICMP header layer."""
    layer = _layer(packet, index, LayerType.ICMP)
    name = field.lower()
    if name == "gw":
        _put_address(layer, 4, value)
    else:
        _numeric_or_fail(layer, _ICMP_NUMERIC, name, field, value, "ICMP")


# ---------------------------------------------------------------- IGRP --

_IGRP_NUMERIC = {
    "edition": _Num(1, 1),
    "autosys": _Num(2, 2),
    "interior": _Num(4, 2),
    "system": _Num(6, 2),
    "exterior": _Num(8, 2),
    "cksum": _Num(10, 2, TAKE_IGRP_CKSUM),
}
_IGRP_OPCODES = {"update": IGRP_OPCODE_UPDATE, "request": IGRP_OPCODE_REQUEST}


def set_igrp_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set a field of an IGRP header layer."""
    layer = _layer(packet, index, LayerType.IGRP)
    name = field.lower()
    if name == "version":
        _set_nibble(layer, 0, high=True, value=_atou(value))
    elif name == "opcode":
        opcode = _IGRP_OPCODES.get(value.lower())
        _set_nibble(layer, 0, high=False,
                    value=opcode if opcode is not None else _atou(value))
    else:
        _numeric_or_fail(layer, _IGRP_NUMERIC, name, field, value, "IGRP")


_IGRP_ENTRY_NUMERIC = {
    "delay": _Num(3, 3),
    "bandwidth": _Num(6, 3),
    "mtu": _Num(9, 2),
    "reliability": _Num(11, 1),
    "load": _Num(12, 1),
    "hopcount": _Num(13, 1),
}


def _igrp_destination(value: str) -> bytes:
    first, dot, rest = value.partition(".")
    if not dot:
        raise ValueError(value)
    second, dot, third = rest.partition(".")
    if not dot:
        raise ValueError(value)
    parts = (first, second, third)
    if not all(is_number(part) for part in parts):
        raise ValueError(value)
    return bytes(_atou(part) & 0xFF for part in parts)


def set_igrp_entry_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Set a field of an IGRP routing entry; dest is written ``a.b.c``."""
    layer = _layer(packet, index, LayerType.IGRPENTRY)
    name = field.lower()
    if name == "dest":
        try:
            _put(layer, 0, _igrp_destination(value))
        except ValueError:
            raise PacketError(
                f"Invalid IGRP entry 'dest' field value: '{value}'"
            ) from None
    else:
        _numeric_or_fail(layer, _IGRP_ENTRY_NUMERIC, name, field, value, "IGRP.ENTRY")