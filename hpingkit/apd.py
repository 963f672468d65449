"""Packet descriptions: a small language that builds packets from text.

A description is a ``+`` separated list of layers.  Each layer is a keyword,
optionally followed by field assignments in parentheses and by a size that
truncates the layer::

    ip(daddr=192.0.2.1,ttl=64)+udp(dport=53)+data(str=hello)

Keywords are case-insensitive; see :func:`lookup_keyword` for the list.
"""

from __future__ import annotations

import argparse
import enum
import re
import string
import sys
from contextlib import closing
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Sequence

from .apdfields import (
    _atou,
    set_icmp_field,
    set_igrp_entry_field,
    set_igrp_field,
    set_ip_field,
    set_ipopt_plain_field,
    set_ipopt_route_field,
    set_ipopt_security_field,
    set_ipopt_sid_field,
    set_ipopt_timestamp_field,
    set_layer_size,
    set_tcp_field,
    set_tcpopt_echo_field,
    set_tcpopt_mss_field,
    set_tcpopt_plain_field,
    set_tcpopt_sack_field,
    set_tcpopt_wscale_field,
    set_udp_field,
)
from .headers import IpOptionKind, TcpOptionKind
from .packet import LAST_LAYER, Layer, Packet, PacketError, open_raw_socket

__all__ = [
    "Keyword",
    "tokenize",
    "lookup_keyword",
    "decode_hex_data",
    "decode_string_data",
    "set_data_field",
    "parse_description",
    "send_description",
    "main",
]

MAX_TOKEN_SIZE = 3000 * 4 - 1
DATA_FILE_READ_SIZE = 4096

_TOKEN_RE = re.compile(r"[(),=+]|[^(),=+]+")
_HEX_DIGITS = frozenset(string.hexdigits)

FieldSetter = Callable[[Packet, int, str, str], None]


@dataclass(frozen=True)
class Keyword:
    """A layer keyword: how to add the layer and how to set its fields."""

    name: str
    option: int
    add: Callable[[Packet, int], Layer]
    set_field: Optional[FieldSetter]


def tokenize(text: str) -> Iterator[str]:
    """Yield the tokens of a description.

    The punctuation characters ``( ) , = +`` are tokens of their own; every
    run of other characters is one token, split if it is very long.
    """
    for match in _TOKEN_RE.finditer(text):
        token = match.group()
        for start in range(0, len(token), MAX_TOKEN_SIZE):
            yield token[start : start + MAX_TOKEN_SIZE]


def _ignore_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Accept and discard a field assignment."""


def _push_data(packet: Packet, index: int, data: bytes) -> None:
    if index == LAST_LAYER:
        index = len(packet.layers) - 1
    if not 0 <= index < len(packet.layers):
        raise PacketError(f"Invalid layer: {index}")
    layer = packet.layers[index]
    layer.data = layer.data[: layer.size] + bytearray(data)
    layer.size += len(data)


def decode_hex_data(text: str) -> bytes:
    """Decode a string of hex digit pairs, in either case, into bytes."""
    if len(text) % 2:
        raise PacketError("Odd length of 'hex' data")
    out = bytearray()
    for pos in range(0, len(text), 2):
        pair = text[pos : pos + 2]
        if not all(ch in _HEX_DIGITS for ch in pair):
            raise PacketError(f"Wrong byte for 'hex' data: '{pair}'")
        out.append(int(pair, 16))
    return bytes(out)


def decode_string_data(text: str) -> bytes:
    """Decode a string where ``\\xy`` stands for the byte with hex value ``xy``.

    A backslash not followed by two more characters is kept literally.
    """
    raw = text.encode("utf-8")
    out = bytearray()
    pos = 0
    while pos < len(raw):
        if raw[pos] == ord("\\") and pos + 2 < len(raw):
            pair = raw[pos + 1 : pos + 3].decode("latin-1")
            if not all(ch in _HEX_DIGITS for ch in pair):
                raise PacketError(f"Wrong escape for 'str' data: '\\{pair}'")
            out.append(int(pair, 16))
            pos += 3
        else:
            out.append(raw[pos])
            pos += 1
    return bytes(out)


_UINT_WIDTHS = {"uint32": 4, "uint24": 3, "uint16": 2, "uint8": 1}


def set_data_field(packet: Packet, index: int, field: str, value: str) -> None:
    """Append data to a layer.

    ``file`` reads up to 4096 bytes from a file, ``str`` and ``hex`` decode
    their value, ``uint32``/``uint24``/``uint16``/``uint8`` append a
    big-endian number.
    """
    name = field.lower()
    if name == "file":
        try:
            with open(value, "rb") as handle:
                content = handle.read(DATA_FILE_READ_SIZE)
        except OSError as exc:
            raise PacketError(
                f"Can't open the DATA file '{value}': {exc.strerror or exc}"
            ) from exc
        if content:
            _push_data(packet, index, content)
    elif name == "str":
        _push_data(packet, index, decode_string_data(value))
    elif name == "hex":
        _push_data(packet, index, decode_hex_data(value))
    elif name in _UINT_WIDTHS:
        width = _UINT_WIDTHS[name]
        number = _atou(value) & ((1 << (8 * width)) - 1)
        _push_data(packet, index, number.to_bytes(width, "big"))
    else:
        raise PacketError(f"Invalid field for DATA layer: '{field}'")


def _ipopt(kind: IpOptionKind, setter: FieldSetter, name: str) -> Keyword:
    return Keyword(name, kind, lambda p, opt: p.add_ipopt(opt), setter)


def _tcpopt(kind: TcpOptionKind, setter: FieldSetter, name: str) -> Keyword:
    return Keyword(name, kind, lambda p, opt: p.add_tcpopt(opt), setter)


_KEYWORDS: tuple[Keyword, ...] = (
    Keyword("ip", 0, lambda p, opt: p.add_ip(), set_ip_field),
    _ipopt(IpOptionKind.EOL, set_ipopt_plain_field, "ip.eol"),
    _ipopt(IpOptionKind.NOP, set_ipopt_plain_field, "ip.nop"),
    _ipopt(IpOptionKind.SEC, set_ipopt_security_field, "ip.sec"),
    _ipopt(IpOptionKind.SID, set_ipopt_sid_field, "ip.sid"),
    _ipopt(IpOptionKind.LSRR, set_ipopt_route_field, "ip.lsrr"),
    _ipopt(IpOptionKind.SSRR, set_ipopt_route_field, "ip.ssrr"),
    _ipopt(IpOptionKind.RR, set_ipopt_route_field, "ip.rr"),
    _ipopt(IpOptionKind.TIMESTAMP, set_ipopt_timestamp_field, "ip.ts"),
    Keyword("udp", 0, lambda p, opt: p.add_udp(), set_udp_field),
    Keyword("tcp", 0, lambda p, opt: p.add_tcp(), set_tcp_field),
    _tcpopt(TcpOptionKind.EOL, set_tcpopt_plain_field, "tcp.eol"),
    _tcpopt(TcpOptionKind.NOP, set_tcpopt_plain_field, "tcp.nop"),
    _tcpopt(TcpOptionKind.MAXSEG, set_tcpopt_mss_field, "tcp.mss"),
    _tcpopt(TcpOptionKind.WINDOW, set_tcpopt_wscale_field, "tcp.wscale"),
    _tcpopt(TcpOptionKind.SACK_PERM, set_tcpopt_plain_field, "tcp.sackperm"),
    _tcpopt(TcpOptionKind.SACK, set_tcpopt_sack_field, "tcp.sack"),
    _tcpopt(TcpOptionKind.ECHOREQUEST, set_tcpopt_echo_field, "tcp.echo"),
    _tcpopt(TcpOptionKind.ECHOREPLY, set_tcpopt_echo_field, "tcp.echoreply"),
    _tcpopt(TcpOptionKind.TIMESTAMP, _ignore_field, "tcp.ts"),
    Keyword("icmp", 0, lambda p, opt: p.add_icmp(), set_icmp_field),
    Keyword("igrp", 0, lambda p, opt: p.add_igrp(), set_igrp_field),
    Keyword("igrp.entry", 0, lambda p, opt: p.add_igrp_entry(), set_igrp_entry_field),
    Keyword("data", 0, lambda p, opt: p.add_data(opt), set_data_field),
)


def lookup_keyword(name: str) -> Optional[Keyword]:
    """Return the keyword with this name, ignoring case, or None."""
    wanted = name.lower()
    return next((k for k in _KEYWORDS if k.name == wanted), None)


class _State(enum.Enum):
    LAYER = enum.auto()
    FIELD_OR_CBRACE = enum.auto()
    VALUE = enum.auto()
    OBRACE_OR_PLUS = enum.auto()
    COMMA_OR_CBRACE = enum.auto()
    LEN_OR_PLUS = enum.auto()
    PLUS = enum.auto()
    EQUAL = enum.auto()


_FINAL_STATES = frozenset({_State.LEN_OR_PLUS, _State.PLUS, _State.OBRACE_OR_PLUS})


def parse_description(packet: Packet, description: str) -> None:
    """Add to ``packet`` the layers written in ``description``."""
    state = _State.LAYER
    keyword: Optional[Keyword] = None
    field = ""
    for token in tokenize(description):
        if state is _State.LAYER:
            keyword = lookup_keyword(token)
            if keyword is None:
                raise PacketError(f"Unknown keyword: '{token}'")
            keyword.add(packet, keyword.option)
            state = _State.OBRACE_OR_PLUS
        elif state is _State.FIELD_OR_CBRACE:
            if token == ")":
                state = _State.LEN_OR_PLUS
            else:
                field = token
                state = _State.EQUAL
        elif state is _State.EQUAL:
            if token != "=":
                raise PacketError("Missing equal")
            state = _State.VALUE
        elif state is _State.VALUE:
            assert keyword is not None
            if keyword.set_field is None:
                raise PacketError("Field specified for a layer that doesn't support fields")
            keyword.set_field(packet, LAST_LAYER, field, token)
            state = _State.COMMA_OR_CBRACE
        elif state is _State.OBRACE_OR_PLUS:
            if token == "(":
                state = _State.FIELD_OR_CBRACE
            elif token == "+":
                state = _State.LAYER
            else:
                raise PacketError("Missing brace or plus")
        elif state is _State.COMMA_OR_CBRACE:
            if token == ")":
                state = _State.LEN_OR_PLUS
            elif token == ",":
                state = _State.FIELD_OR_CBRACE
            else:
                raise PacketError("Missing brace or comma")
        elif state is _State.LEN_OR_PLUS:
            if token == "+":
                state = _State.LAYER
            else:
                set_layer_size(packet, LAST_LAYER, token)
                state = _State.PLUS
        elif state is _State.PLUS:
            if token != "+":
                raise PacketError("Missing plus")
            state = _State.LAYER
    if state not in _FINAL_STATES:
        raise PacketError("Packet description truncated")


def send_description(description: str) -> None:
    """Build, compile and send on a raw socket the packet described."""
    sock = open_raw_socket()
    with closing(sock):
        packet = Packet()
        parse_description(packet, description)
        packet.compile()
        packet.send(sock)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Send the packet described on the command line; return the exit status."""
    parser = argparse.ArgumentParser(
        prog="hpingkit-apd", description="Send a packet built from a description."
    )
    parser.add_argument("description", help="packet description, e.g. ip(daddr=...)+icmp")
    args = parser.parse_args(argv)
    try:
        send_description(args.description)
    except PacketError as exc:
        print(f"APD error: {exc}", file=sys.stderr)
        return 1
    return 0