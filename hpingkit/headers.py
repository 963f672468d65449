"""Wire formats of the protocol headers: IPv4, UDP, TCP, ICMP and IGRP.

Every header is a dataclass whose fields hold host-order integers.
``pack`` produces the network-order bytes and ``unpack`` reads them back.
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import ClassVar

MAX_LAYER = 256
MAX_IP_SIZE = 65535
MAX_IPOPT_LEN = 40

IP_MF = 0x2000
IP_DF = 0x4000
IP_RF = 0x8000

IPOPT_COPY = 0x80
IPOPT_CLASS_MASK = 0x60
IPOPT_NUMBER_MASK = 0x1F
IPOPT_CONTROL = 0x00
IPOPT_MEASUREMENT = 0x40

IPOPT_TS_TSONLY = 0
IPOPT_TS_TSANDADDR = 1
IPOPT_TS_PRESPEC = 3

IGRP_OPCODE_UPDATE = 1
IGRP_OPCODE_REQUEST = 2

IPPROTO_ICMP = 1
IPPROTO_IPIP = 4
IPPROTO_TCP = 6
IPPROTO_UDP = 17
IPPROTO_IGRP = 9
IPPROTO_RAW = 255

# Per-layer flags telling the compiler to keep a user supplied value.
TAKE_NONE = 0
TAKE_IP_VERSION = 1 << 0
TAKE_IP_HDRLEN = 1 << 1
TAKE_IP_TOTLEN = 1 << 2
TAKE_IP_PROTOCOL = 1 << 3
TAKE_IP_CKSUM = 1 << 4
TAKE_IPOPT_PTR = 1 << 0
TAKE_ICMP_CKSUM = 1 << 0
TAKE_UDP_CKSUM = 1 << 0
TAKE_UDP_LEN = 1 << 1
TAKE_TCP_HDRLEN = 1 << 0
TAKE_TCP_CKSUM = 1 << 1
TAKE_IGRP_CKSUM = 1 << 0


class LayerType(enum.IntEnum):
    """The kind of a packet layer."""

    NULL = 0
    IP = 1
    IPOPT = 2
    ICMP = 3
    UDP = 4
    TCP = 5
    TCPOPT = 6
    IGRP = 7
    IGRPENTRY = 8
    DATA = 31


class IpOptionKind(enum.IntEnum):
    """IPv4 option type octets."""

    END = 0 | IPOPT_CONTROL
    NOOP = 1 | IPOPT_CONTROL
    SEC = 2 | IPOPT_CONTROL | IPOPT_COPY
    LSRR = 3 | IPOPT_CONTROL | IPOPT_COPY
    TIMESTAMP = 4 | IPOPT_MEASUREMENT
    RR = 7 | IPOPT_CONTROL
    SID = 8 | IPOPT_CONTROL | IPOPT_COPY
    SSRR = 9 | IPOPT_CONTROL | IPOPT_COPY
    RA = 20 | IPOPT_CONTROL | IPOPT_COPY
    EOL = END
    NOP = NOOP
    TS = TIMESTAMP

    @property
    def copied(self) -> bool:
        return bool(self.value & IPOPT_COPY)

    @property
    def option_class(self) -> int:
        return self.value & IPOPT_CLASS_MASK

    @property
    def number(self) -> int:
        return self.value & IPOPT_NUMBER_MASK


class TcpOptionKind(enum.IntEnum):
    """TCP option kind octets."""

    EOL = 0
    NOP = 1
    MAXSEG = 2
    WINDOW = 3
    SACK_PERM = 4
    SACK = 5
    ECHOREQUEST = 6
    ECHOREPLY = 7
    TIMESTAMP = 8


class TcpFlag(enum.IntFlag):
    """TCP header flag bits, including the two reserved X and Y bits."""

    FIN = 0x01
    SYN = 0x02
    RST = 0x04
    PUSH = 0x08
    ACK = 0x10
    URG = 0x20
    X = 0x40
    Y = 0x80


class IcmpType(enum.IntEnum):
    """ICMP message types."""

    ECHOREPLY = 0
    DEST_UNREACH = 3
    SOURCE_QUENCH = 4
    REDIRECT = 5
    ECHO = 8
    TIME_EXCEEDED = 11
    PARAMETERPROB = 12
    TIMESTAMP = 13
    TIMESTAMPREPLY = 14
    INFO_REQUEST = 15
    INFO_REPLY = 16
    ADDRESS = 17
    ADDRESSREPLY = 18


def _check_nibble(name: str, value: int) -> None:
    if not 0 <= value <= 0xF:
        raise ValueError(f"{name} must fit in 4 bits: {value}")


def _pack(fmt: struct.Struct, *values: int) -> bytes:
    try:
        return fmt.pack(*values)
    except struct.error as exc:
        raise ValueError(f"field out of range: {exc}") from None


def _need(data: bytes, size: int, what: str) -> bytes:
    raw = bytes(data)
    if len(raw) < size:
        raise ValueError(f"{what} needs {size} bytes, got {len(raw)}")
    return raw[:size]


@dataclass
class IpHeader:
    """IPv4 header without options; addresses are 32-bit integers."""

    version: int = 4
    ihl: int = 5
    tos: int = 0
    tot_len: int = 0
    id: int = 0
    frag_off: int = 0
    ttl: int = 0
    protocol: int = 0
    check: int = 0
    saddr: int = 0
    daddr: int = 0

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("!BBHHHBBHII")
    SIZE: ClassVar[int] = 20

    def pack(self) -> bytes:
        _check_nibble("version", self.version)
        _check_nibble("ihl", self.ihl)
        return _pack(
            self._FORMAT,
            (self.version << 4) | self.ihl,
            self.tos,
            self.tot_len,
            self.id,
            self.frag_off,
            self.ttl,
            self.protocol,
            self.check,
            self.saddr,
            self.daddr,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "IpHeader":
        (vihl, tos, tot_len, ident, frag, ttl, proto, check, saddr, daddr) = (
            cls._FORMAT.unpack(_need(data, cls.SIZE, "IP header"))
        )
        return cls(vihl >> 4, vihl & 0xF, tos, tot_len, ident, frag, ttl, proto,
                   check, saddr, daddr)


@dataclass
class UdpHeader:
    """UDP header."""

    sport: int = 0
    dport: int = 0
    length: int = 0
    checksum: int = 0

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("!HHHH")
    SIZE: ClassVar[int] = 8

    def pack(self) -> bytes:
        return _pack(self._FORMAT, self.sport, self.dport, self.length, self.checksum)

    @classmethod
    def unpack(cls, data: bytes) -> "UdpHeader":
        return cls(*cls._FORMAT.unpack(_need(data, cls.SIZE, "UDP header")))


@dataclass
class TcpHeader:
    """TCP header without options; ``off`` is the data offset in 32-bit words."""

    sport: int = 0
    dport: int = 0
    seq: int = 0
    ack: int = 0
    x2: int = 0
    off: int = 0
    flags: int = 0
    win: int = 0
    checksum: int = 0
    urp: int = 0

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("!HHIIBBHHH")
    SIZE: ClassVar[int] = 20

    def pack(self) -> bytes:
        _check_nibble("off", self.off)
        _check_nibble("x2", self.x2)
        return _pack(
            self._FORMAT,
            self.sport,
            self.dport,
            self.seq,
            self.ack,
            (self.off << 4) | self.x2,
            int(self.flags),
            self.win,
            self.checksum,
            self.urp,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "TcpHeader":
        sport, dport, seq, ack, offx2, flags, win, cksum, urp = cls._FORMAT.unpack(
            _need(data, cls.SIZE, "TCP header")
        )
        return cls(sport, dport, seq, ack, offx2 & 0xF, offx2 >> 4, flags, win, cksum, urp)


@dataclass
class IcmpHeader:
    """ICMP header; the last four bytes are either id/sequence or a gateway."""

    type: int = IcmpType.ECHO
    code: int = 0
    checksum: int = 0
    id: int = 0
    sequence: int = 0

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("!BBHHH")
    SIZE: ClassVar[int] = 8

    @property
    def gateway(self) -> int:
        """The last four bytes read as one 32-bit value."""
        return (self.id << 16) | self.sequence

    @gateway.setter
    def gateway(self, value: int) -> None:
        if not 0 <= value <= 0xFFFFFFFF:
            raise ValueError(f"gateway out of range: {value}")
        self.id = value >> 16
        self.sequence = value & 0xFFFF

    def pack(self) -> bytes:
        return _pack(self._FORMAT, int(self.type), self.code, self.checksum,
                     self.id, self.sequence)

    @classmethod
    def unpack(cls, data: bytes) -> "IcmpHeader":
        return cls(*cls._FORMAT.unpack(_need(data, cls.SIZE, "ICMP header")))


@dataclass
class IgrpHeader:
    """IGRP header."""

    version: int = 1
    opcode: int = IGRP_OPCODE_REQUEST
    edition: int = 0
    autosys: int = 0
    interior: int = 0
    system: int = 0
    exterior: int = 0
    checksum: int = 0

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("!BBHHHHH")
    SIZE: ClassVar[int] = 12

    def pack(self) -> bytes:
        _check_nibble("version", self.version)
        _check_nibble("opcode", self.opcode)
        return _pack(
            self._FORMAT,
            (self.version << 4) | self.opcode,
            self.edition,
            self.autosys,
            self.interior,
            self.system,
            self.exterior,
            self.checksum,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "IgrpHeader":
        vop, edition, autosys, interior, system, exterior, cksum = cls._FORMAT.unpack(
            _need(data, cls.SIZE, "IGRP header")
        )
        return cls(vop >> 4, vop & 0xF, edition, autosys, interior, system,
                   exterior, cksum)


@dataclass
class IgrpEntry:
    """One IGRP routing entry; delay and bandwidth are 24-bit values."""

    destination: bytes = b"\x00\x00\x00"
    delay: int = 0
    bandwidth: int = 0
    mtu: int = 0
    reliability: int = 0
    load: int = 0
    hopcount: int = 0

    SIZE: ClassVar[int] = 14
    _TAIL: ClassVar[struct.Struct] = struct.Struct("!HBBB")

    def pack(self) -> bytes:
        dest = bytes(self.destination)
        if len(dest) != 3:
            raise ValueError("destination must be exactly 3 bytes")
        for name, value in (("delay", self.delay), ("bandwidth", self.bandwidth)):
            if not 0 <= value <= 0xFFFFFF:
                raise ValueError(f"{name} must fit in 24 bits: {value}")
        return (
            dest
            + self.delay.to_bytes(3, "big")
            + self.bandwidth.to_bytes(3, "big")
            + _pack(self._TAIL, self.mtu, self.reliability, self.load, self.hopcount)
        )

    @classmethod
    def unpack(cls, data: bytes) -> "IgrpEntry":
        raw = _need(data, cls.SIZE, "IGRP entry")
        mtu, reliability, load, hopcount = cls._TAIL.unpack(raw[9:])
        return cls(
            raw[0:3],
            int.from_bytes(raw[3:6], "big"),
            int.from_bytes(raw[6:9], "big"),
            mtu,
            reliability,
            load,
            hopcount,
        )


@dataclass
class PseudoHeader:
    """The TCP/UDP pseudo header that enters the transport checksum."""

    saddr: int = 0
    daddr: int = 0
    protocol: int = 0
    length: int = 0

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("!IIBBH")
    SIZE: ClassVar[int] = 12

    def pack(self) -> bytes:
        return _pack(self._FORMAT, self.saddr, self.daddr, 0, self.protocol, self.length)