"""Packets built from stacked protocol layers.

A :class:`Packet` holds an ordered list of :class:`Layer` objects (IP header,
IP options, TCP/UDP/ICMP/IGRP headers, raw data...).  ``compile`` fills in
the fields that depend on the following layers: lengths, protocol numbers,
option padding and checksums.  It leaves alone any field whose ``TAKE_*``
flag is set on its layer.  ``build`` concatenates the layers into wire bytes.
"""

from __future__ import annotations

import socket
import struct
import sys
from dataclasses import dataclass, field
from typing import Callable, Optional

from .checksum import MultiChecksum
from .headers import (
    IGRP_OPCODE_REQUEST,
    IPOPT_TS_TSONLY,
    IPPROTO_ICMP,
    IPPROTO_IGRP,
    IPPROTO_IPIP,
    IPPROTO_RAW,
    IPPROTO_TCP,
    IPPROTO_UDP,
    MAX_LAYER,
    TAKE_ICMP_CKSUM,
    TAKE_IGRP_CKSUM,
    TAKE_IP_CKSUM,
    TAKE_IP_HDRLEN,
    TAKE_IP_PROTOCOL,
    TAKE_IP_TOTLEN,
    TAKE_IP_VERSION,
    TAKE_TCP_CKSUM,
    TAKE_TCP_HDRLEN,
    TAKE_UDP_CKSUM,
    TAKE_UDP_LEN,
    IcmpHeader,
    IcmpType,
    IgrpHeader,
    IpHeader,
    IpOptionKind,
    LayerType,
    PseudoHeader,
    TcpHeader,
    TcpOptionKind,
    UdpHeader,
)

LAST_LAYER = -1
OPT_RAPD_HEXDATA = 1 << 0

_IPOPT_SIZES = {
    IpOptionKind.END: 1,
    IpOptionKind.NOOP: 1,
    IpOptionKind.SEC: 11,
    IpOptionKind.SID: 4,
    IpOptionKind.LSRR: 40,
    IpOptionKind.SSRR: 40,
    IpOptionKind.RR: 40,
    IpOptionKind.TIMESTAMP: 40,
}

_TCPOPT_SIZES = {
    TcpOptionKind.NOP: 1,
    TcpOptionKind.EOL: 1,
    TcpOptionKind.MAXSEG: 4,
    TcpOptionKind.WINDOW: 3,
    TcpOptionKind.SACK_PERM: 2,
    TcpOptionKind.SACK: 8 * 4 + 2,
    TcpOptionKind.ECHOREQUEST: 6,
    TcpOptionKind.ECHOREPLY: 6,
    TcpOptionKind.TIMESTAMP: 10,
}

_PROTOCOL_OF = {
    LayerType.IP: IPPROTO_IPIP,
    LayerType.ICMP: IPPROTO_ICMP,
    LayerType.UDP: IPPROTO_UDP,
    LayerType.TCP: IPPROTO_TCP,
    LayerType.IGRP: IPPROTO_IGRP,
}

_BSD_RAW_SOCKETS = sys.platform.startswith(("freebsd", "netbsd", "darwin", "bsdi"))


class PacketError(Exception):
    """Raised when a packet cannot be assembled, compiled or sent."""


@dataclass
class Layer:
    """One layer of a packet.

    ``data`` holds the layer bytes; only the first ``size`` of them go on the
    wire.  ``flags`` holds the ``TAKE_*`` bits of the layer.
    """

    type: LayerType
    data: bytearray = field(default_factory=bytearray)
    flags: int = 0
    size: int = -1

    def __post_init__(self) -> None:
        self.data = bytearray(self.data)
        if self.size < 0:
            self.size = len(self.data)

    def __bytes__(self) -> bytes:
        return bytes(self.data[: self.size])


def resolve(hostname: str) -> int:
    """Return the IPv4 address of a dotted address or host name as an integer."""
    try:
        packed = socket.inet_aton(hostname)
    except (OSError, ValueError):
        try:
            packed = socket.inet_aton(socket.gethostbyname(hostname))
        except (OSError, UnicodeError) as exc:
            raise PacketError("Can't resolve the hostname") from exc
    return int.from_bytes(packed, "big")


def open_raw_socket() -> socket.socket:
    """Open a raw IPv4 socket that accepts our own IP headers and broadcasts."""
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_RAW, socket.IPPROTO_RAW)
    except OSError as exc:
        raise PacketError("Can't open the raw socket") from exc
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_HDRINCL, 1)
    except OSError as exc:
        sock.close()
        raise PacketError("Can't set socket options") from exc
    return sock


class Packet:
    """An ordered stack of layers that compiles into one datagram."""

    def __init__(self) -> None:
        self.layers: list[Layer] = []
        self.options = 0
        self._defaults: dict[LayerType, bytes] = {}

    # ------------------------------------------------------------ layers --

    def set_default(self, layer_type: LayerType, data: Optional[bytes]) -> None:
        """Use ``data`` as the initial content of new layers of this type."""
        if data is None:
            self._defaults.pop(LayerType(layer_type), None)
        else:
            self._defaults[LayerType(layer_type)] = bytes(data)

    def _add(self, size: int, layer_type: LayerType) -> Layer:
        if len(self.layers) >= MAX_LAYER:
            raise PacketError("No space for the next layer")
        data = bytearray(size)
        default = self._defaults.get(layer_type)
        if size and default is not None:
            chunk = default[:size]
            data[: len(chunk)] = chunk
        layer = Layer(layer_type, data)
        self.layers.append(layer)
        return layer

    def add_ip(self) -> Layer:
        """Append an IP header layer."""
        return self._add(IpHeader.SIZE, LayerType.IP)

    def add_ipopt(self, option: int) -> Layer:
        """Append an IP option layer of the given kind."""
        try:
            kind = IpOptionKind(option)
            opt_len = _IPOPT_SIZES[kind]
        except (ValueError, KeyError):
            raise PacketError(f"Unsupported IP option: {option}") from None
        layer = self._add(opt_len, LayerType.IPOPT)
        data = layer.data
        data[0] = kind
        if kind in (IpOptionKind.END, IpOptionKind.NOOP):
            return layer
        data[1] = opt_len
        if kind in (IpOptionKind.LSRR, IpOptionKind.SSRR, IpOptionKind.RR):
            # Room length minus 3, so gateways can compare len and ptr.
            data[1] = opt_len - 2 - 3
            data[2] = 4
        elif kind is IpOptionKind.TIMESTAMP:
            data[1] = opt_len - 2 - 4
            data[2] = 5
            data[3] = IPOPT_TS_TSONLY
        return layer

    def add_udp(self) -> Layer:
        """Append a UDP header layer."""
        return self._add(UdpHeader.SIZE, LayerType.UDP)

    def add_tcp(self) -> Layer:
        """Append a TCP header layer."""
        return self._add(TcpHeader.SIZE, LayerType.TCP)

    def add_tcpopt(self, option: int) -> Layer:
        """Append a TCP option layer of the given kind."""
        try:
            kind = TcpOptionKind(option)
        except ValueError:
            raise PacketError(f"Unsupported TCP option: {option}") from None
        opt_len = _TCPOPT_SIZES[kind]
        layer = self._add(opt_len, LayerType.TCPOPT)
        data = layer.data
        data[0] = kind
        if kind not in (TcpOptionKind.EOL, TcpOptionKind.NOP):
            data[1] = opt_len
        if kind in (TcpOptionKind.ECHOREQUEST, TcpOptionKind.ECHOREPLY, TcpOptionKind.TIMESTAMP):
            data[2:opt_len] = bytes(opt_len - 2)
        return layer

    def add_icmp(self) -> Layer:
        """Append an ICMP header layer, an echo request by default."""
        layer = self._add(IcmpHeader.SIZE, LayerType.ICMP)
        layer.data[0] = IcmpType.ECHO
        layer.data[1] = 0
        return layer

    def add_igrp(self) -> Layer:
        """Append an IGRP header layer, a version 1 request by default."""
        layer = self._add(IgrpHeader.SIZE, LayerType.IGRP)
        layer.data[0] = (1 << 4) | IGRP_OPCODE_REQUEST
        layer.data[1:10] = bytes(9)
        return layer

    def add_igrp_entry(self) -> Layer:
        """Append an IGRP routing entry layer."""
        return self._add(14, LayerType.IGRPENTRY)

    def add_data(self, size: int) -> Layer:
        """Append a zero filled data layer of ``size`` bytes."""
        if size < 0:
            raise PacketError("Tried to add a DATA layer with size < 0")
        return self._add(size, LayerType.DATA)

    def _index(self, index: int) -> int:
        if index == LAST_LAYER:
            index = len(self.layers) - 1
        if not 0 <= index < len(self.layers):
            raise PacketError(f"Invalid layer: {index}")
        return index

    def remove_layer(self, index: int) -> None:
        """Remove a layer; -1 selects the last one."""
        del self.layers[self._index(index)]

    def relative_size(self, index: int) -> int:
        """Return the size of the given layer plus all the following ones."""
        return sum(layer.size for layer in self.layers[max(index, 0):])

    def size(self) -> int:
        """Return the total size of the packet."""
        return self.relative_size(0)

    def set_flags(self, index: int, flags: int) -> None:
        """Replace the ``TAKE_*`` flags of a layer; -1 selects the last one."""
        try:
            self.layers[self._index(index)].flags = flags
        except PacketError:
            raise PacketError("Invalid layer setting layer flags") from None

    # ---------------------------------------------------------- compiling --

    def compile(self) -> None:
        """Fill in dependent fields of every layer, from the last to the first."""
        compilers: dict[LayerType, Callable[[int], None]] = {
            LayerType.IP: self._compile_ip,
            LayerType.IPOPT: self._compile_ipopt,
            LayerType.ICMP: self._compile_icmp,
            LayerType.UDP: self._compile_udp,
            LayerType.TCP: self._compile_tcp,
            LayerType.TCPOPT: self._compile_tcpopt,
            LayerType.IGRP: self._compile_igrp,
        }
        for index in reversed(range(len(self.layers))):
            compiler = compilers.get(self.layers[index].type)
            if compiler is not None:
                compiler(index)

    def _following(self, index: int, layer_type: LayerType) -> list[Layer]:
        run = []
        for layer in self.layers[index + 1:]:
            if layer.type != layer_type:
                break
            run.append(layer)
        return run

    def _compile_ip(self, index: int) -> None:
        layer = self.layers[index]
        flags = layer.flags
        hdr = IpHeader.unpack(layer.data)
        options = self._following(index, LayerType.IPOPT)

        if not flags & TAKE_IP_VERSION:
            hdr.version = 4
        if not flags & TAKE_IP_HDRLEN:
            optlen = sum(opt.size for opt in options)
            hdr.ihl = ((IpHeader.SIZE >> 2) + (optlen >> 2)) & 0xF
        if not flags & TAKE_IP_TOTLEN:
            hdr.tot_len = self.relative_size(index) & 0xFFFF
        if not flags & TAKE_IP_PROTOCOL:
            hdr.protocol = IPPROTO_RAW
            nxt = index + 1 + len(options)
            if nxt < len(self.layers):
                hdr.protocol = _PROTOCOL_OF.get(self.layers[nxt].type, IPPROTO_RAW)
        if not flags & TAKE_IP_CKSUM:
            hdr.check = 0
            mc = MultiChecksum().update(hdr.pack())
            for opt in options:
                mc.update(bytes(opt))
            hdr.check = mc.final()
        layer.data[: IpHeader.SIZE] = hdr.pack()

    def _pad_options(self, index: int, layer_type: LayerType, nop: int) -> None:
        # Only the last option of a run is padded.
        if index + 1 < len(self.layers) and self.layers[index + 1].type == layer_type:
            return
        first = index
        while first > 0 and self.layers[first - 1].type == layer_type:
            first -= 1
        opt_size = sum(layer.size for layer in self.layers[first : index + 1])
        if opt_size % 4:
            padding = 4 - opt_size % 4
            layer = self.layers[index]
            layer.data = layer.data[: layer.size] + bytearray([nop]) * padding
            layer.size += padding

    def _compile_ipopt(self, index: int) -> None:
        self._pad_options(index, LayerType.IPOPT, IpOptionKind.NOP)

    def _compile_tcpopt(self, index: int) -> None:
        self._pad_options(index, LayerType.TCPOPT, TcpOptionKind.NOP)

    def _transport_checksum(self, index: int) -> int:
        """Checksum of the layers from ``index`` on, with the IP pseudo header."""
        j = index - 1
        while j > 0 and self.layers[j].type == LayerType.IPOPT:
            j -= 1
        if j < 0 or self.layers[j].type != LayerType.IP:
            raise PacketError("TCP/UDP checksum requested, but IP header not found")
        ip = IpHeader.unpack(self.layers[j].data)
        protocol = IPPROTO_TCP if self.layers[index].type == LayerType.TCP else IPPROTO_UDP
        pseudo = PseudoHeader(ip.saddr, ip.daddr, protocol, self.relative_size(index) & 0xFFFF)
        mc = MultiChecksum().update(pseudo.pack())
        for layer in self.layers[index:]:
            mc.update(bytes(layer))
        return mc.final()

    def _plain_checksum(self, index: int) -> int:
        mc = MultiChecksum()
        for layer in self.layers[index:]:
            mc.update(bytes(layer))
        return mc.final()

    def _compile_tcp(self, index: int) -> None:
        layer = self.layers[index]
        if not layer.flags & TAKE_TCP_HDRLEN:
            optlen = sum(opt.size for opt in self._following(index, LayerType.TCPOPT))
            off = ((TcpHeader.SIZE >> 2) + (optlen >> 2)) & 0xF
            layer.data[12] = (off << 4) | (layer.data[12] & 0x0F)
        if not layer.flags & TAKE_TCP_CKSUM:
            struct.pack_into("!H", layer.data, 16, 0)
            struct.pack_into("!H", layer.data, 16, self._transport_checksum(index))

    def _compile_udp(self, index: int) -> None:
        layer = self.layers[index]
        if not layer.flags & TAKE_UDP_LEN:
            struct.pack_into("!H", layer.data, 4, self.relative_size(index) & 0xFFFF)
        if not layer.flags & TAKE_UDP_CKSUM:
            struct.pack_into("!H", layer.data, 6, 0)
            struct.pack_into("!H", layer.data, 6, self._transport_checksum(index))

    def _compile_icmp(self, index: int) -> None:
        layer = self.layers[index]
        if not layer.flags & TAKE_ICMP_CKSUM:
            struct.pack_into("!H", layer.data, 2, 0)
            struct.pack_into("!H", layer.data, 2, self._plain_checksum(index))

    def _compile_igrp(self, index: int) -> None:
        layer = self.layers[index]
        if not layer.flags & TAKE_IGRP_CKSUM:
            struct.pack_into("!H", layer.data, 10, 0)
            struct.pack_into("!H", layer.data, 10, self._plain_checksum(index))

    # ------------------------------------------------------ build and send --

    def build(self) -> bytes:
        """Return the wire bytes of all the layers."""
        if self.size() == 0:
            raise PacketError("Total size 0 building the packet")
        return b"".join(bytes(layer) for layer in self.layers)

    def _bsd_fix(self, packet: bytearray) -> None:
        if not self.layers or self.layers[0].type != LayerType.IP or len(packet) < IpHeader.SIZE:
            raise PacketError("BSD fix requested, but layer 0 not IP")
        if _BSD_RAW_SOCKETS:
            # These raw socket layers want tot_len and frag_off in host order.
            for offset in (2, 6):
                value = struct.unpack_from("!H", packet, offset)[0]
                struct.pack_into("=H", packet, offset, value)

    def send(self, sock: socket.socket, address: Optional[tuple] = None) -> None:
        """Build the packet and send it on ``sock``.

        Without ``address`` the destination of the first (IP) layer is used.
        """
        if address is None:
            if not self.layers or self.layers[0].type != LayerType.IP:
                raise PacketError("socket address completion requested, but layer 0 isn't IP")
            daddr = IpHeader.unpack(self.layers[0].data).daddr
            address = (socket.inet_ntoa(daddr.to_bytes(4, "big")), 0)
        packet = bytearray(self.build())
        self._bsd_fix(packet)
        try:
            sock.sendto(bytes(packet), address)
        except OSError as exc:
            raise PacketError(f"Sending the packet: {exc}") from exc