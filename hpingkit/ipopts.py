"""Building and displaying IPv4 header options."""

from __future__ import annotations

import warnings
from typing import Optional

IP_HEADER_SIZE = 20
MAX_IPOPTLEN = 40

IPOPT_EOL = 0
IPOPT_NOP = 1
IPOPT_RR = 7
IPOPT_LSRR = 0x83
IPOPT_MINOFF = 4

_RR_PLACEHOLDER = bytes([1, 2, 3, 4])
_RR_POINTER = 8


def build_ip_options(
    lsrr: Optional[bytes] = None,
    ssrr: Optional[bytes] = None,
    record_route: bool = False,
) -> bytes:
    """Assemble the IP options area from prebuilt source routes and record route.

    ``lsrr`` and ``ssrr`` are complete option encodings.  Options that do not
    fit are dropped with a warning.  The result is padded with NOPs to a
    multiple of four bytes and its last byte is an end-of-list marker; it is
    empty when there are no options.
    """
    buf = bytearray([IPOPT_NOP]) * MAX_IPOPTLEN
    length = 0

    if lsrr:
        if len(lsrr) <= MAX_IPOPTLEN - 1:
            buf[: len(lsrr)] = lsrr
            length = len(lsrr)
        else:
            warnings.warn("loose source route is too long, discarding it", stacklevel=2)

    if ssrr:
        if len(ssrr) + length <= MAX_IPOPTLEN - 1:
            buf[length : length + len(ssrr)] = ssrr
            length += len(ssrr)
        else:
            warnings.warn("strict source route is too long, discarding it", stacklevel=2)

    if record_route:
        if length <= 33:
            buf[length : length + 3] = bytes([IPOPT_RR, MAX_IPOPTLEN - 1 - length, _RR_POINTER])
            buf[length + 3 : length + 7] = _RR_PLACEHOLDER
            length = MAX_IPOPTLEN - 1
        else:
            warnings.warn("no room for record route, discarding option", stacklevel=2)

    if not length:
        return b""
    length = (length + 3) & ~3
    buf[length - 1] = IPOPT_EOL
    return bytes(buf[:length])


class RouteOptionFormatter:
    """Render the options of received IP headers as text.

    A record route identical to the one seen in the previous packet is shown
    as ``(same route)``.
    """

    def __init__(self) -> None:
        self._old_len = 0
        self._old_route = b""

    def format(self, packet: bytes) -> str:
        """Return the text describing the options of the IP header in ``packet``."""
        data = bytes(packet)
        if len(data) < IP_HEADER_SIZE:
            raise ValueError("packet shorter than an IP header")
        hlen = (data[0] & 0x0F) * 4
        if hlen > len(data):
            raise ValueError("IP header length exceeds packet size")

        def byte_at(offset: int) -> int:
            if offset >= len(data):
                raise ValueError("truncated IP option")
            return data[offset]

        def address_at(offset: int) -> str:
            return ".".join(str(byte_at(offset + k)) for k in range(4))

        out: list[str] = []
        cp = IP_HEADER_SIZE
        while hlen > IP_HEADER_SIZE:
            kind = byte_at(cp)
            if kind == IPOPT_EOL:
                hlen = 0
            elif kind == IPOPT_LSRR:
                out.append("LSRR: ")
                hlen -= 2
                remaining = byte_at(cp + 1)
                cp += 2
                if remaining > IPOPT_MINOFF:
                    while True:
                        out.append("\t" + address_at(cp + 1))
                        cp += 4
                        hlen -= 4
                        remaining -= 4
                        if remaining <= IPOPT_MINOFF:
                            break
                        out.append("\n")
            elif kind == IPOPT_RR:
                optlen = byte_at(cp + 1)
                pointer = byte_at(cp + 2)
                cp += 2
                hlen -= 2
                used = min(pointer, optlen) - IPOPT_MINOFF
                if used > 0:
                    cp, hlen = self._record_route(data, cp, hlen, used, out, address_at)
            elif kind == IPOPT_NOP:
                out.append("NOP\n")
            else:
                out.append(f"unknown option {kind:x}\n")
            hlen -= 1
            cp += 1
        return "".join(out)

    def _record_route(self, data, cp, hlen, used, out, address_at):
        route = data[cp : cp + used]
        if (
            used == self._old_len
            and cp == IP_HEADER_SIZE + 2
            and route == self._old_route
        ):
            out.append("\t(same route)\n")
            skip = ((used + 3) // 4) * 4
            return cp + skip, hlen - skip
        self._old_len = used
        self._old_route = route
        out.append("RR: ")
        while True:
            out.append("\t" + address_at(cp + 1))
            cp += 4
            hlen -= 4
            used -= 4
            if used <= 0:
                break
            out.append("\n")
        out.append("\n")
        return cp, hlen