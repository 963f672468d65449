"""The Internet checksum (RFC 1071), over one buffer or several."""

from __future__ import annotations

from typing import Optional, Union

BytesLike = Union[bytes, bytearray, memoryview]

_BAD_MASK = 0x5555


def _sum_words(data: bytes) -> int:
    if len(data) % 2:
        data = data + b"\x00"
    return sum((high << 8) | low for high, low in zip(data[0::2], data[1::2]))


def _fold(total: int) -> int:
    while total >> 16:
        total = (total >> 16) + (total & 0xFFFF)
    return total


def internet_checksum(data: BytesLike, bad: bool = False) -> int:
    """Return the 16-bit one's complement checksum, to be stored big-endian.

    With ``bad`` set a deliberately wrong checksum is returned.
    """
    total = _fold(_sum_words(bytes(data)))
    if bad:
        total ^= _BAD_MASK
    return ~total & 0xFFFF


class MultiChecksum:
    """Accumulate the Internet checksum over data given in several pieces.

    Pieces of odd length are handled: the result equals the checksum of
    the concatenation of all the pieces.
    """

    def __init__(self) -> None:
        self._total = 0
        self._pending: Optional[int] = None

    def update(self, data: BytesLike) -> "MultiChecksum":
        """Add the next piece of data."""
        chunk = bytes(data)
        if self._pending is not None and chunk:
            self._total += (self._pending << 8) | chunk[0]
            self._pending = None
            chunk = chunk[1:]
        if len(chunk) % 2:
            self._pending = chunk[-1]
            chunk = chunk[:-1]
        self._total += _sum_words(chunk)
        return self

    def final(self) -> int:
        """Return the checksum of all the data added so far."""
        total = self._total
        if self._pending is not None:
            total += self._pending << 8
        return ~_fold(total) & 0xFFFF