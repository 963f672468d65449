"""A growable, binary-safe byte buffer."""

from __future__ import annotations

from typing import Union

BytesLike = Union[bytes, bytearray, memoryview, str, "AdBuffer"]


def _to_bytes(data: BytesLike) -> bytes:
    if isinstance(data, AdBuffer):
        return bytes(data)
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class AdBuffer:
    """A dynamic byte buffer with append and trim operations."""

    def __init__(self, data: BytesLike = b"") -> None:
        self._buf = bytearray(_to_bytes(data))

    def add(self, data: BytesLike) -> None:
        """Append bytes, text or another buffer."""
        self._buf += _to_bytes(data)

    def add_char(self, char: int | str | bytes) -> None:
        """Append one byte; integers are taken modulo 256."""
        if isinstance(char, int):
            self._buf.append(char & 0xFF)
            return
        raw = _to_bytes(char)
        if len(raw) != 1:
            raise ValueError("add_char needs exactly one byte")
        self._buf += raw

    def add_long(self, value: int) -> None:
        """Append the decimal representation of a signed integer."""
        self._buf += str(int(value)).encode("ascii")

    def add_ulong(self, value: int) -> None:
        """Append the decimal representation of a non-negative integer."""
        value = int(value)
        if value < 0:
            raise ValueError("add_ulong needs a non-negative value")
        self._buf += str(value).encode("ascii")

    def cut(self, count: int) -> None:
        """Keep only the first count bytes; no-op if already shorter."""
        if count < 0:
            raise ValueError("count must not be negative")
        if count < len(self._buf):
            del self._buf[count:]

    def ltrim(self, count: int) -> None:
        """Discard count bytes from the left."""
        if count < 0:
            raise ValueError("count must not be negative")
        del self._buf[:count]

    def rtrim(self, count: int) -> None:
        """Discard count bytes from the right; no-op if count exceeds the length."""
        if count < 0:
            raise ValueError("count must not be negative")
        if count <= len(self._buf):
            self.cut(len(self._buf) - count)

    def reset(self) -> None:
        """Empty the buffer."""
        self._buf.clear()

    def clone(self) -> "AdBuffer":
        """Return an independent copy."""
        return AdBuffer(bytes(self._buf))

    def printf(self, fmt: str, *args: object) -> None:
        """Append text formatted with printf-style %-formatting."""
        text = fmt % args if args else fmt
        self._buf += text.encode("utf-8")

    def __len__(self) -> int:
        return len(self._buf)

    def __bytes__(self) -> bytes:
        return bytes(self._buf)

    def __str__(self) -> str:
        return self._buf.decode("utf-8", errors="replace")

    def __repr__(self) -> str:
        return f"AdBuffer({bytes(self._buf)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AdBuffer):
            return self._buf == other._buf
        return NotImplemented