"""Conversion between hexadecimal text and binary data."""

from __future__ import annotations

_HEX_DIGITS = "0123456789abcdef"
_HEX_VALUES = {c: i for i, c in enumerate(_HEX_DIGITS)}
_HEX_VALUES.update({c.upper(): i for c, i in list(_HEX_VALUES.items()) if c.isalpha()})


def hex_to_bin(hexstr: str) -> bytes:
    """Decode a hex string (either case) into bytes.

    Raises ValueError if the length is odd or a character is not a hex digit.
    """
    if len(hexstr) % 2:
        raise ValueError(f"odd length hex string: {hexstr!r}")
    out = bytearray()
    pairs = zip(hexstr[0::2], hexstr[1::2])
    for high, low in pairs:
        try:
            out.append((_HEX_VALUES[high] << 4) | _HEX_VALUES[low])
        except KeyError:
            raise ValueError(f"invalid hex digits: {high + low!r}") from None
    return bytes(out)


def bin_to_hex(data: bytes) -> str:
    """Encode bytes as a lower case hex string."""
    return "".join(_HEX_DIGITS[b >> 4] + _HEX_DIGITS[b & 0xF] for b in bytes(data))