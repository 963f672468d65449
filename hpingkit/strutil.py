"""Small string helpers: numeric checks and field splitting."""

from __future__ import annotations

import re

_SPACE = " \t\n\v\f\r"
_NUMBER_RE = re.compile(rf"[{re.escape(_SPACE)}]*-?[0-9]+[{re.escape(_SPACE)}]*")


def is_number(text: str) -> bool:
    """Return True if text looks like an integer, optionally negative.

    Leading and trailing whitespace is allowed; at least one digit is needed.
    """
    return _NUMBER_RE.fullmatch(text) is not None


def split_fields(separators: str, text: str, limit: int | None = None) -> list[str]:
    """Split text on any of the separator characters, skipping empty fields.

    At most ``limit`` fields are returned; the rest of the text is dropped.
    """
    if limit is not None and limit < 0:
        raise ValueError("limit must not be negative")
    if separators:
        pattern = "[" + re.escape(separators) + "]"
        fields = [f for f in re.split(pattern, text) if f]
    else:
        fields = [text] if text else []
    return fields if limit is None else fields[:limit]