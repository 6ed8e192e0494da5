"""HTTP ``Range`` header parsing."""

from __future__ import annotations

import re

from cloudvault.fs.exceptions import RangeNotSatisfiableError
from cloudvault.stores.types import ByteRange

RANGE_RE = re.compile(r"bytes=(\d*)-(\d*)")


def parse_range(header: str | None, size: int) -> ByteRange | None:
    """Parse a single byte range against an object of *size* bytes.

    Supports ``bytes=a-b``, ``bytes=a-`` and the suffix form ``bytes=-n``.
    Only the first range of a multi-range header is honored.  Returns
    ``None`` when there is no header or it cannot be parsed, in which case
    the full body is served.

    Raises:
        RangeNotSatisfiableError: start at or beyond the object, start after
            end, or an empty suffix.  An end past the last byte is clamped.
    """
    if not header:
        return None
    match = RANGE_RE.match(header.strip())
    if match is None:
        return None
    first, last = match.groups()
    if not first and not last:
        return None

    if not first:
        suffix = int(last)
        if suffix == 0:
            raise RangeNotSatisfiableError(size)
        start, end = max(0, size - suffix), size - 1
    else:
        start = int(first)
        end = min(int(last), size - 1) if last else size - 1
    if start >= size or start > end:
        raise RangeNotSatisfiableError(size)
    return ByteRange(offset=start, length=end - start + 1)


def content_range(byte_range: ByteRange, size: int) -> str:
    return f"bytes {byte_range.offset}-{byte_range.end}/{size}"
