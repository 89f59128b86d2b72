"""Byte window arithmetic and Range header parsing."""
import re
from typing import Optional

from ..exceptions import PreconditionError
from ..models import ByteRange

_RANGE_RE = re.compile(r"\s*bytes=(?P<start>\d+)-(?P<end>\d+)\s*", re.IGNORECASE)


def calculate_range(
    written: int,
    chunk_size: int,
    length: int,
    seekable: bool = False,
    position: Optional[int] = None,
) -> ByteRange:
    """
    Compute the next window to send.

    Args:
        written: Bytes the session believes the server holds
        chunk_size: Maximum window size
        length: Total content length
        seekable: Whether the source reports its own read position
        position: Current source position, used instead of written when seekable

    Returns:
        ByteRange with start <= end <= length
    """
    if chunk_size <= 0:
        raise PreconditionError(f"chunk_size must be > 0, got {chunk_size}")
    if written < 0 or length < 0:
        raise PreconditionError(f"invalid offsets: written={written}, length={length}")

    start = position if seekable and position is not None else written
    if start > length:
        raise PreconditionError(f"start offset {start} is past the end of content ({length})")
    return ByteRange(start, min(start + chunk_size, length))


def parse_range_header(value: Optional[str]) -> Optional[ByteRange]:
    """
    Parse a `bytes=<start>-<end>` header.

    Returns None for anything that does not match exactly, including
    ranges whose end precedes their start.
    """
    if not value:
        return None
    match = _RANGE_RE.fullmatch(value)
    if not match:
        return None
    start, end = int(match.group("start")), int(match.group("end"))
    if end < start:
        return None
    return ByteRange(start, end)
