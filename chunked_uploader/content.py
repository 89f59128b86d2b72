"""Binary content sources backed by file-like objects."""
import asyncio
import io
import os
from typing import BinaryIO, Optional

from .exceptions import PreconditionError


class StreamContent:
    """
    Wraps a binary stream so it can be uploaded in ranges.

    The stream stays owned by the caller; it is never closed here.
    Non-seekable streams need an explicit length and are read sequentially.

    Usage:
        with open(path, "rb") as fh:
            content = StreamContent(fh)
            session = await orchestrator.upload_entire_file(content)
    """

    def __init__(self, stream: BinaryIO, length: Optional[int] = None, name: Optional[str] = None):
        self._stream = stream
        self._seekable = bool(getattr(stream, "seekable", lambda: False)())
        self._readable = bool(getattr(stream, "readable", lambda: False)())
        self.name = name or os.path.basename(str(getattr(stream, "name", "") or "")) or "upload.bin"

        if length is None:
            if not self._seekable:
                raise PreconditionError("length is required for non-seekable streams")
            length = self._measure()
        if length < 0:
            raise PreconditionError(f"length must be >= 0, got {length}")
        self._length = length
        self._consumed = 0  # bytes read so far from a non-seekable stream

    def _measure(self) -> int:
        current = self._stream.tell()
        end = self._stream.seek(0, io.SEEK_END)
        self._stream.seek(current)
        return end

    @property
    def length(self) -> int:
        return self._length

    @property
    def readable(self) -> bool:
        return self._readable

    @property
    def seekable(self) -> bool:
        return self._seekable

    @property
    def position(self) -> int:
        if not self._seekable:
            raise PreconditionError("stream is not seekable")
        return self._stream.tell()

    def seek(self, offset: int) -> None:
        if not self._seekable:
            raise PreconditionError("stream is not seekable")
        self._stream.seek(offset)

    async def read_range(self, start: int, end: int) -> bytes:
        """Read bytes [start, end) without blocking the event loop."""
        if end < start:
            raise PreconditionError(f"invalid range [{start}, {end})")

        def _read() -> bytes:
            if self._seekable:
                self._stream.seek(start)
                return self._stream.read(end - start)
            if start < self._consumed:
                raise IOError(f"cannot rewind non-seekable stream from {self._consumed} to {start}")
            if start > self._consumed:
                skipped = self._stream.read(start - self._consumed)
                self._consumed += len(skipped)
            data = self._stream.read(end - start)
            self._consumed += len(data)
            return data

        data = await asyncio.to_thread(_read)
        if len(data) != end - start:
            raise IOError(f"short read: expected {end - start} bytes at {start}, got {len(data)}")
        return data


class BytesContent(StreamContent):
    """In-memory content."""

    def __init__(self, data: bytes, name: str = "upload.bin"):
        super().__init__(io.BytesIO(data), len(data), name=name)

