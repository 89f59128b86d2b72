"""
Error hierarchy for upload operations.

Every error raised from a public operation carries the in-flight session
(or None when no session existed yet) so callers can decide whether to
resume from the last confirmed offset.
"""
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .session import UploadSession


class TransportError(Exception):
    """Raised by the HTTP client when a request cannot be sent or received."""

    def __init__(self, message: str, method: str = "", url: str = ""):
        super().__init__(message)
        self.method = method
        self.url = url


class UploaderError(Exception):
    """Base class for upload failures."""

    retryable = True

    def __init__(self, message: str, session: Optional["UploadSession"] = None):
        super().__init__(message)
        self.session = session


class UploadProtocolError(UploaderError):
    """The server answered a step with a status code it should not have."""

    def __init__(
        self,
        message: str,
        status_code: int,
        step: str,
        session: Optional["UploadSession"] = None,
        body: Optional[str] = None,
    ):
        super().__init__(f"{message} (step={step}, status={status_code})", session)
        self.status_code = status_code
        self.step = step
        self.body = body


class UploadError(UploaderError):
    """Client-side failure wrapping a lower-level cause."""


class InsufficientQuotaError(UploadError):
    """The content is larger than the free space reported by the ticket."""

    retryable = False

    def __init__(self, length: int, free_space: int, session: Optional["UploadSession"] = None):
        super().__init__(
            f"Not enough free space to upload this file. "
            f"Size: {length:,} bytes, remaining space: {free_space:,} bytes.",
            session,
        )
        self.length = length
        self.free_space = free_space


class UploadIncompleteError(UploadError):
    """All bytes were accepted but the server never reported the upload as complete."""

    retryable = False

    def __init__(self, bytes_written: int, expected: int, session: Optional["UploadSession"] = None):
        super().__init__(
            f"Server failed to mark file as completed, "
            f"Bytes Written: {bytes_written:,}, Expected: {expected:,}.",
            session,
        )
        self.bytes_written = bytes_written
        self.expected = expected


class UploadNotFoundError(UploadProtocolError):
    """The verification probe got a status other than 2xx or 308; a new ticket is needed."""

    retryable = False

    def __init__(self, status_code: int, session: Optional["UploadSession"] = None):
        super().__init__(
            "Upload was not found on the server; the ticket may have expired.",
            status_code=status_code,
            step="verify",
            session=session,
        )


class PreconditionError(UploaderError, ValueError):
    """Invalid input detected before any request was attempted."""

    retryable = False


class SessionStateError(PreconditionError):
    """A session transition was requested from a state that does not allow it."""
