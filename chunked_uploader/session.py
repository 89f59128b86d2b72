"""
Upload session - the mutable progress state of one file transfer.

All mutation goes through the transition methods below; each one checks
the current state and raises SessionStateError otherwise.

    NOT_STARTED -> IN_PROGRESS -> AWAITING_VERIFICATION -> COMPLETED
                        ^                  |
                        +---- reconcile ---+
    any non-terminal state -> FAILED (resumable unless marked fatal)
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from .exceptions import InsufficientQuotaError, PreconditionError, SessionStateError
from .models import UploadState, UploadTicket, VerifyUploadResponse
from .protocols import IBinaryContent

log = logging.getLogger(__name__)


@dataclass
class UploadSession:
    """Progress of one upload, bound to a single ticket and content source."""
    ticket: UploadTicket
    content: IBinaryContent
    chunk_size: int
    bytes_written: int = 0
    state: UploadState = UploadState.NOT_STARTED
    clip_uri: Optional[str] = None
    last_error: Optional[BaseException] = field(default=None, repr=False)
    retryable: bool = True
    verified: bool = False

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise PreconditionError(f"chunk_size must be > 0, got {self.chunk_size}")
        if not 0 <= self.bytes_written <= self.file_length:
            raise PreconditionError(
                f"bytes_written {self.bytes_written} outside [0, {self.file_length}]"
            )

    @property
    def file_length(self) -> int:
        return self.content.length

    @property
    def all_bytes_written(self) -> bool:
        return self.bytes_written >= self.file_length

    @property
    def is_verified_complete(self) -> bool:
        return self.state == UploadState.COMPLETED

    @property
    def percent(self) -> float:
        if self.file_length == 0:
            return 100.0 if self.is_verified_complete else 0.0
        return self.bytes_written * 100.0 / self.file_length

    def check_preconditions(self) -> None:
        """Validate the ticket and quota before a request is built."""
        if self.ticket is None or not str(self.ticket.ticket_id or "").strip():
            raise PreconditionError("Invalid upload ticket.", self)
        if not self.ticket.upload_link_secure:
            raise PreconditionError("Upload ticket has no upload link.", self)
        free_space = self.ticket.free_space
        if free_space is not None and self.file_length > free_space:
            raise InsufficientQuotaError(self.file_length, free_space, self)

    def _require(self, *states: UploadState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise SessionStateError(
                f"Cannot transition from {self.state.value} (expected {allowed})", self
            )

    def _seek_content(self, offset: int) -> None:
        if self.content.seekable:
            self.content.seek(offset)

    def begin(self) -> None:
        """Start sending. A zero-length source goes straight to verification."""
        self._require(UploadState.NOT_STARTED)
        if self.content.seekable and self.content.position > 0:
            self.content.seek(0)
        self.state = (
            UploadState.AWAITING_VERIFICATION if self.all_bytes_written else UploadState.IN_PROGRESS
        )

    def record_chunk_sent(self) -> None:
        """Advance the offset by one chunk, clamped to the file length."""
        self._require(UploadState.IN_PROGRESS)
        self.bytes_written = min(self.bytes_written + self.chunk_size, self.file_length)
        if self.all_bytes_written:
            self.state = UploadState.AWAITING_VERIFICATION

    def request_verification(self) -> None:
        """Server asked to renegotiate the offset before more bytes are sent."""
        self._require(UploadState.IN_PROGRESS)
        self.state = UploadState.AWAITING_VERIFICATION

    def reconcile(self, server_bytes: int) -> None:
        """Replace the client's offset with the server's and resume sending from there."""
        self._require(UploadState.AWAITING_VERIFICATION)
        if not 0 <= server_bytes < self.file_length:
            raise SessionStateError(
                f"Cannot reconcile to {server_bytes} bytes (file length {self.file_length})", self
            )
        if server_bytes != self.bytes_written:
            log.info(
                f"[session] {self.ticket.ticket_id}: offset {self.bytes_written} -> {server_bytes}"
            )
        self.bytes_written = server_bytes
        self._seek_content(server_bytes)
        self.verified = False
        self.state = UploadState.IN_PROGRESS

    def resume_sending(self) -> None:
        """Go back to sending from the current offset."""
        self._require(UploadState.AWAITING_VERIFICATION)
        if self.all_bytes_written:
            raise SessionStateError("All bytes are already written", self)
        self._seek_content(self.bytes_written)
        self.verified = False
        self.state = UploadState.IN_PROGRESS

    def record_verification(self, result: VerifyUploadResponse) -> None:
        """Remember whether the latest probe reported the upload complete."""
        if self.state != UploadState.AWAITING_VERIFICATION:
            return
        self.verified = result.is_completed
        if self.verified:
            self.bytes_written = self.file_length

    def require_verified(self) -> None:
        self._require(UploadState.AWAITING_VERIFICATION)
        if not self.verified:
            raise SessionStateError(
                f"Upload {self.ticket.ticket_id} has not been verified as complete", self
            )

    def mark_completed(self, clip_uri: Optional[str] = None) -> None:
        """Only called once the server verified every byte and accepted the completion call."""
        self.require_verified()
        self.clip_uri = clip_uri
        self.state = UploadState.COMPLETED

    def fail(self, error: BaseException, retryable: bool = True) -> None:
        if self.state in (UploadState.COMPLETED, UploadState.FAILED):
            return
        self.last_error = error
        self.retryable = retryable
        self.state = UploadState.FAILED

    def resume(self) -> None:
        """Re-enter the loop after a failure. The next step is always a verification."""
        self._require(UploadState.FAILED)
        if not self.retryable:
            raise SessionStateError(f"Session failed permanently: {self.last_error}", self)
        self.last_error = None
        self.verified = False
        self.state = UploadState.AWAITING_VERIFICATION
