"""
Models for chunked_uploader.

Immutable dataclasses for values exchanged between services; the only
mutable entity lives in session.py.
"""
from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum

from .exceptions import UploadError


DEFAULT_CHUNK_SIZE = 1024 * 1024
RESUME_INCOMPLETE = 308


class UploadState(Enum):
    """Lifecycle state of an upload session."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    AWAITING_VERIFICATION = "awaiting_verification"
    COMPLETED = "completed"
    FAILED = "failed"


class VerificationStatus(Enum):
    """What the server says about an upload after a verification probe."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    NOT_FOUND = "not_found"


class ChunkOutcome(Enum):
    """Result of sending one chunk."""
    SENT = "sent"
    NEEDS_REVERIFY = "needs_reverify"  # server wants the offset renegotiated


@dataclass(frozen=True)
class ByteRange:
    """Half-open byte window [start, end)."""
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class VerifyUploadResponse:
    """Outcome of a verification probe. bytes_written is None when the server gave no offset."""
    status: VerificationStatus
    bytes_written: Optional[int] = None
    status_code: Optional[int] = None

    @property
    def is_completed(self) -> bool:
        return self.status == VerificationStatus.COMPLETED


@dataclass(frozen=True)
class UploadTicket:
    """Server-issued credential for a single upload."""
    ticket_id: str
    upload_link_secure: str
    complete_uri: str
    free_space: Optional[int] = None
    uri: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "UploadTicket":
        """
        Build a ticket from the ticket endpoint's JSON body.

        Raises:
            UploadError: when a required field is missing or empty
        """
        if not isinstance(data, dict):
            raise UploadError(f"Malformed upload ticket: expected object, got {type(data).__name__}")

        missing = [
            key for key in ("ticket_id", "upload_link_secure", "complete_uri")
            if not str(data.get(key) or "").strip()
        ]
        if missing:
            raise UploadError(f"Malformed upload ticket: missing {', '.join(missing)}")

        return cls(
            ticket_id=str(data["ticket_id"]),
            upload_link_secure=str(data["upload_link_secure"]),
            complete_uri=str(data["complete_uri"]),
            free_space=cls._read_free_space(data),
            uri=data.get("uri"),
        )

    @staticmethod
    def _read_free_space(data: Dict[str, Any]) -> Optional[int]:
        user = data.get("user") or {}
        space = ((user.get("upload_quota") or {}).get("space") or {})
        value = space.get("free")
        if value is None:
            value = (data.get("quota") or {}).get("free_space")
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise UploadError(f"Malformed upload ticket: free space {value!r} is not an integer") from exc


@dataclass(frozen=True)
class RateLimit:
    """Rate limit figures reported by the API on the last authorized response."""
    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset: Optional[str] = None

    @property
    def exhausted(self) -> bool:
        return self.remaining is not None and self.remaining <= 0


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload operations."""
    api_url: str = "https://api.vimeo.com"
    chunk_size: int = DEFAULT_CHUNK_SIZE
    timeout: float = 60.0
    max_retries: int = 3
    max_verify_attempts: int = 5
    verify_backoff: float = 1.0  # seconds between uninformative probes
    ticket_endpoint: str = "/me/videos"
    replace_ticket_endpoint: str = "/videos/{video_id}/files"
    user_agent: str = "chunked-uploader"

    def replace_endpoint_for(self, video_id: int) -> str:
        return self.replace_ticket_endpoint.format(video_id=video_id)
