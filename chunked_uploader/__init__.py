"""
chunked_uploader - Resumable chunked uploads over HTTP.

A ticket is requested from the API, the content is sent to the ticket's
upload link in fixed-size chunks, the server's offset is verified once
every byte is believed sent, and a completion call finalizes the upload.
When the server's offset disagrees with ours, the server wins and the
upload resumes from its offset.

Usage:
    from chunked_uploader import UploadOrchestrator, UploadConfig, StreamContent

    async with UploadOrchestrator(UploadConfig(chunk_size=8 * 1024 * 1024), access_token=token) as uploader:
        with open(path, "rb") as fh:
            session = await uploader.upload_entire_file(StreamContent(fh))
        print(session.clip_uri)

    # Replace the file of an existing video
    session = await uploader.upload_entire_file(content, replace_video_id=12345)
"""
from .orchestrator import UploadOrchestrator
from .content import BytesContent, StreamContent
from .session import UploadSession
from .models import (
    ByteRange,
    ChunkOutcome,
    RateLimit,
    UploadConfig,
    UploadState,
    UploadTicket,
    VerificationStatus,
    VerifyUploadResponse,
)
from .exceptions import (
    InsufficientQuotaError,
    PreconditionError,
    SessionStateError,
    TransportError,
    UploadError,
    UploaderError,
    UploadIncompleteError,
    UploadNotFoundError,
    UploadProtocolError,
)
from .services import HTTPAPIClient
from .utils.events import UploadProgress

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "UploadSession",
    # Content
    "BytesContent",
    "StreamContent",
    # Models
    "ByteRange",
    "ChunkOutcome",
    "RateLimit",
    "UploadConfig",
    "UploadState",
    "UploadTicket",
    "VerificationStatus",
    "VerifyUploadResponse",
    "UploadProgress",
    # Services
    "HTTPAPIClient",
    # Errors
    "UploaderError",
    "UploadError",
    "UploadProtocolError",
    "UploadIncompleteError",
    "UploadNotFoundError",
    "InsufficientQuotaError",
    "PreconditionError",
    "SessionStateError",
    "TransportError",
]
