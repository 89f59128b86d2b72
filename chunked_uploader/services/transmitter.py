"""Chunk transmission to the upload link."""
import logging
from typing import TYPE_CHECKING

from ..exceptions import TransportError, UploadError, UploadProtocolError
from ..models import RESUME_INCOMPLETE, ByteRange, ChunkOutcome
from ..protocols import IAPIClient
from .byte_range import calculate_range

if TYPE_CHECKING:
    from ..session import UploadSession

log = logging.getLogger(__name__)

# Statuses that mean "the server's offset differs from ours", not failure.
REVERIFY_STATUSES = frozenset({RESUME_INCOMPLETE, 400})


class ChunkTransmitter:
    """
    Sends one byte range as the body of a PUT to the upload link.

    Stateless: offset bookkeeping is left to the caller.
    """

    def __init__(self, api_client: IAPIClient):
        self._api = api_client

    def next_range(self, session: "UploadSession") -> ByteRange:
        content = session.content
        return calculate_range(
            session.bytes_written,
            session.chunk_size,
            session.file_length,
            seekable=content.seekable,
            position=content.position if content.seekable else None,
        )

    async def send(self, session: "UploadSession") -> ChunkOutcome:
        session.check_preconditions()
        byte_range = self.next_range(session)
        length = session.file_length

        try:
            data = await session.content.read_range(byte_range.start, byte_range.end)
            response = await self._api.send_request(
                "PUT",
                session.ticket.upload_link_secure,
                headers={
                    "Content-Type": "application/octet-stream",
                    "Content-Range": f"bytes {byte_range.start}-{byte_range.end - 1}/{length}",
                },
                body=data,
                auth_required=False,
            )
        except (TransportError, OSError) as exc:
            raise UploadError("Error uploading file chunk.", session) from exc

        status_code = response.status_code
        if status_code in REVERIFY_STATUSES:
            log.info(
                f"[chunk] {session.ticket.ticket_id}: server answered {status_code} "
                f"for [{byte_range.start}, {byte_range.end}), offset needs verification"
            )
            return ChunkOutcome.NEEDS_REVERIFY

        if not 200 <= status_code < 300:
            raise UploadProtocolError(
                "Error uploading file chunk.",
                status_code=status_code,
                step="chunk",
                session=session,
                body=response.text,
            )

        log.debug(
            f"[chunk] {session.ticket.ticket_id}: sent [{byte_range.start}, {byte_range.end}) "
            f"of {length}"
        )
        return ChunkOutcome.SENT
