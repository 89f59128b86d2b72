"""Offset verification against the upload link."""
import logging
from typing import Optional, TYPE_CHECKING

from ..exceptions import TransportError, UploadError
from ..models import RESUME_INCOMPLETE, VerificationStatus, VerifyUploadResponse
from ..protocols import IAPIClient
from .byte_range import parse_range_header

if TYPE_CHECKING:
    from ..session import UploadSession

log = logging.getLogger(__name__)


class OffsetVerifier:
    """
    Asks the server how many bytes it durably holds for an upload.

    Sends a zero-length PUT to the ticket's upload link and maps the
    response onto a VerifyUploadResponse. Never transmits data.
    """

    def __init__(self, api_client: IAPIClient):
        self._api = api_client

    async def verify(self, session: "UploadSession") -> VerifyUploadResponse:
        session.check_preconditions()
        length = session.file_length

        try:
            response = await self._api.send_request(
                "PUT",
                session.ticket.upload_link_secure,
                headers={"Content-Range": f"bytes */{length}"},
                body=b"",
                auth_required=False,
            )
        except TransportError as exc:
            raise UploadError("Error verifying file upload.", session) from exc

        status_code = response.status_code
        if 200 <= status_code < 300:
            result = VerifyUploadResponse(VerificationStatus.COMPLETED, length, status_code)
        elif status_code == RESUME_INCOMPLETE:
            result = self._from_range(response.headers.get("Range"), length)
        else:
            result = VerifyUploadResponse(VerificationStatus.NOT_FOUND, status_code=status_code)

        log.debug(
            f"[verify] {session.ticket.ticket_id}: status={status_code} "
            f"-> {result.status.value}, bytes={result.bytes_written}"
        )
        return result

    @staticmethod
    def _from_range(header: Optional[str], length: int) -> VerifyUploadResponse:
        if header is None:
            return VerifyUploadResponse(VerificationStatus.IN_PROGRESS, status_code=RESUME_INCOMPLETE)

        byte_range = parse_range_header(header)
        if byte_range is None:
            log.warning(f"[verify] Ignoring malformed Range header: {header!r}")
            return VerifyUploadResponse(VerificationStatus.IN_PROGRESS, status_code=RESUME_INCOMPLETE)

        written = byte_range.size
        if written == length:
            return VerifyUploadResponse(VerificationStatus.COMPLETED, written, RESUME_INCOMPLETE)
        return VerifyUploadResponse(VerificationStatus.IN_PROGRESS, written, RESUME_INCOMPLETE)
