"""
Ticket Service - acquiring upload tickets and confirming completion.

Both calls go through the authorized API; the upload link itself is
pre-authorized and handled by the transmitter and verifier.
"""
import logging
from typing import Optional, TYPE_CHECKING

from ..exceptions import (
    PreconditionError,
    TransportError,
    UploadError,
    UploadProtocolError,
)
from ..models import UploadConfig, UploadTicket
from ..protocols import IAPIClient

if TYPE_CHECKING:
    from ..session import UploadSession

log = logging.getLogger(__name__)


class TicketService:
    """Requests upload tickets and issues the completion call."""

    def __init__(self, api_client: IAPIClient, config: Optional[UploadConfig] = None):
        self._api = api_client
        self._config = config or UploadConfig()

    def _ensure_authorized(self) -> None:
        has_token = getattr(self._api, "has_token", True)
        if not has_token:
            raise PreconditionError("An access token is required to request upload tickets.")

    async def get_upload_ticket(self) -> UploadTicket:
        """Request a ticket for a new upload."""
        return await self._request_ticket(
            "POST", self._config.ticket_endpoint, "Error generating upload ticket."
        )

    async def get_replace_upload_ticket(self, video_id: int) -> UploadTicket:
        """Request a ticket that replaces the file of an existing video."""
        return await self._request_ticket(
            "PUT",
            self._config.replace_endpoint_for(video_id),
            "Error generating upload ticket to replace video.",
        )

    async def _request_ticket(self, method: str, endpoint: str, error_message: str) -> UploadTicket:
        self._ensure_authorized()

        try:
            response = await self._api.send_request(
                method, endpoint, params={"type": "streaming"}, auth_required=True
            )
            if not 200 <= response.status_code < 300:
                raise UploadProtocolError(
                    error_message,
                    status_code=response.status_code,
                    step="ticket",
                    body=response.text,
                )
            ticket = UploadTicket.from_json(response.json())
        except (UploadProtocolError, UploadError):
            raise
        except (TransportError, ValueError) as exc:
            raise UploadError(error_message) from exc

        log.info(f"[ticket] Acquired ticket {ticket.ticket_id} (free space: {ticket.free_space})")
        return ticket

    async def complete_upload(self, session: "UploadSession") -> Optional[str]:
        """
        Mark the upload as complete.

        Returns:
            The Location header (final resource URI) if the server sent one
        """
        self._ensure_authorized()
        session.check_preconditions()

        try:
            response = await self._api.send_request(
                "DELETE", session.ticket.complete_uri, auth_required=True
            )
        except TransportError as exc:
            raise UploadError("Error marking file upload as complete.", session) from exc

        if not 200 <= response.status_code < 300:
            raise UploadProtocolError(
                "Error marking file upload as complete.",
                status_code=response.status_code,
                step="complete",
                session=session,
                body=response.text,
            )

        location = response.headers.get("Location")
        log.info(f"[complete] {session.ticket.ticket_id}: completed, location={location}")
        return location
