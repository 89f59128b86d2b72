"""Core orchestrator - drives an upload session from ticket to completion."""
import asyncio
import logging
from typing import Optional

from ..exceptions import (
    PreconditionError,
    UploadError,
    UploaderError,
    UploadIncompleteError,
    UploadNotFoundError,
)
from ..models import (
    UploadConfig,
    UploadState,
    UploadTicket,
    VerificationStatus,
    VerifyUploadResponse,
    ChunkOutcome,
)
from ..protocols import IAPIClient, IBinaryContent
from ..services.api_client import HTTPAPIClient
from ..services.tickets import TicketService
from ..services.transmitter import ChunkTransmitter
from ..services.verifier import OffsetVerifier
from ..session import UploadSession
from ..utils.events import ProgressCallback, UploadProgress, notify_progress

log = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Orchestrates resumable uploads using injected services.

    The loop is strictly sequential per session: a chunk is only sent once
    the previous response was observed. Sessions share nothing but the HTTP
    client, so several uploads can run concurrently on one orchestrator.

    Usage:
        async with UploadOrchestrator(config, access_token=token) as uploader:
            session = await uploader.upload_entire_file(content)
            print(session.clip_uri)

        # After a failure, continue from the last confirmed offset
        try:
            session = await uploader.upload_entire_file(content)
        except UploaderError as exc:
            if exc.session and exc.session.retryable:
                session = await uploader.resume_upload(exc.session)
    """

    def __init__(
        self,
        config: Optional[UploadConfig] = None,
        access_token: Optional[str] = None,
        api_client: Optional[IAPIClient] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            config: Upload configuration
            access_token: Bearer token for ticket and completion calls
            api_client: Pre-built API client; when given, the orchestrator
                does not open or close it
        """
        self._config = config or UploadConfig()
        self._access_token = access_token
        self._external_client = api_client
        self._owned_client: Optional[HTTPAPIClient] = None

        self._tickets: Optional[TicketService] = None
        self._transmitter: Optional[ChunkTransmitter] = None
        self._verifier: Optional[OffsetVerifier] = None

        if api_client is not None:
            self._wire(api_client)

    def _wire(self, api_client: IAPIClient) -> None:
        self._tickets = TicketService(api_client, self._config)
        self._transmitter = ChunkTransmitter(api_client)
        self._verifier = OffsetVerifier(api_client)

    async def __aenter__(self):
        """Open the HTTP client unless one was injected."""
        if self._external_client is None:
            self._owned_client = HTTPAPIClient(self._config, self._access_token)
            await self._owned_client.__aenter__()
            self._wire(self._owned_client)
        return self

    async def __aexit__(self, *args):
        if self._owned_client:
            await self._owned_client.__aexit__(*args)
            self._owned_client = None

    def _require_services(self) -> None:
        if self._tickets is None:
            raise RuntimeError("UploadOrchestrator not initialized. Use 'async with' context.")

    # Tickets

    async def get_upload_ticket(self) -> UploadTicket:
        self._require_services()
        return await self._tickets.get_upload_ticket()

    async def get_replace_upload_ticket(self, video_id: int) -> UploadTicket:
        self._require_services()
        return await self._tickets.get_replace_upload_ticket(video_id)

    # Single steps

    async def start_upload(
        self,
        content: IBinaryContent,
        chunk_size: Optional[int] = None,
        replace_video_id: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> UploadSession:
        """Acquire a ticket, build a session and send the first chunk."""
        self._require_services()
        if not content.readable:
            raise PreconditionError("content should be readable")
        chunk_size = self._config.chunk_size if chunk_size is None else chunk_size
        if chunk_size <= 0:
            raise PreconditionError(f"chunk_size must be > 0, got {chunk_size}")

        if replace_video_id is not None:
            ticket = await self.get_replace_upload_ticket(replace_video_id)
        else:
            ticket = await self.get_upload_ticket()

        session = UploadSession(ticket=ticket, content=content, chunk_size=chunk_size)
        async with _failing(session):
            session.check_preconditions()
            session.begin()
        log.info(
            f"[upload] Starting {ticket.ticket_id}: {session.file_length:,} bytes "
            f"in chunks of {chunk_size:,}"
        )

        await self.continue_upload(session, progress_callback)
        return session

    async def continue_upload(
        self,
        session: UploadSession,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> VerifyUploadResponse:
        """
        Send the next chunk, if any.

        Returns the session's offset after the step. When the server asks
        for renegotiation the offset is verified straight away and that
        verification result is returned instead; a reported offset has
        already been applied to the session.
        """
        self._require_services()
        if session.state != UploadState.IN_PROGRESS or session.all_bytes_written:
            return VerifyUploadResponse(VerificationStatus.IN_PROGRESS, session.bytes_written)

        async with _failing(session):
            outcome = await self._transmitter.send(session)
            if outcome == ChunkOutcome.SENT:
                session.record_chunk_sent()
                await self._notify(session, progress_callback)
                return VerifyUploadResponse(VerificationStatus.IN_PROGRESS, session.bytes_written)
            session.request_verification()

        log.info(f"[chunk] {session.ticket.ticket_id}: server asked to renegotiate the offset")
        result = await self.verify_upload(session)
        if not result.is_completed:
            async with _failing(session):
                await self._apply_offset(session, result, progress_callback)
        return result

    async def verify_upload(self, session: UploadSession) -> VerifyUploadResponse:
        """
        Ask the server for its offset.

        The session only remembers whether the upload was reported complete;
        applying a partial offset is left to the caller.
        """
        self._require_services()
        async with _failing(session):
            result = await self._verifier.verify(session)
        session.record_verification(result)
        return result

    async def complete_upload(self, session: UploadSession) -> UploadSession:
        """
        Issue the completion call and mark the session completed.

        Raises:
            SessionStateError: when no verification reported the upload complete
        """
        self._require_services()
        session.require_verified()
        async with _failing(session):
            location = await self._tickets.complete_upload(session)
            session.mark_completed(location)
        return session

    # Full loop

    async def upload_entire_file(
        self,
        content: IBinaryContent,
        chunk_size: Optional[int] = None,
        replace_video_id: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> UploadSession:
        """
        Upload content until the server confirms completion.

        Returns:
            The completed session; clip_uri holds the final resource location

        Raises:
            UploaderError: with .session set to the partially-progressed session
        """
        session = await self.start_upload(content, chunk_size, replace_video_id, progress_callback)
        return await self._drive(session, progress_callback)

    async def resume_upload(
        self,
        session: UploadSession,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> UploadSession:
        """Continue a failed session; the server's offset is verified before any write."""
        self._require_services()
        session.resume()
        log.info(f"[upload] Resuming {session.ticket.ticket_id} from {session.bytes_written:,} bytes")
        return await self._drive(session, progress_callback)

    async def _drive(
        self,
        session: UploadSession,
        progress_callback: Optional[ProgressCallback],
    ) -> UploadSession:
        uninformative = 0

        while not session.is_verified_complete:
            if session.state == UploadState.IN_PROGRESS:
                await self.continue_upload(session, progress_callback)
                continue

            result = await self.verify_upload(session)
            async with _failing(session):
                informative = await self._apply_verification(session, result, progress_callback)

            if informative:
                uninformative = 0
                continue

            uninformative += 1
            if uninformative >= self._config.max_verify_attempts:
                error = UploadError(
                    f"Server did not report an offset after {uninformative} verification attempts.",
                    session,
                )
                session.fail(error)
                raise error
            log.warning(
                f"[verify] {session.ticket.ticket_id}: no offset reported "
                f"({uninformative}/{self._config.max_verify_attempts}), retrying"
            )
            await asyncio.sleep(self._config.verify_backoff)

        return session

    async def _apply_verification(
        self,
        session: UploadSession,
        result: VerifyUploadResponse,
        progress_callback: Optional[ProgressCallback],
    ) -> bool:
        """
        Feed a verification result back into the session.

        Returns False when the result carried no usable offset and there is
        nothing left to send, so the caller should probe again.
        """
        if result.is_completed:
            session.require_verified()
            location = await self._tickets.complete_upload(session)
            session.mark_completed(location)
            await self._notify(session, progress_callback, status="completed")
            log.info(f"[upload] {session.ticket.ticket_id} completed: {session.clip_uri}")
            return True
        return await self._apply_offset(session, result, progress_callback)

    async def _apply_offset(
        self,
        session: UploadSession,
        result: VerifyUploadResponse,
        progress_callback: Optional[ProgressCallback],
    ) -> bool:
        length = session.file_length

        if result.status == VerificationStatus.NOT_FOUND:
            raise UploadNotFoundError(result.status_code, session)

        if result.bytes_written is not None:
            if result.bytes_written >= length:
                raise UploadIncompleteError(result.bytes_written, length, session)
            session.reconcile(result.bytes_written)
            await self._notify(session, progress_callback)
            return True

        if not session.all_bytes_written:
            session.resume_sending()
            return True
        return False

    @staticmethod
    async def _notify(
        session: UploadSession,
        progress_callback: Optional[ProgressCallback],
        status: str = "uploading",
    ) -> None:
        if progress_callback is None:
            return
        progress = UploadProgress(
            filename=getattr(session.content, "name", session.ticket.ticket_id),
            uploaded_bytes=session.bytes_written,
            total_bytes=session.file_length,
            status=status,
        )
        await notify_progress(progress_callback, progress)


class _failing:
    """Marks the session failed when the wrapped block raises, and attaches it to the error."""

    def __init__(self, session: UploadSession):
        self._session = session

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc is None:
            return False

        if isinstance(exc, UploaderError):
            if exc.session is None:
                exc.session = self._session
            self._session.fail(exc, retryable=exc.retryable)
            return False

        if isinstance(exc, asyncio.CancelledError):
            self._session.fail(exc)
            return False

        if isinstance(exc, Exception):
            error = UploadError(f"Unexpected error during upload: {exc}", self._session)
            self._session.fail(error)
            raise error from exc

        return False
