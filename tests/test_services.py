"""Tests for the verifier, transmitter and ticket services."""
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from chunked_uploader.content import BytesContent
from chunked_uploader.exceptions import (
    PreconditionError,
    TransportError,
    UploadError,
    UploadProtocolError,
)
from chunked_uploader.models import ChunkOutcome, UploadConfig, UploadTicket, VerificationStatus
from chunked_uploader.services.tickets import TicketService
from chunked_uploader.services.transmitter import ChunkTransmitter
from chunked_uploader.services.verifier import OffsetVerifier
from chunked_uploader.session import UploadSession

UPLOAD_LINK = "https://upload.test/upload/t-1"


def _session(length=250, chunk_size=100):
    ticket = UploadTicket("t-1", UPLOAD_LINK, "/users/1/uploads/t-1", free_space=10_000)
    session = UploadSession(ticket=ticket, content=BytesContent(bytes(range(250))[:length]), chunk_size=chunk_size)
    session.begin()
    return session


def _api(*responses):
    api = Mock()
    api.send_request = AsyncMock(side_effect=list(responses))
    return api


class TestOffsetVerifier:
    @pytest.mark.asyncio
    async def test_ok_means_completed(self):
        api = _api(httpx.Response(200))
        result = await OffsetVerifier(api).verify(_session())

        assert result.status == VerificationStatus.COMPLETED
        assert result.bytes_written == 250

    @pytest.mark.asyncio
    async def test_probe_is_empty_unauthorized_put(self):
        api = _api(httpx.Response(200))
        await OffsetVerifier(api).verify(_session())

        args, kwargs = api.send_request.call_args
        assert args == ("PUT", UPLOAD_LINK)
        assert kwargs["body"] == b""
        assert kwargs["auth_required"] is False

    @pytest.mark.asyncio
    async def test_resume_incomplete_with_range(self):
        api = _api(httpx.Response(308, headers={"Range": "bytes=0-150"}))
        result = await OffsetVerifier(api).verify(_session())

        assert result.status == VerificationStatus.IN_PROGRESS
        assert result.bytes_written == 150

    @pytest.mark.asyncio
    async def test_full_range_is_upgraded_to_completed(self):
        api = _api(httpx.Response(308, headers={"Range": "bytes=0-250"}))
        result = await OffsetVerifier(api).verify(_session())

        assert result.status == VerificationStatus.COMPLETED
        assert result.bytes_written == 250

    @pytest.mark.asyncio
    async def test_missing_range(self):
        api = _api(httpx.Response(308))
        result = await OffsetVerifier(api).verify(_session())

        assert result.status == VerificationStatus.IN_PROGRESS
        assert result.bytes_written is None

    @pytest.mark.asyncio
    async def test_malformed_range_is_no_information(self):
        api = _api(httpx.Response(308, headers={"Range": "bytes=abc-def"}))
        result = await OffsetVerifier(api).verify(_session())

        assert result.status == VerificationStatus.IN_PROGRESS
        assert result.bytes_written is None

    @pytest.mark.asyncio
    async def test_other_status_is_not_found(self):
        api = _api(httpx.Response(404))
        result = await OffsetVerifier(api).verify(_session())

        assert result.status == VerificationStatus.NOT_FOUND
        assert result.bytes_written is None
        assert result.status_code == 404

    @pytest.mark.asyncio
    async def test_repeated_probes_agree(self):
        api = _api(
            httpx.Response(308, headers={"Range": "bytes=0-100"}),
            httpx.Response(308, headers={"Range": "bytes=0-100"}),
        )
        verifier = OffsetVerifier(api)
        session = _session()

        assert await verifier.verify(session) == await verifier.verify(session)

    @pytest.mark.asyncio
    async def test_transport_failure_is_wrapped(self):
        api = _api(TransportError("connection refused"))
        session = _session()

        with pytest.raises(UploadError) as exc_info:
            await OffsetVerifier(api).verify(session)

        assert exc_info.value.session is session
        assert isinstance(exc_info.value.__cause__, TransportError)


class TestChunkTransmitter:
    @pytest.mark.asyncio
    async def test_sends_next_range_without_auth(self):
        api = _api(httpx.Response(200))
        session = _session()

        outcome = await ChunkTransmitter(api).send(session)

        assert outcome == ChunkOutcome.SENT
        args, kwargs = api.send_request.call_args
        assert args == ("PUT", UPLOAD_LINK)
        assert kwargs["auth_required"] is False
        assert kwargs["body"] == bytes(range(100))
        assert kwargs["headers"]["Content-Range"] == "bytes 0-99/250"

    @pytest.mark.asyncio
    async def test_does_not_touch_session(self):
        api = _api(httpx.Response(200))
        session = _session()

        await ChunkTransmitter(api).send(session)

        assert session.bytes_written == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [308, 400])
    async def test_renegotiation_statuses(self, status):
        api = _api(httpx.Response(status))
        outcome = await ChunkTransmitter(api).send(_session())
        assert outcome == ChunkOutcome.NEEDS_REVERIFY

    @pytest.mark.asyncio
    async def test_unexpected_status_raises_protocol_error(self):
        api = _api(httpx.Response(500, text="oops"))
        session = _session()

        with pytest.raises(UploadProtocolError) as exc_info:
            await ChunkTransmitter(api).send(session)

        assert exc_info.value.status_code == 500
        assert exc_info.value.step == "chunk"
        assert exc_info.value.session is session

    @pytest.mark.asyncio
    async def test_transport_failure_is_wrapped(self):
        api = _api(TransportError("timeout"))
        with pytest.raises(UploadError, match="chunk"):
            await ChunkTransmitter(api).send(_session())

    @pytest.mark.asyncio
    async def test_refuses_to_send_over_quota(self):
        api = _api(httpx.Response(200))
        session = _session()
        session.ticket = UploadTicket("t-1", UPLOAD_LINK, "/c", free_space=10)

        with pytest.raises(UploadError, match="free space"):
            await ChunkTransmitter(api).send(session)
        api.send_request.assert_not_awaited()


class TestTicketService:
    TICKET = {
        "ticket_id": "t-9",
        "upload_link_secure": UPLOAD_LINK,
        "complete_uri": "/users/1/uploads/t-9",
        "user": {"upload_quota": {"space": {"free": 1000}}},
    }

    @pytest.mark.asyncio
    async def test_get_upload_ticket(self):
        api = _api(httpx.Response(201, json=self.TICKET))
        ticket = await TicketService(api).get_upload_ticket()

        assert ticket.ticket_id == "t-9"
        args, kwargs = api.send_request.call_args
        assert args == ("POST", "/me/videos")
        assert kwargs["params"] == {"type": "streaming"}

    @pytest.mark.asyncio
    async def test_get_replace_upload_ticket(self):
        api = _api(httpx.Response(201, json=self.TICKET))
        await TicketService(api).get_replace_upload_ticket(55)

        args, _ = api.send_request.call_args
        assert args == ("PUT", "/videos/55/files")

    @pytest.mark.asyncio
    async def test_ticket_error_status(self):
        api = _api(httpx.Response(403, json={"error": "forbidden"}))
        with pytest.raises(UploadProtocolError) as exc_info:
            await TicketService(api).get_upload_ticket()

        assert exc_info.value.step == "ticket"
        assert exc_info.value.session is None

    @pytest.mark.asyncio
    async def test_ticket_invalid_json(self):
        api = _api(httpx.Response(201, text="<html>"))
        with pytest.raises(UploadError, match="upload ticket"):
            await TicketService(api).get_upload_ticket()

    @pytest.mark.asyncio
    async def test_requires_token(self):
        api = _api()
        api.has_token = False
        with pytest.raises(PreconditionError):
            await TicketService(api).get_upload_ticket()
        api.send_request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_complete_upload_returns_location(self):
        api = _api(httpx.Response(201, headers={"Location": "/videos/42"}))
        location = await TicketService(api, UploadConfig()).complete_upload(_session())

        assert location == "/videos/42"
        args, kwargs = api.send_request.call_args
        assert args == ("DELETE", "/users/1/uploads/t-1")
        assert kwargs["auth_required"] is True

    @pytest.mark.asyncio
    async def test_complete_upload_error(self):
        api = _api(httpx.Response(500))
        with pytest.raises(UploadProtocolError) as exc_info:
            await TicketService(api).complete_upload(_session())
        assert exc_info.value.step == "complete"
