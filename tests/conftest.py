"""Shared fixtures: an in-memory resumable upload server behind httpx.MockTransport."""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from chunked_uploader.models import UploadConfig
from chunked_uploader.services.api_client import HTTPAPIClient

API_URL = "https://api.test"
UPLOAD_HOST = "https://upload.test"

_CONTENT_RANGE_RE = re.compile(r"bytes (\d+)-(\d+)/(\d+)")


@dataclass
class FakeUpload:
    ticket_id: str
    received: bytearray = field(default_factory=bytearray)
    ranges: List[Tuple[int, int]] = field(default_factory=list)
    length: Optional[int] = None
    verifications: int = 0
    completed: bool = False


class FakeUploadServer:
    """
    Minimal server for the ticket / chunk / verify / complete protocol.

    Scripted responses can be queued per step; otherwise the server
    behaves like a healthy endpoint.
    """

    def __init__(self, free_space: int = 10 ** 9):
        self.free_space = free_space
        self.uploads: Dict[str, FakeUpload] = {}
        self.requests: List[httpx.Request] = []
        self.verify_script: List[httpx.Response] = []
        self.chunk_script: List[object] = []  # httpx.Response or Exception
        self.complete_script: List[httpx.Response] = []
        self.truncate_on_verify: Optional[int] = None
        self.replaced_video_ids: List[str] = []

    @property
    def upload(self) -> FakeUpload:
        """The only upload, for single-file tests."""
        assert len(self.uploads) == 1
        return next(iter(self.uploads.values()))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def _ticket(self) -> dict:
        ticket_id = f"t-{len(self.uploads) + 1}"
        self.uploads[ticket_id] = FakeUpload(ticket_id)
        return {
            "uri": f"/videos/{100 + len(self.uploads)}",
            "ticket_id": ticket_id,
            "upload_link_secure": f"{UPLOAD_HOST}/upload/{ticket_id}",
            "complete_uri": f"/users/1/uploads/{ticket_id}",
            "user": {"upload_quota": {"space": {"free": self.free_space}}},
        }

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path == "/me/videos":
            assert request.url.params.get("type") == "streaming"
            return httpx.Response(201, json=self._ticket())

        match = re.fullmatch(r"/videos/(\d+)/files", path)
        if request.method == "PUT" and match:
            self.replaced_video_ids.append(match.group(1))
            return httpx.Response(201, json=self._ticket())

        if request.method == "PUT" and path.startswith("/upload/"):
            upload = self.uploads[path.rsplit("/", 1)[1]]
            if request.content:
                return self._chunk(upload, request)
            return self._verify(upload, request)

        if request.method == "DELETE" and path.startswith("/users/1/uploads/"):
            if self.complete_script:
                return self.complete_script.pop(0)
            upload = self.uploads[path.rsplit("/", 1)[1]]
            upload.completed = True
            return httpx.Response(201, headers={"Location": "/videos/42"})

        return httpx.Response(404)

    def _chunk(self, upload: FakeUpload, request: httpx.Request) -> httpx.Response:
        match = _CONTENT_RANGE_RE.fullmatch(request.headers["Content-Range"])
        start, last, total = (int(g) for g in match.groups())
        upload.length = total
        upload.ranges.append((start, last + 1))

        scripted = self.chunk_script.pop(0) if self.chunk_script else None
        if isinstance(scripted, Exception):
            raise scripted
        if scripted is not None and not scripted.is_success:
            return scripted

        del upload.received[start:]
        upload.received.extend(request.content)
        return scripted or httpx.Response(200)

    def _verify(self, upload: FakeUpload, request: httpx.Request) -> httpx.Response:
        upload.verifications += 1
        total = request.headers.get("Content-Range", "").rsplit("/", 1)[-1]
        if total.isdigit():
            upload.length = int(total)

        if self.truncate_on_verify is not None:
            del upload.received[self.truncate_on_verify:]
            self.truncate_on_verify = None

        if self.verify_script:
            return self.verify_script.pop(0)

        if len(upload.received) >= (upload.length or 0):
            return httpx.Response(200)
        return httpx.Response(308, headers={"Range": f"bytes=0-{len(upload.received)}"})


@pytest.fixture
def server():
    return FakeUploadServer()


@pytest.fixture
def config():
    return UploadConfig(api_url=API_URL, chunk_size=100, max_retries=1, verify_backoff=0)


@pytest_asyncio.fixture
async def api_client(server, config):
    async with HTTPAPIClient(config, access_token="token", transport=server.transport()) as client:
        yield client
