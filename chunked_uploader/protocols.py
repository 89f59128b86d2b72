"""
Protocols (Interfaces) for the collaborators the upload core consumes.

Small, focused interfaces: the core never depends on a concrete HTTP
client or byte source.
"""
from typing import Optional, Dict, Any, Protocol, runtime_checkable


@runtime_checkable
class IBinaryContent(Protocol):
    """Readable byte source with a known length."""

    @property
    def length(self) -> int:
        """Total number of bytes."""
        ...

    @property
    def readable(self) -> bool:
        ...

    @property
    def seekable(self) -> bool:
        ...

    @property
    def position(self) -> int:
        """Current read position (only meaningful when seekable)."""
        ...

    def seek(self, offset: int) -> None:
        """Move the read position to an absolute offset."""
        ...

    async def read_range(self, start: int, end: int) -> bytes:
        """Read bytes [start, end)."""
        ...


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for HTTP requests against the upload API."""

    async def send_request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[bytes] = None,
        auth_required: bool = True,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send a request and return the response. Raises TransportError on network failure."""
        ...
