"""Services for chunked_uploader."""
from .api_client import HTTPAPIClient
from .byte_range import calculate_range, parse_range_header
from .tickets import TicketService
from .transmitter import ChunkTransmitter
from .verifier import OffsetVerifier

__all__ = [
    "HTTPAPIClient",
    "TicketService",
    "ChunkTransmitter",
    "OffsetVerifier",
    "calculate_range",
    "parse_range_header",
]
