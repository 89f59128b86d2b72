"""HTTP adapter for upload API operations."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..exceptions import TransportError
from ..models import RateLimit, UploadConfig

log = logging.getLogger(__name__)


class HTTPAPIClient:
    """
    HTTP client adapter for API calls.

    Implements IAPIClient protocol. Authorized requests carry the bearer
    token and are retried on 5xx and transport errors; unauthorized ones
    (upload link traffic) are sent exactly once.
    """

    def __init__(
        self,
        config: Optional[UploadConfig] = None,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config or UploadConfig()
        self._access_token = access_token
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.rate_limit = RateLimit()

    @property
    def has_token(self) -> bool:
        return bool(self._access_token)

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._config.api_url,
            timeout=self._config.timeout,
            transport=self._transport,
            headers={"User-Agent": self._config.user_agent},
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send_request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[bytes] = None,
        auth_required: bool = True,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")

        request_headers = dict(headers or {})
        if auth_required and self._access_token:
            request_headers["Authorization"] = f"Bearer {self._access_token}"
            request_headers.setdefault("Accept", "application/vnd.vimeo.*+json;version=3.4")

        max_retries = self._config.max_retries if auth_required else 1
        max_retries = max(max_retries, 1)

        for attempt in range(max_retries):
            try:
                response = await self._client.request(
                    method, url, headers=request_headers, content=body, params=params
                )
            except httpx.HTTPError as exc:
                if attempt < max_retries - 1:
                    log.debug(f"[http] {method} {url} failed ({exc!r}), retrying")
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise TransportError(f"{method} {url} failed: {exc}", method, url) from exc

            if auth_required:
                self._update_rate_limit(response)

            if response.status_code >= 500 and attempt < max_retries - 1:
                log.debug(f"[http] {method} {url} returned {response.status_code}, retrying")
                await asyncio.sleep(0.5 * (attempt + 1))
                continue

            return response

        raise RuntimeError(f"Failed to {method} {url} after {max_retries} attempts")

    def _update_rate_limit(self, response: httpx.Response) -> None:
        headers = response.headers
        if "X-RateLimit-Limit" not in headers and "X-RateLimit-Remaining" not in headers:
            return

        self.rate_limit = RateLimit(
            limit=_int_or_none(headers.get("X-RateLimit-Limit")),
            remaining=_int_or_none(headers.get("X-RateLimit-Remaining")),
            reset=headers.get("X-RateLimit-Reset"),
        )
        if self.rate_limit.exhausted:
            log.warning(f"[http] Rate limit exhausted, resets at {self.rate_limit.reset}")


def _int_or_none(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None
