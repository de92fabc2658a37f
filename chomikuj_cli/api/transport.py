"""
HTTP transport for the ChomikBox service and its file servers.

Performs plain request/response round-trips and opens streaming GETs for file
bodies. It neither retries nor parses; those belong to the callers.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping, Optional

import aiohttp

from chomikuj_cli.exceptions import TransportError

log = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Connection": "Keep-Alive",
    "Accept-Language": "pl-PL,en,*",
    "User-Agent": "Mozilla/5.0",
}

_REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=60, connect=15, sock_read=30)
_STREAM_TIMEOUT = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)


class StreamResponse:
    """A streaming file response: its status code and an async chunk iterator."""

    def __init__(self, response: aiohttp.ClientResponse):
        self._response = response

    @property
    def status(self) -> int:
        return self._response.status

    @property
    def headers(self) -> Mapping[str, str]:
        return self._response.headers

    async def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.content.iter_chunked(chunk_size):
                yield chunk
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Connection lost while streaming: {e}") from e


class HttpTransport:
    """
    aiohttp-backed transport shared by every request of one session.

    Features:
    - One pooled ClientSession, created lazily
    - No redirects on service calls, redirects followed for pages and file bodies
    - aiohttp errors surfaced as TransportError
    """

    def __init__(self, max_connections: int = 4):
        """
        Initializes the transport.

        Args:
            max_connections: Connection pool size, matched to the number of
                concurrent transfers.
        """
        self.max_connections = max_connections
        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.max_connections * 2,
                limit_per_host=self.max_connections,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector, headers=DEFAULT_HEADERS
            )
            log.debug(f"Created HTTP pool with limit_per_host={self.max_connections}")
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            log.debug("HTTP transport closed.")

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def send(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[bytes] = None,
    ) -> tuple[bytes, int]:
        """
        Performs one HTTP request and returns the raw body and status code.
        """
        session = await self._initialize_session()
        try:
            async with session.request(
                method,
                url,
                headers=dict(headers or {}),
                data=body,
                allow_redirects=method == "GET",
                timeout=_REQUEST_TIMEOUT,
            ) as response:
                payload = await response.read()
                log.debug(f"{method} {url} -> {response.status} ({len(payload)} bytes)")
                return payload, response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

    @asynccontextmanager
    async def open_stream(
        self, url: str, headers: Optional[Mapping[str, str]] = None
    ) -> AsyncIterator[StreamResponse]:
        """Opens a streaming GET for a file body."""
        session = await self._initialize_session()
        try:
            response = await session.get(
                url,
                headers=dict(headers or {}),
                allow_redirects=True,
                timeout=_STREAM_TIMEOUT,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"GET {url} failed: {e}") from e

        try:
            yield StreamResponse(response)
        finally:
            response.release()
