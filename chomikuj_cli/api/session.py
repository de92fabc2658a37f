"""
The authenticated ChomikBox session: login with token reuse, the request
sequence stamp, and the per-session file metadata cache.
"""

import asyncio
import logging
import time
from typing import Callable, Iterable, Optional, Protocol

from chomikuj_cli.exceptions import AuthenticationError, TransportError
from chomikuj_cli.models.config import DEFAULT_SERVICE_URL
from chomikuj_cli.models.credentials import Credentials
from chomikuj_cli.models.files import FileDescriptor
from chomikuj_cli.utils.cancellation import CancellationToken
from chomikuj_cli.utils.structured_logger import SessionLogger

from . import codec

log = logging.getLogger(__name__)


class Transport(Protocol):
    async def send(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        body: Optional[bytes] = None,
    ) -> tuple[bytes, int]: ...


class ChomikboxSession:
    """
    Owns the authentication token, the login time and the sequence stamp of
    one set of credentials.

    Every service call goes through a single lock, and the stamp for a call
    is taken inside it, so stamps reach the server in increasing order.
    """

    LOGIN_TTL_SECONDS = 300
    STAMP_HEADROOM = 1000

    def __init__(
        self,
        credentials: Credentials,
        transport: Transport,
        service_url: str = DEFAULT_SERVICE_URL,
        starting_stamp: int = 0,
        cancel_token: Optional[CancellationToken] = None,
        session_logger: Optional[SessionLogger] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initializes the session.

        Args:
            credentials: User name and MD5 password hash.
            transport: The HTTP collaborator used for every round-trip.
            service_url: ChomikBox SOAP endpoint.
            starting_stamp: First sequence stamp to send.
            cancel_token: Checked before every round-trip.
            session_logger: Optional structured event sink.
            clock: Wall-clock source, injectable for tests.
        """
        self.credentials = credentials
        self.transport = transport
        self.service_url = service_url
        self.starting_stamp = starting_stamp
        self.cancel_token = cancel_token
        self._session_logger = session_logger
        self._clock = clock

        self.token: Optional[str] = None
        self.last_login_at: float = 0.0
        self._stamp = starting_stamp
        self.file_cache: dict[str, FileDescriptor] = {}

        self._request_lock = asyncio.Lock()
        self._login_lock = asyncio.Lock()

    @property
    def stamp(self) -> int:
        """The stamp the next Download call will carry."""
        return self._stamp

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) and (
            self._clock() < self.last_login_at + self.LOGIN_TTL_SECONDS
        )

    def next_stamp(self) -> int:
        """Returns the current stamp and advances the counter."""
        stamp = self._stamp
        self._stamp += 1
        return stamp

    def observe_response(self, payload: bytes) -> None:
        """Ratchets the counter past a server-reported stamp, never backwards."""
        server_stamp = codec.decode_server_stamp(payload)
        if server_stamp is None:
            return
        advanced = server_stamp + self.STAMP_HEADROOM
        if advanced > self._stamp:
            log.debug(f"Server stamp {server_stamp}; local stamp -> {advanced}")
            self._stamp = advanced

    def cache_descriptor(self, descriptor: FileDescriptor) -> None:
        self.file_cache[descriptor.id] = descriptor

    async def _post(self, action: str, body: bytes) -> bytes:
        """Sends one SOAP call. Callers must hold the request lock."""
        if self.cancel_token:
            self.cancel_token.raise_if_cancelled()

        headers = {
            "SOAPAction": codec.soap_action(action),
            "Content-Type": "text/xml;charset=utf-8",
        }
        payload, status = await self.transport.send(
            "POST", self.service_url, headers, body
        )
        if status >= 500 and not payload:
            raise TransportError(f"ChomikBox {action} call failed with HTTP {status}.")
        self.observe_response(payload)
        return payload

    async def ensure_authenticated(self) -> str:
        """
        Logs in unless a token younger than five minutes is cached.

        Returns:
            The session token.

        Raises:
            AuthenticationError: If the service returned no token.
        """
        async with self._login_lock:
            if self.is_authenticated:
                return self.token

            log.info(f"Logging in to ChomikBox as [bold]{self.credentials.username}[/]")
            login_started_at = self._clock()
            async with self._request_lock:
                payload = await self._post(
                    "Auth", codec.encode_auth_request(self.credentials)
                )

            token = codec.decode_auth_response(payload)
            status = codec.decode_auth_status(payload)
            if self._session_logger:
                self._session_logger.login(
                    self.credentials.username, status, success=bool(token)
                )

            if not token:
                self.token = None
                raise AuthenticationError(
                    f"Login as '{self.credentials.username}' failed"
                    f" (status: {status or 'no token returned'})."
                )

            self.token = token
            self.last_login_at = login_started_at
            log.debug(f"Login status: {status}")
            return token

    async def download_call(
        self,
        entries: Iterable[codec.DownloadRequestEntry],
        disposition: str = "download",
    ) -> bytes:
        """
        Issues one `Download` call with the next sequence stamp and returns
        the raw response payload.
        """
        token = await self.ensure_authenticated()
        async with self._request_lock:
            stamp = self.next_stamp()
            body = codec.encode_download_request(token, stamp, entries, disposition)
            log.debug(f"Download call with stamp {stamp}")
            return await self._post("Download", body)

    async def fetch_page(self, url: str) -> bytes:
        """Fetches a plain site page (used for the folder crawl)."""
        async with self._request_lock:
            if self.cancel_token:
                self.cancel_token.raise_if_cancelled()
            payload, status = await self.transport.send("GET", url, {}, None)
            self.observe_response(payload)
        if status >= 400:
            log.debug(f"Folder page {url} returned HTTP {status}")
            return b""
        return payload
