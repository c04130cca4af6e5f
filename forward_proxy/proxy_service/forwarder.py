"""Outbound request forwarding."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, AsyncIterator, Callable

import aiohttp
from multidict import CIMultiDict
from yarl import URL

from forward_proxy.proxy_service.exceptions import ForwardError
from forward_proxy.shared.logging import get_logger

logger = get_logger(__name__)

BODYLESS_METHODS = frozenset({"GET", "HEAD"})

CHUNK_SIZE = 64 * 1024


class UpstreamResponse:
    """Status, headers and a not-yet-read body stream from the upstream."""

    def __init__(
        self,
        status: int,
        reason: str,
        headers: CIMultiDict[str],
        chunks: AsyncIterator[bytes],
        close: Callable[[], None],
    ):
        self.status = status
        self.reason = reason
        self.headers = headers
        self._chunks = chunks
        self._close = close

    def iter_chunks(self) -> AsyncIterator[bytes]:
        return self._chunks

    async def aclose(self) -> None:
        """Release the upstream connection; safe to call more than once."""
        self._close()


class Forwarder(ABC):
    """Abstract interface for sending the rewritten request upstream."""

    @abstractmethod
    async def forward(
        self,
        method: str,
        url: URL,
        headers: CIMultiDict[str],
        body: AsyncIterable[bytes] | None = None,
    ) -> UpstreamResponse:
        """
        Send one request to the upstream and return its response.

        Args:
            method: HTTP method
            url: Final upstream URL
            headers: Upstream request headers
            body: Request body stream, ignored for GET and HEAD

        Returns:
            Response whose body has not been consumed yet

        Raises:
            ForwardError: For any transport-level failure
        """
        pass


class AiohttpForwarder(Forwarder):
    """aiohttp-based implementation of the forwarder."""

    def __init__(self, session: aiohttp.ClientSession, timeout: float | None = None):
        """
        Initialize the forwarder.

        Args:
            session: Shared client session, owned by the application lifespan
            timeout: Total request timeout in seconds, None for no limit
        """
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def forward(
        self,
        method: str,
        url: URL,
        headers: CIMultiDict[str],
        body: AsyncIterable[bytes] | None = None,
    ) -> UpstreamResponse:
        data = None if method.upper() in BODYLESS_METHODS else body

        try:
            response = await self._session.request(
                method,
                url,
                headers=headers,
                data=data,
                allow_redirects=False,
                timeout=self._timeout,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as exc:
            message = str(exc) or exc.__class__.__name__
            logger.debug(f"Upstream request to {url} failed: {message}")
            raise ForwardError(message, target=str(url)) from exc

        return UpstreamResponse(
            status=response.status,
            reason=response.reason or "",
            headers=CIMultiDict(response.headers),
            chunks=response.content.iter_chunked(CHUNK_SIZE),
            close=response.close,
        )


def create_client_session() -> aiohttp.ClientSession:
    """Session used for all upstream calls; bodies are relayed without decoding."""
    return aiohttp.ClientSession(
        auto_decompress=False,
        cookie_jar=aiohttp.DummyCookieJar(),
    )
