"""Streaming HTTP transport abstractions for forwarding inference requests."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

import httpx

from .logging import get_logger


logger = get_logger(__name__)


class TransportError(Exception):
    """Base exception for transport failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize transport error.

        Args:
            message: Error message
            status_code: HTTP status code (optional)
        """
        super().__init__(message)
        self.status_code = status_code


class TransportTimeoutError(TransportError):
    """Exception raised when the upstream request times out."""

    def __init__(self, message: str = "Request timed out") -> None:
        super().__init__(message, status_code=408)


class TransportConnectionError(TransportError):
    """Exception raised when the upstream connection fails."""

    def __init__(self, message: str = "Connection failed") -> None:
        super().__init__(message, status_code=503)


class ByteStream(ABC):
    """An open upstream response body that can be iterated once."""

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[bytes]:
        """Iterate over the response body chunks."""

    @abstractmethod
    async def aclose(self) -> None:
        """Release the underlying connection."""


class StreamingTransport(ABC):
    """Abstract transport that posts a JSON payload and returns a byte stream."""

    @abstractmethod
    async def open_stream(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> ByteStream:
        """POST the payload and return the open response stream.

        Args:
            url: Target URL
            payload: JSON-serializable request body
            headers: HTTP headers

        Returns:
            The open response body

        Raises:
            TransportError: If the request fails or the upstream status is not 2xx
        """

    @abstractmethod
    async def close(self) -> None:
        """Close any resources held by the transport."""


class HTTPXByteStream(ByteStream):
    """Byte stream backed by a streaming ``httpx.Response``."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except httpx.TimeoutException as e:
            raise TransportTimeoutError(f"Stream timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Stream interrupted: {e}") from e
        finally:
            await self._response.aclose()

    async def aclose(self) -> None:
        await self._response.aclose()


class HTTPXStreamingTransport(StreamingTransport):
    """HTTPX-based streaming transport."""

    def __init__(
        self,
        timeout: float = 240.0,
        proxy: str | None = None,
        verify: bool | str = True,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize HTTPX transport.

        Args:
            timeout: Request timeout in seconds
            proxy: HTTP proxy URL (optional)
            verify: SSL verification (True/False or path to CA bundle)
            client: Pre-built client to use instead of creating one
        """
        self.timeout = timeout
        self.proxy = proxy
        self.verify = verify
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTPX client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                proxy=self.proxy,
                verify=self.verify,
            )
        return self._client

    async def open_stream(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> HTTPXByteStream:
        client = self._get_client()
        request = client.build_request("POST", url, json=payload, headers=headers)

        try:
            response = await client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise TransportTimeoutError(f"Request timed out: {e}") from e
        except httpx.ConnectError as e:
            raise TransportConnectionError(f"Connection failed: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP request failed: {e}") from e

        if response.is_error:
            try:
                body = await response.aread()
            except httpx.HTTPError as e:
                raise TransportError(
                    f"HTTP {response.status_code}: {response.reason_phrase}"
                    f" (error body unreadable: {e})",
                    status_code=response.status_code,
                ) from e
            finally:
                await response.aclose()
            detail = body.decode("utf-8", errors="replace").strip()
            message = f"HTTP {response.status_code}: {response.reason_phrase}"
            if detail:
                message = f"{message} - {detail}"
            raise TransportError(message, status_code=response.status_code)

        logger.debug(
            "upstream_stream_opened",
            url=url,
            status_code=response.status_code,
            category="upstream",
        )
        return HTTPXByteStream(response)

    async def close(self) -> None:
        """Close the HTTPX client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
