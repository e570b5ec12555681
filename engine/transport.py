"""
HTTP Transport
FakeREST Contract Verification

The single network capability the engine depends on:
send(method, url, headers, body) -> (status, headers, body).
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import urlparse

import httpx

from common.toolkit import (
    HTTP_ERRORS_TOTAL,
    HTTP_REQUEST_DURATION,
    HTTP_REQUESTS_TOTAL,
)


class TransportError(Exception):
    """Raised when a call fails below HTTP (connection, timeout)."""

    def __init__(self, message: str, cause: BaseException = None, timed_out: bool = False):
        self.cause = cause
        self.timed_out = timed_out
        super().__init__(message)


@dataclass(frozen=True)
class TransportResponse:
    """Raw response handed back by a transport."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


class Transport(Protocol):
    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Any = None,
    ) -> TransportResponse:
        ...


def encode_body(body: Any) -> bytes | None:
    """Serialize a request body; bytes and str pass through."""
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


class HttpxTransport:
    """httpx-backed transport. One attempt per call, no retries."""

    DEFAULT_TIMEOUT = 30
    USER_AGENT = "fakerest-contracts/1.0"

    def __init__(self, client: httpx.AsyncClient = None, follow_redirects: bool = True):
        self._client = client
        self._owns_client = client is None
        self.follow_redirects = follow_redirects

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.DEFAULT_TIMEOUT),
                headers={"User-Agent": self.USER_AGENT},
                follow_redirects=self.follow_redirects,
            )
            self._owns_client = True
        return self._client

    async def close(self):
        """Close the HTTP client if this transport created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Any = None,
    ) -> TransportResponse:
        client = await self._get_client()
        host = urlparse(url).netloc

        start_time = time.monotonic()
        try:
            response = await client.request(
                method,
                url,
                headers=headers,
                content=encode_body(body),
            )
        except httpx.HTTPError as e:
            HTTP_ERRORS_TOTAL.labels(
                host=host, method=method, error_type=type(e).__name__,
            ).inc()
            raise TransportError(
                f"{method} {url} failed: {type(e).__name__}: {e}",
                cause=e,
                timed_out=isinstance(e, httpx.TimeoutException),
            ) from e
        finally:
            HTTP_REQUEST_DURATION.labels(host=host, method=method).observe(
                time.monotonic() - start_time
            )

        HTTP_REQUESTS_TOTAL.labels(
            host=host, method=method, status=str(response.status_code)
        ).inc()

        return TransportResponse(
            status=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )
