"""
Request Executor
FakeREST Contract Verification

Performs exactly one HTTP call for a resolved ExecutionRequest and
captures status, headers, decoded body and elapsed time.
"""

import asyncio
import json
import re
import time
from typing import Any
from urllib.parse import quote, urlencode

from common.toolkit import StructuredLogger
from engine.transport import Transport, TransportError, TransportResponse
from models.contract import ExecutionRequest, ExecutionResult

PLACEHOLDER = re.compile(r"\{(\w+)\}")


class PathParameterError(ValueError):
    """Raised when path parameters cannot be substituted into a template."""


def resolve_path(
    template: str,
    parameters: dict[str, Any] = None,
    allow_unsafe: bool = True,
) -> tuple[str, dict[str, Any]]:
    """
    Substitute path placeholders and split off query parameters.

    Values are percent-encoded, so identifiers containing spaces or "/"
    are escaped rather than rejected. A trailing placeholder with no
    value is dropped, which turns "/api/v1/Books/{id}" into the
    collection path "/api/v1/Books". Parameters not named in the
    template are returned as query parameters.

    Returns:
        Tuple of (resolved path, query parameters)

    Raises:
        PathParameterError: If a non-trailing placeholder has no value, or
            a value needs escaping and allow_unsafe is False
    """
    parameters = dict(parameters or {})
    segments = template.rstrip("/").split("/")

    while segments and PLACEHOLDER.fullmatch(segments[-1]):
        name = PLACEHOLDER.fullmatch(segments[-1]).group(1)
        if parameters.get(name) is not None:
            break
        segments.pop()
        parameters.pop(name, None)

    def substitute(match):
        name = match.group(1)
        value = parameters.pop(name, None)
        if value is None:
            raise PathParameterError(f"Missing value for path parameter '{name}'")
        raw = str(value)
        encoded = quote(raw, safe="")
        if encoded != raw and not allow_unsafe:
            raise PathParameterError(
                f"Path parameter '{name}' contains characters that need escaping: {raw!r}"
            )
        return encoded

    path = PLACEHOLDER.sub(substitute, "/".join(segments)) or "/"
    query = {k: v for k, v in parameters.items() if v is not None}
    return path, query


def decode_body(raw: bytes) -> Any:
    """Empty -> None, JSON -> decoded value, anything else -> text."""
    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


class RequestExecutor:
    """Executes ExecutionRequests against a base URL through a transport."""

    def __init__(self, transport: Transport, base_url: str = "", log: StructuredLogger = None):
        self.transport = transport
        self.base_url = base_url.rstrip("/")
        self.log = log or StructuredLogger("executor")

    def build_url(self, req: ExecutionRequest) -> str:
        url = f"{self.base_url}{req.resolved_path}"
        if req.query:
            url = f"{url}?{urlencode(req.query, doseq=True)}"
        return url

    async def execute(self, req: ExecutionRequest, timeout_millis: float) -> ExecutionResult:
        """
        Perform the call once.

        Args:
            req: Resolved request
            timeout_millis: Upper bound for the whole call, must be > 0

        Returns:
            ExecutionResult with elapsed_millis always populated

        Raises:
            ValueError: If timeout_millis is not positive
            TransportError: On connection failure or timeout
        """
        if timeout_millis is None or timeout_millis <= 0:
            raise ValueError(f"timeout_millis must be > 0, got {timeout_millis}")

        url = self.build_url(req)
        self.log.debug("Request starting", method=req.method.value, url=url)

        start_time = time.monotonic()
        try:
            response: TransportResponse = await asyncio.wait_for(
                self.transport.send(req.method.value, url, dict(req.headers), req.body),
                timeout=timeout_millis / 1000,
            )
        except asyncio.TimeoutError as e:
            elapsed = (time.monotonic() - start_time) * 1000
            self.log.warning(
                "Request timed out",
                method=req.method.value, url=url, elapsed_ms=round(elapsed, 1),
            )
            raise TransportError(
                f"{req.method.value} {url} timed out after {timeout_millis}ms",
                cause=e,
                timed_out=True,
            ) from e
        except TransportError as e:
            self.log.warning("Request failed", method=req.method.value, url=url, error=str(e))
            raise
        except OSError as e:
            self.log.warning("Request failed", method=req.method.value, url=url, error=str(e))
            raise TransportError(f"{req.method.value} {url} failed: {e}", cause=e) from e

        elapsed = (time.monotonic() - start_time) * 1000

        self.log.debug(
            "Request finished",
            method=req.method.value, url=url,
            status=response.status, elapsed_ms=round(elapsed, 1),
        )

        return ExecutionResult(
            status=response.status,
            headers=response.headers,
            body=decode_body(response.body),
            elapsed_millis=elapsed,
        )
