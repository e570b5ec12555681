"""
Tests for HttpxTransport: request encoding, error conversion, metrics.
"""

import json

import httpx
import pytest

from engine.transport import HttpxTransport, TransportError, TransportResponse, encode_body


def _transport(handler) -> HttpxTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpxTransport(client)


# =============================================================================
# TEST BODY ENCODING
# =============================================================================


class TestEncodeBody:
    """Tests for encode_body()."""

    def test_none(self):
        assert encode_body(None) is None

    def test_dict_to_json(self):
        assert json.loads(encode_body({"id": 1})) == {"id": 1}

    def test_bytes_pass_through(self):
        assert encode_body(b"raw") == b"raw"

    def test_str_encoded(self):
        assert encode_body("text") == b"text"


# =============================================================================
# TEST SEND
# =============================================================================


class TestHttpxTransportSend:
    """Tests for HttpxTransport.send()."""

    @pytest.mark.asyncio
    async def test_send_returns_response(self):
        def handler(request):
            return httpx.Response(200, json=[{"id": 1}])

        transport = _transport(handler)
        response = await transport.send("GET", "https://api.test/api/v1/Books", {})

        assert isinstance(response, TransportResponse)
        assert response.status == 200
        assert json.loads(response.body) == [{"id": 1}]
        assert response.headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_send_json_body_and_headers(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            seen["content_type"] = request.headers.get("content-type")
            return httpx.Response(200, json={"id": 5})

        transport = _transport(handler)
        await transport.send(
            "POST",
            "https://api.test/api/v1/Users",
            {"Content-Type": "application/json"},
            {"userName": "a"},
        )

        assert seen == {
            "method": "POST",
            "body": {"userName": "a"},
            "content_type": "application/json",
        }

    @pytest.mark.asyncio
    async def test_http_error_status_is_not_transport_error(self):
        transport = _transport(lambda request: httpx.Response(404))

        response = await transport.send("GET", "https://api.test/api/v1/Users/999999", {})

        assert response.status == 404
        assert response.body == b""

    @pytest.mark.asyncio
    async def test_connect_error_converted(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        transport = _transport(handler)

        with pytest.raises(TransportError) as exc_info:
            await transport.send("GET", "https://api.test/api/v1/Books", {})

        assert isinstance(exc_info.value.cause, httpx.ConnectError)
        assert exc_info.value.timed_out is False

    @pytest.mark.asyncio
    async def test_timeout_converted(self):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        transport = _transport(handler)

        with pytest.raises(TransportError) as exc_info:
            await transport.send("GET", "https://api.test/api/v1/Books", {})

        assert exc_info.value.timed_out is True

    @pytest.mark.asyncio
    async def test_single_attempt(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        transport = _transport(handler)
        response = await transport.send("GET", "https://api.test/api/v1/Books", {})

        assert response.status == 503
        assert len(calls) == 1


# =============================================================================
# TEST CLIENT LIFECYCLE
# =============================================================================


class TestHttpxTransportLifecycle:
    """Tests for lazy client creation and closing."""

    @pytest.mark.asyncio
    async def test_lazy_client_created(self):
        transport = HttpxTransport()
        client = await transport._get_client()

        assert isinstance(client, httpx.AsyncClient)
        assert client.headers["User-Agent"] == HttpxTransport.USER_AGENT
        await transport.close()
        assert client.is_closed

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))

        async with HttpxTransport(client):
            pass

        assert not client.is_closed
        await client.aclose()


# =============================================================================
# TEST METRICS
# =============================================================================


class TestTransportMetrics:
    """Tests that Prometheus counters are updated."""

    @pytest.mark.asyncio
    async def test_request_counter_incremented(self):
        from prometheus_client import REGISTRY

        labels = {"host": "metrics.test", "method": "GET", "status": "200"}
        before = REGISTRY.get_sample_value("fakerest_http_requests_total", labels) or 0

        transport = _transport(lambda request: httpx.Response(200))
        await transport.send("GET", "https://metrics.test/api/v1/Books", {})

        after = REGISTRY.get_sample_value("fakerest_http_requests_total", labels)
        assert after == before + 1

    @pytest.mark.asyncio
    async def test_error_counter_incremented(self):
        from prometheus_client import REGISTRY

        labels = {"host": "errors.test", "method": "GET", "error_type": "ConnectError"}
        before = REGISTRY.get_sample_value("fakerest_http_errors_total", labels) or 0

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError):
            await _transport(handler).send("GET", "https://errors.test/", {})

        assert REGISTRY.get_sample_value("fakerest_http_errors_total", labels) == before + 1
