"""Tests for the httpx-backed transport."""

import asyncio
import json

import httpx
import pytest

from interchain.exceptions import RequestCanceled, TransportError
from interchain.pipeline.context import Context
from interchain.provider import HttpProvider
from interchain.transport import HttpxTransport, Transport


def make_transport(handler):
    return HttpxTransport(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestHttpxTransport:
    """Test sending through httpx.AsyncClient."""

    def test_satisfies_protocol(self):
        assert isinstance(make_transport(lambda request: httpx.Response(200)), Transport)

    @pytest.mark.asyncio
    async def test_sends_request(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, headers={"x-xsrf-token": "t"}, json={"id": 7})

        transport = make_transport(handler)
        ctx = Context(
            method="POST",
            uri="https://example.test/items",
            headers={"authorization": "Bearer x", "x-skip": None},
            payload={"name": "widget"},
        )

        response = await transport.send(ctx)

        assert response.status == 201
        assert response.json() == {"id": 7}
        assert response.get_header("X-XSRF-Token") == "t"
        request = seen[0]
        assert request.method == "POST"
        assert request.url == httpx.URL("https://example.test/items")
        assert request.headers["authorization"] == "Bearer x"
        assert "x-skip" not in request.headers
        assert json.loads(request.content) == {"name": "widget"}

    @pytest.mark.asyncio
    async def test_non_2xx_is_returned(self):
        transport = make_transport(lambda request: httpx.Response(503))

        response = await transport.send(Context(uri="https://example.test"))

        assert response.status == 503

    @pytest.mark.asyncio
    async def test_httpx_errors_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        transport = make_transport(handler)

        with pytest.raises(TransportError, match="connection refused") as exc_info:
            await transport.send(Context(uri="https://example.test"))

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert transport._inflight == {}

    @pytest.mark.asyncio
    async def test_abort_in_flight(self):
        started = asyncio.Event()

        async def handler(request):
            started.set()
            await asyncio.sleep(10)
            return httpx.Response(200)

        transport = make_transport(handler)
        ctx = Context(uri="https://example.test")
        send = asyncio.ensure_future(transport.send(ctx))
        await started.wait()

        transport.abort(ctx)
        transport.abort(ctx, ValueError("ignored"))

        with pytest.raises(RequestCanceled):
            await send
        assert transport._inflight == {}
        assert transport._abort_reasons == {}

    @pytest.mark.asyncio
    async def test_abort_with_custom_reason(self):
        started = asyncio.Event()

        async def handler(request):
            started.set()
            await asyncio.sleep(10)
            return httpx.Response(200)

        transport = make_transport(handler)
        ctx = Context(uri="https://example.test")
        send = asyncio.ensure_future(transport.send(ctx))
        await started.wait()

        transport.abort(ctx, TimeoutError("deadline"))

        with pytest.raises(TimeoutError, match="deadline"):
            await send

    def test_abort_unknown_context_is_noop(self):
        transport = make_transport(lambda request: httpx.Response(200))
        transport.abort(Context())
        assert transport._abort_reasons == {}

    @pytest.mark.asyncio
    async def test_aclose_only_closes_owned_client(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        async with HttpxTransport(client):
            pass
        assert not client.is_closed
        await client.aclose()

        owned = HttpxTransport()
        await owned.aclose()
        assert owned.client.is_closed


class TestProviderOverHttpx:
    """Test a provider with the httpx transport end to end."""

    @pytest.mark.asyncio
    async def test_round_trip(self, config):
        def handler(request):
            return httpx.Response(200, json={"path": request.url.path, "accept": request.headers.get("accept")})

        provider = HttpProvider(make_transport(handler), config=config, uri="https://example.test/api")
        provider.headers["accept"] = "application/json"

        async with provider:
            ctx = await provider.get()

        assert ctx.response.json() == {"path": "/api", "accept": "application/json"}

    @pytest.mark.asyncio
    async def test_network_failure_retried(self, config):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200)

        provider = HttpProvider(make_transport(handler), config=config, uri="https://example.test")
        provider.auto_retry(1)

        ctx = await provider.get()

        assert ctx.response.status == 200
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_abort_in_flight(self, config):
        started = asyncio.Event()

        async def handler(request):
            started.set()
            await asyncio.sleep(10)
            return httpx.Response(200)

        provider = HttpProvider(make_transport(handler), config=config, uri="https://example.test")

        request = provider.get()
        await started.wait()
        request.abort()

        with pytest.raises(RequestCanceled):
            await request
