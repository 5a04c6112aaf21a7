"""Tests for Context and Response."""

import httpx

from interchain.pipeline.context import Context, Response


class TestContext:
    """Test Context construction and helpers."""

    def test_defaults(self):
        ctx = Context()
        assert ctx.method == "GET"
        assert ctx.uri == httpx.URL("")
        assert ctx.headers == {}
        assert ctx.meta == {}
        assert ctx.response is None
        assert ctx.error is None
        assert ctx.attempt == 0

    def test_request_id_defaults_to_id(self):
        ctx = Context()
        assert ctx.id
        assert ctx.request_id == ctx.id

    def test_method_uppercased_and_uri_converted(self):
        ctx = Context(method="post", uri="https://example.test/x")
        assert ctx.method == "POST"
        assert isinstance(ctx.uri, httpx.URL)
        assert ctx.uri.path == "/x"

    def test_for_request_copies_headers_and_meta(self):
        headers = {"accept": "application/json"}
        meta = {"retryable": True}

        ctx = Context.for_request("get", "https://example.test", headers=headers, meta=meta, request_id="req-1", attempt=2)
        ctx.headers["x-extra"] = "1"
        ctx.meta["seen"] = True

        assert headers == {"accept": "application/json"}
        assert meta == {"retryable": True}
        assert ctx.request_id == "req-1"
        assert ctx.attempt == 2
        assert ctx.id != "req-1"

    def test_each_context_gets_fresh_id(self):
        first = Context.for_request("GET", "https://example.test", request_id="req")
        second = Context.for_request("GET", "https://example.test", request_id="req")
        assert first.id != second.id
        assert first.request_id == second.request_id == "req"

    def test_get_header_case_insensitive(self):
        ctx = Context(headers={"X-XSRF-Token": "abc"})
        assert ctx.get_header("x-xsrf-token") == "abc"
        assert ctx.has_header("X-Xsrf-Token")
        assert ctx.get_header("missing", default="none") == "none"
        assert not ctx.has_header("missing")

    def test_has_header_with_none_value(self):
        ctx = Context(headers={"x-xsrf-token": None})
        assert ctx.has_header("x-xsrf-token")
        assert ctx.get_header("x-xsrf-token") is None

    def test_encoded_payload(self):
        assert Context().encoded_payload() is None
        assert Context(payload=b"raw").encoded_payload() == b"raw"
        assert Context(payload="héllo", encoding="latin-1").encoded_payload() == "héllo".encode("latin-1")
        assert Context(payload={"a": 1}).encoded_payload() == b'{"a": 1}'

    def test_retryable_flag(self):
        ctx = Context()
        assert ctx.retryable is False

        ctx.retryable = True
        assert ctx.meta["retryable"] is True
        assert ctx.retryable is True


class TestResponse:
    """Test the Response view."""

    def test_from_httpx(self):
        raw = httpx.Response(201, headers={"X-XSRF-Token": "t1"}, content=b'{"ok": true}')

        response = Response.from_httpx(raw)

        assert response.status == 201
        assert response.reason == "Created"
        assert response.get_header("x-xsrf-token") == "t1"
        assert response.get_header("X-XSRF-TOKEN") == "t1"
        assert response.json() == {"ok": True}
        assert response.ok

    def test_not_ok(self):
        response = Response(status=503, content=b"busy")
        assert not response.ok
        assert response.text == "busy"
