"""Tests for the upstream chat completions client."""

from __future__ import annotations

import httpx
import pytest

from anthrorouter.config_loader import UpstreamSettings
from anthrorouter.core import (
    MalformedUpstream,
    UpstreamClient,
    UpstreamHttpError,
    extract_error_message,
    format_httpx_error,
)
from anthrorouter.testing import UPSTREAM_BASE_URL, FakeUpstream, UpstreamResponse


def _client(upstream: FakeUpstream, **overrides) -> UpstreamClient:
    settings = UpstreamSettings(base_url=UPSTREAM_BASE_URL, api_key="sk-or-test", **overrides)
    return UpstreamClient(settings, transport=httpx.ASGITransport(app=upstream.app))


class TestExtractErrorMessage:
    def test_reads_error_message(self):
        assert extract_error_message(b'{"error": {"message": "bad model"}}') == "bad model"

    @pytest.mark.parametrize("body", [b"", b"not json", b"[]", b'{"error": "flat"}', b'{"detail": "x"}'])
    def test_falls_back_to_default(self, body):
        assert extract_error_message(body) == "Upstream API error"


class TestFormatHttpxError:
    def test_includes_timeout_for_timeouts(self):
        exc = httpx.ReadTimeout("timed out")
        message = format_httpx_error(exc, "http://x/v1/chat/completions", 5.0)

        assert message.startswith("ReadTimeout")
        assert "url=http://x/v1/chat/completions" in message
        assert "timeout=5.0s" in message

    def test_connect_error(self):
        exc = httpx.ConnectError("refused")
        message = format_httpx_error(exc, "http://x", 5.0)
        assert message == "ConnectError; refused; url=http://x"


class TestUpstreamClient:
    """Tests for sending translated requests upstream."""

    def test_url_and_headers(self):
        client = UpstreamClient(
            UpstreamSettings(
                base_url="https://openrouter.ai/api/v1/",
                api_key="sk-or-1",
                site_url="https://example.org",
                title="My App",
            )
        )

        assert client.url == "https://openrouter.ai/api/v1/chat/completions"
        assert client.build_headers() == {
            "Authorization": "Bearer sk-or-1",
            "Content-Type": "application/json",
            "HTTP-Referer": "https://example.org",
            "X-Title": "My App",
        }

    def test_no_authorization_without_api_key(self):
        """An unset key sends no credential rather than an empty or placeholder one."""
        client = UpstreamClient(UpstreamSettings(base_url=UPSTREAM_BASE_URL, api_key=""))
        assert "Authorization" not in client.build_headers()

    @pytest.mark.asyncio
    async def test_send_returns_json(self):
        upstream = FakeUpstream()
        upstream.enqueue_openai_chat_response("hi", response_id="chatcmpl-1")

        body = await _client(upstream).send({"model": "m", "messages": [], "stream": False})

        assert body["id"] == "chatcmpl-1"
        assert upstream.received[0]["json"] == {"model": "m", "messages": [], "stream": False}

    @pytest.mark.asyncio
    async def test_send_raises_on_error_status(self):
        upstream = FakeUpstream()
        upstream.enqueue_error_response(429, "slow down", error_type="rate_limit_exceeded")

        with pytest.raises(UpstreamHttpError) as exc_info:
            await _client(upstream).send({"model": "m", "messages": []})

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "slow down"

    @pytest.mark.asyncio
    async def test_send_rejects_invalid_json(self):
        upstream = FakeUpstream()
        upstream.enqueue(UpstreamResponse(body="<html>"))

        with pytest.raises(MalformedUpstream):
            await _client(upstream).send({"model": "m", "messages": []})

    @pytest.mark.asyncio
    async def test_send_rejects_non_object_json(self):
        upstream = FakeUpstream()
        upstream.enqueue(UpstreamResponse(body="[1, 2]"))

        with pytest.raises(MalformedUpstream):
            await _client(upstream).send({"model": "m", "messages": []})

    @pytest.mark.asyncio
    async def test_transport_failure_is_bad_gateway(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = UpstreamClient(
            UpstreamSettings(base_url=UPSTREAM_BASE_URL),
            transport=httpx.MockTransport(refuse),
        )

        with pytest.raises(UpstreamHttpError) as exc_info:
            await client.send({"model": "m", "messages": []})

        assert exc_info.value.status_code == 502
        assert "ConnectError" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_send_streaming_yields_raw_bytes(self):
        upstream = FakeUpstream()
        upstream.enqueue_openai_chat_response("a b", stream=True)

        chunks = await _client(upstream).send_streaming({"model": "m", "messages": [], "stream": True})
        raw = b"".join([chunk async for chunk in chunks])

        assert raw.startswith(b"data: ")
        assert raw.endswith(b"data: [DONE]\n\n")

    @pytest.mark.asyncio
    async def test_send_streaming_raises_before_streaming(self):
        upstream = FakeUpstream()
        upstream.enqueue_error_response(401, "bad upstream key")

        with pytest.raises(UpstreamHttpError) as exc_info:
            await _client(upstream).send_streaming({"model": "m", "messages": [], "stream": True})

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "bad upstream key"
