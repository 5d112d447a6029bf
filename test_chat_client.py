#!/usr/bin/env python3
"""
Tests for request building and the streaming HTTP transport.

Uses httpx.MockTransport so no network is involved. Timeouts are scaled
down to fractions of a second; the ratios match the real 300 s window.
"""

import asyncio
import json

import httpx
import pytest

from ai_cli.config import EffectiveConfig
from ai_cli.llm.client import ChatClient, StreamingTransport, build_endpoint
from ai_cli.llm.exceptions import (
    EmptyStreamError,
    FirstChunkTimeoutError,
    HttpStatusError,
    StreamEncodingError,
    StreamingError,
)
from ai_cli.llm.models import MessageRole, build_chat_request

HE = b'data: {"choices":[{"delta":{"content":"He"}}]}\n'
LLO = b'data: {"choices":[{"delta":{"content":"llo"}}]}\n'


def make_config(**kwargs):
    values = {
        "model": "llama3",
        "base_url": "http://test/v1",
        "first_chunk_timeout": 1.0,
    }
    values.update(kwargs)
    return EffectiveConfig(**values)


def sse_response(*chunks, delay_before=0.0, delay_between=0.0):
    async def body():
        if delay_before:
            await asyncio.sleep(delay_before)
        for i, chunk in enumerate(chunks):
            if i and delay_between:
                await asyncio.sleep(delay_between)
            yield chunk

    return httpx.Response(
        200, headers={"content-type": "text/event-stream"}, content=body()
    )


async def collect(client, content="hi"):
    request = build_chat_request(client.config, content)
    return [event.text async for event in client.stream_chat(request)]


class TestRequestBuilder:
    """Test the wire request."""

    def test_single_user_message(self):
        request = build_chat_request(make_config(temperature=0.3), "body")
        assert request.stream is True
        assert len(request.messages) == 1
        assert request.messages[0].role == MessageRole.USER
        assert request.to_payload() == {
            "model": "llama3",
            "messages": [{"role": "user", "content": "body"}],
            "stream": True,
            "temperature": 0.3,
        }

    def test_temperature_omitted_when_unset(self):
        payload = build_chat_request(make_config(), "body").to_payload()
        assert "temperature" not in payload


class TestEndpoint:
    """Test URL composition."""

    @pytest.mark.parametrize(
        "base_url",
        ["http://localhost:11434/v1", "http://localhost:11434/v1/"],
    )
    def test_no_duplicate_slash(self, base_url):
        assert build_endpoint(base_url) == "http://localhost:11434/v1/chat/completions"


class TestChatClient:
    """Test end-to-end streaming through a mock endpoint."""

    @pytest.mark.asyncio
    async def test_two_chunk_response(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return sse_response(HE, LLO, b"data: [DONE]\n")

        config = make_config(api_key="sk-test")
        async with ChatClient(config, http_transport=httpx.MockTransport(handler)) as client:
            assert "".join(await collect(client, "question")) == "Hello"

        assert seen["url"] == "http://test/v1/chat/completions"
        assert seen["headers"]["authorization"] == "Bearer sk-test"
        assert seen["body"]["stream"] is True
        assert seen["body"]["messages"] == [{"role": "user", "content": "question"}]

    @pytest.mark.asyncio
    async def test_no_authorization_without_key(self):
        seen = {}

        def handler(request):
            seen["headers"] = request.headers
            return sse_response(HE)

        async with ChatClient(make_config(), http_transport=httpx.MockTransport(handler)) as client:
            await collect(client)
        assert "authorization" not in seen["headers"]

    @pytest.mark.asyncio
    async def test_malformed_line_does_not_abort(self):
        transport = httpx.MockTransport(
            lambda request: sse_response(b"data: {oops\n", LLO)
        )
        async with ChatClient(make_config(), http_transport=transport) as client:
            assert await collect(client) == ["llo"]
            assert client.last_stats.malformed_frames == 1

    @pytest.mark.asyncio
    async def test_http_status_error_carries_body(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(401, text='{"error":"bad key"}')
        )
        async with ChatClient(make_config(), http_transport=transport) as client:
            with pytest.raises(HttpStatusError) as exc_info:
                await collect(client)
        assert exc_info.value.status_code == 401
        assert exc_info.value.body == '{"error":"bad key"}'
        assert exc_info.value.model == "llama3"
        assert "401" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b""))
        async with ChatClient(make_config(), http_transport=transport) as client:
            with pytest.raises(EmptyStreamError):
                await collect(client)

    @pytest.mark.asyncio
    async def test_invalid_utf8(self):
        transport = httpx.MockTransport(lambda request: sse_response(b"data: \xff\n"))
        async with ChatClient(make_config(), http_transport=transport) as client:
            with pytest.raises(StreamEncodingError):
                await collect(client)

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with ChatClient(make_config(), http_transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(StreamingError, match="connection refused"):
                await collect(client)

    @pytest.mark.asyncio
    async def test_invalid_base_url(self):
        transport = httpx.MockTransport(lambda request: sse_response(HE))
        config = make_config(base_url="http://[::1")
        async with ChatClient(config, http_transport=transport) as client:
            with pytest.raises(StreamingError, match=r"http://\[::1/chat/completions"):
                await collect(client)

    @pytest.mark.asyncio
    async def test_undecodable_content_encoding(self):
        async def body():
            yield b"definitely not gzip"

        transport = httpx.MockTransport(
            lambda request: httpx.Response(
                200, headers={"content-encoding": "gzip"}, content=body()
            )
        )
        async with ChatClient(make_config(), http_transport=transport) as client:
            with pytest.raises(StreamingError, match="Failed to send request"):
                await collect(client)

    @pytest.mark.asyncio
    async def test_decoding_failure_after_first_chunk(self):
        async def body():
            yield HE
            raise httpx.DecodingError("corrupt body")

        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=body()))
        received = []
        async with ChatClient(make_config(), http_transport=transport) as client:
            request = build_chat_request(client.config, "hi")
            with pytest.raises(StreamingError, match="corrupt body") as exc_info:
                async for event in client.stream_chat(request):
                    received.append(event.text)
        assert received == ["He"]
        assert "http://test/v1/chat/completions" in str(exc_info.value)


class TestFirstChunkTimeout:
    """Test the bounded-first-byte, unbounded-thereafter policy."""

    @pytest.mark.asyncio
    async def test_slow_headers_time_out(self):
        async def handler(request):
            await asyncio.sleep(0.301)
            return sse_response(HE)

        config = make_config(first_chunk_timeout=0.05)
        async with ChatClient(config, http_transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(FirstChunkTimeoutError) as exc_info:
                await collect(client)
        assert exc_info.value.timeout == 0.05

    @pytest.mark.asyncio
    async def test_slow_first_body_chunk_times_out(self):
        transport = httpx.MockTransport(
            lambda request: sse_response(HE, delay_before=0.301)
        )
        config = make_config(first_chunk_timeout=0.3)
        async with ChatClient(config, http_transport=transport) as client:
            with pytest.raises(FirstChunkTimeoutError):
                await collect(client)

    @pytest.mark.asyncio
    async def test_same_delay_with_longer_timeout_succeeds(self):
        transport = httpx.MockTransport(
            lambda request: sse_response(HE, LLO, delay_before=0.301)
        )
        config = make_config(first_chunk_timeout=0.8)
        async with ChatClient(config, http_transport=transport) as client:
            assert "".join(await collect(client)) == "Hello"

    @pytest.mark.asyncio
    async def test_no_deadline_after_first_chunk(self):
        transport = httpx.MockTransport(
            lambda request: sse_response(HE, LLO, delay_between=0.2)
        )
        config = make_config(first_chunk_timeout=0.05)
        async with ChatClient(config, http_transport=transport) as client:
            assert "".join(await collect(client)) == "Hello"


class TestStreamingTransport:
    """Test raw chunk delivery."""

    @pytest.mark.asyncio
    async def test_chunks_passed_through_unaltered(self):
        split = HE[:10], HE[10:] + LLO[:3], LLO[3:]
        transport = httpx.MockTransport(lambda request: sse_response(*split))
        async with StreamingTransport(1.0, http_transport=transport) as streaming:
            received = [
                chunk async for chunk in streaming.stream("http://test/v1/chat/completions", {})
            ]
        assert b"".join(received) == HE + LLO
