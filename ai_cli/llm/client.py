"""
Streaming HTTP client for OpenAI-compatible chat completions.

The transport applies a two-phase timeout: everything up to the first
non-empty body chunk (connect, status line, headers, first bytes) must
finish within the configured window; once bytes flow, the stream is read
without any deadline until the server closes it.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import AsyncExitStack
from typing import Any

import httpx

from ..config import EffectiveConfig
from ..logging_utils import LogSettings, mask_secret
from .exceptions import (
    EmptyStreamError,
    FirstChunkTimeoutError,
    HttpStatusError,
    StreamingError,
)
from .models import ChatRequest
from .streaming.models import DecoderStats, DeltaEvent
from .streaming.parser import MalformedFrameCallback, SSEDecoder

CHAT_COMPLETIONS_PATH = "/chat/completions"


def build_endpoint(base_url: str) -> str:
    """Join the base URL and the completions path with a single slash."""
    return f"{base_url.rstrip('/')}{CHAT_COMPLETIONS_PATH}"


async def _next_nonempty(chunks: AsyncIterator[bytes]) -> bytes | None:
    async for chunk in chunks:
        if chunk:
            return chunk
    return None


class StreamingTransport:
    """POSTs a request and exposes the response body as raw byte chunks."""

    def __init__(
        self,
        first_chunk_timeout: float,
        *,
        model: str = "unknown",
        log_settings: LogSettings | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.first_chunk_timeout = first_chunk_timeout
        self.model = model
        self.log_settings = log_settings or LogSettings()
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None
        self._logger = self.log_settings.get_logger("transport", model=model)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            # No client-wide timeout; the first-chunk deadline is ours
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(None), transport=self._http_transport
            )
        return self._client

    async def stream(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> AsyncGenerator[bytes]:
        """
        Send the request and yield body chunks as they arrive.

        Raises:
            HttpStatusError: Non-2xx status, with the full response body
            FirstChunkTimeoutError: No body byte within first_chunk_timeout
            EmptyStreamError: Body ended before any byte arrived
            StreamingError: Bad URL, network failure, or undecodable body
        """
        client = await self._get_client()
        self._logger.debug("Sending streaming request", url=url)

        async with AsyncExitStack() as stack:
            first_chunk_received = False
            try:
                async with asyncio.timeout(self.first_chunk_timeout) as deadline:
                    response = await stack.enter_async_context(
                        client.stream("POST", url, json=payload, headers=headers)
                    )
                    self._logger.info(
                        "API response status",
                        status_code=response.status_code,
                        reason=response.reason_phrase,
                    )
                    if not response.is_success:
                        await response.aread()
                        raise HttpStatusError(
                            response.status_code, response.text, model=self.model
                        )

                    chunks = response.aiter_bytes()
                    first = await _next_nonempty(chunks)
                    first_chunk_received = first is not None
                    # Disarm: a live generation is never cut short
                    deadline.reschedule(None)
            except TimeoutError as e:
                self._logger.debug(
                    "First chunk timeout", timeout=self.first_chunk_timeout
                )
                raise FirstChunkTimeoutError(
                    self.first_chunk_timeout, model=self.model
                ) from e
            except (httpx.InvalidURL, httpx.HTTPError) as e:
                raise StreamingError(
                    f"Failed to send request to {url}: {e}", model=self.model
                ) from e

            if not first_chunk_received:
                raise EmptyStreamError(model=self.model)

            self._logger.debug("First chunk received, timeout disarmed")
            yield first

            try:
                async for chunk in chunks:
                    if chunk:
                        yield chunk
            except (httpx.InvalidURL, httpx.HTTPError) as e:
                raise StreamingError(
                    f"Failed to read response chunk from {url}: {e}",
                    model=self.model,
                ) from e

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> StreamingTransport:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class ChatClient:
    """
    Chat-completion client that streams text deltas.

    Wires a StreamingTransport into an SSEDecoder for one endpoint derived
    from the effective configuration.
    """

    def __init__(
        self,
        config: EffectiveConfig,
        *,
        log_settings: LogSettings | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        on_malformed: MalformedFrameCallback | None = None,
    ):
        self.config = config
        self.log_settings = log_settings or LogSettings()
        self.endpoint = build_endpoint(config.base_url)
        self.on_malformed = on_malformed
        self.transport = StreamingTransport(
            config.first_chunk_timeout,
            model=config.model,
            log_settings=self.log_settings,
            http_transport=http_transport,
        )
        self.last_stats: DecoderStats | None = None
        self._logger = self.log_settings.get_logger("client", model=config.model)

    def build_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        else:
            self._logger.debug(
                "No API key provided; authenticated endpoints will reject the request"
            )
        return headers

    def _trace_request(self, payload: dict[str, Any]) -> None:
        self._logger.debug(
            "Service call details",
            url=self.endpoint,
            authorization=mask_secret(self.config.api_key),
            body=json.dumps(payload, indent=2, ensure_ascii=False),
        )

    async def stream_chat(self, request: ChatRequest) -> AsyncGenerator[DeltaEvent]:
        """Send the request and yield each text delta as it is decoded."""
        payload = request.to_payload()
        if self.log_settings.trace_wire:
            self._trace_request(payload)

        decoder = SSEDecoder(self.log_settings, on_malformed=self.on_malformed)
        self.last_stats = decoder.stats
        chunks = self.transport.stream(self.endpoint, payload, self.build_headers())
        try:
            async for event in decoder.decode(chunks):
                yield event
        finally:
            await chunks.aclose()

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> ChatClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
