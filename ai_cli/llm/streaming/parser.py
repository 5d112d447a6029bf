"""
Incremental SSE decoder for chat-completion streams.

Raw byte chunks are folded into a line buffer; every complete line is
classified and `data:` payloads are decoded into DeltaEvents as soon as
their terminating newline arrives. Chunks may split lines or UTF-8
codepoints anywhere.
"""

from __future__ import annotations

import codecs
from collections.abc import AsyncGenerator, AsyncIterable, Callable

from pydantic import ValidationError

from ...logging_utils import LogSettings
from ..exceptions import StreamEncodingError
from .models import (
    ChatCompletionChunk,
    DecoderStats,
    DeltaEvent,
    SSEEventType,
    SSEFrame,
)

# Constants
DATA_PREFIX = "data: "
DONE_MARKER = "data: [DONE]"

MalformedFrameCallback = Callable[[str, Exception], None]


class SSEDecoder:
    """Line-buffered SSE decoder emitting text deltas as they complete."""

    def __init__(
        self,
        log_settings: LogSettings | None = None,
        on_malformed: MalformedFrameCallback | None = None,
    ):
        self.log_settings = log_settings or LogSettings()
        self.on_malformed = on_malformed
        self.stats = DecoderStats()
        self._logger = self.log_settings.get_logger("decoder")
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="strict")

    @property
    def buffer(self) -> str:
        """Unterminated tail seen so far."""
        return self._buffer

    @staticmethod
    def classify(line: str) -> SSEFrame:
        """Classify one line; surrounding whitespace (incl. CR) is ignored."""
        line = line.strip()
        # [DONE] must never reach the JSON parser
        if line.startswith(DONE_MARKER):
            return SSEFrame(SSEEventType.DONE)
        if line.startswith(DATA_PREFIX):
            return SSEFrame(SSEEventType.DATA, line[len(DATA_PREFIX):])
        return SSEFrame(SSEEventType.OTHER)

    def feed(self, chunk: bytes) -> list[DeltaEvent]:
        """
        Append a raw chunk and drain every complete line.

        Args:
            chunk: Bytes as delivered by the transport

        Returns:
            DeltaEvents for the lines completed by this chunk, in order

        Raises:
            StreamEncodingError: If the bytes are not valid UTF-8
        """
        self.stats.chunks += 1
        try:
            text = self._utf8.decode(chunk)
        except UnicodeDecodeError as e:
            raise StreamEncodingError(
                f"Failed to decode response as UTF-8 in chunk {self.stats.chunks}: {e}"
            ) from e

        self._logger.debug(
            "Received chunk", chunk=self.stats.chunks, size=len(chunk)
        )
        if self.log_settings.trace_wire:
            self._logger.debug("Chunk content", chunk=self.stats.chunks, text=text)

        self._buffer += text
        return self._drain()

    def _drain(self) -> list[DeltaEvent]:
        events: list[DeltaEvent] = []
        while (pos := self._buffer.find("\n")) != -1:
            line = self._buffer[:pos]
            self._buffer = self._buffer[pos + 1:]
            events.extend(self._process_line(line))
        return events

    def _process_line(self, line: str) -> list[DeltaEvent]:
        self.stats.lines += 1
        frame = self.classify(line)

        if frame.event_type == SSEEventType.DONE:
            self.stats.done_markers += 1
            self._logger.debug("Received end-of-stream marker")
            return []

        if frame.event_type != SSEEventType.DATA or not frame.payload:
            return []

        self.stats.data_frames += 1
        try:
            parsed = ChatCompletionChunk.model_validate_json(frame.payload)
        except ValidationError as e:
            self._skip_malformed(frame.payload, e)
            return []

        events = [DeltaEvent(text=content) for content in parsed.contents()]
        self.stats.deltas += len(events)
        return events

    def _skip_malformed(self, payload: str, error: ValidationError) -> None:
        self.stats.malformed_frames += 1
        self._logger.debug(
            "Skipping malformed data frame", error_count=error.error_count()
        )
        if self.log_settings.trace_wire:
            self._logger.debug("Malformed frame payload", raw_data=payload)
        if self.on_malformed is not None:
            self.on_malformed(payload, error)

    def finish(self) -> str:
        """
        Finalize at end of stream.

        Any unterminated tail (including incomplete UTF-8 bytes) is dropped
        without being parsed.

        Returns:
            The discarded tail text
        """
        tail = self._buffer
        pending, _ = self._utf8.getstate()
        discarded = len(tail.encode("utf-8")) + len(pending)
        self.stats.discarded_tail = discarded

        self._logger.info("Streaming completed", **self.stats.as_dict())
        if discarded:
            self._logger.debug("Discarding incomplete tail", length=discarded)
            if self.log_settings.trace_wire:
                self._logger.debug("Incomplete tail content", text=tail)

        self._buffer = ""
        self._utf8.reset()
        return tail

    async def decode(
        self, chunks: AsyncIterable[bytes]
    ) -> AsyncGenerator[DeltaEvent]:
        """Yield DeltaEvents while consuming chunks; finalize when they end."""
        async for chunk in chunks:
            for event in self.feed(chunk):
                yield event
        self.finish()
