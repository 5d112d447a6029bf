"""
Error handling for chat-completion requests and response streams.

This module provides errors with request context attached:
- HTTP status failures with the captured response body
- First-chunk timeout and empty-stream detection
- Encoding failures in the raw byte stream
"""

from __future__ import annotations

from ..exceptions import AICliError


class LLMError(AICliError):
    """Base LLM error with request context."""

    def __init__(
        self,
        message: str,
        model: str = "unknown",
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.model = model
        self.status_code = status_code


class HttpStatusError(LLMError):
    """Endpoint answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str, **kwargs):
        super().__init__(
            f"API request failed with status {status_code}: {body}",
            status_code=status_code,
            **kwargs,
        )
        self.body = body


class StreamingError(LLMError):
    """Streaming-specific errors."""


class FirstChunkTimeoutError(StreamingError):
    """No response byte arrived within the first-chunk window."""

    def __init__(self, timeout: float, **kwargs):
        super().__init__(
            f"Timed out after {timeout:g}s waiting for the first response chunk",
            **kwargs,
        )
        self.timeout = timeout


class EmptyStreamError(StreamingError):
    """Stream ended before any data was received."""

    def __init__(self, **kwargs):
        super().__init__("Stream ended before any data was received", **kwargs)


class StreamEncodingError(StreamingError):
    """Response bytes are not valid UTF-8."""
