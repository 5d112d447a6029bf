"""
Chat-completion integration.

This package provides:
- Request dataclasses for OpenAI-compatible endpoints
- A streaming HTTP transport with a first-chunk timeout
- Error types carrying request context
"""

from __future__ import annotations

from .client import ChatClient, StreamingTransport, build_endpoint
from .exceptions import (
    EmptyStreamError,
    FirstChunkTimeoutError,
    HttpStatusError,
    LLMError,
    StreamEncodingError,
    StreamingError,
)
from .models import ChatMessage, ChatRequest, MessageRole, build_chat_request

__all__ = [
    # Client
    "ChatClient",
    # Models
    "ChatMessage",
    "ChatRequest",
    # Exceptions
    "EmptyStreamError",
    "FirstChunkTimeoutError",
    "HttpStatusError",
    "LLMError",
    "MessageRole",
    "StreamEncodingError",
    "StreamingError",
    "StreamingTransport",
    "build_chat_request",
    "build_endpoint",
]
