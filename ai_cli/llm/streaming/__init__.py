"""
Streaming functionality for chat-completion responses.

This module contains:
- SSE line classification
- Incremental chunk decoding
- Text delta events
"""

from __future__ import annotations

from .models import DecoderStats, DeltaEvent, SSEEventType, SSEFrame
from .parser import DATA_PREFIX, DONE_MARKER, SSEDecoder

__all__ = [
    "DATA_PREFIX",
    "DONE_MARKER",
    "DecoderStats",
    "DeltaEvent",
    "SSEDecoder",
    "SSEEventType",
    "SSEFrame",
]
