"""
Streaming dataclasses for SSE decoding.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum

from pydantic import BaseModel


class SSEEventType(Enum):
    """Classification of one trimmed SSE line."""
    DATA = "data"
    DONE = "done"
    OTHER = "other"


@dataclass(frozen=True)
class SSEFrame:
    """One complete line from the event stream."""
    event_type: SSEEventType
    payload: str | None = None


@dataclass(frozen=True)
class DeltaEvent:
    """Incremental text fragment from one choice."""
    text: str


@dataclass
class DecoderStats:
    """Diagnostic counters; never consulted for control flow."""
    chunks: int = 0
    lines: int = 0
    data_frames: int = 0
    done_markers: int = 0
    malformed_frames: int = 0
    deltas: int = 0
    discarded_tail: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class ChoiceDelta(BaseModel):
    """Delta payload of a streamed choice; unknown fields are ignored."""
    content: str | None = None


class CompletionChoice(BaseModel):
    delta: ChoiceDelta


class ChatCompletionChunk(BaseModel):
    """Decoded `data:` payload of a chat-completion stream."""
    choices: list[CompletionChoice]

    def contents(self) -> list[str]:
        """Non-empty delta contents in choice order."""
        return [
            choice.delta.content
            for choice in self.choices
            if choice.delta.content
        ]
