"""
Request dataclasses for OpenAI-compatible chat completions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..config import EffectiveConfig


class MessageRole(Enum):
    """OpenAI-compatible message roles."""
    USER = "user"


@dataclass(frozen=True)
class ChatMessage:
    """OpenAI-compatible message structure."""
    role: MessageRole
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class ChatRequest:
    """Streaming chat-completion request body."""
    model: str
    messages: tuple[ChatMessage, ...] = field(default_factory=tuple)
    stream: bool = True
    temperature: float | None = None

    def to_payload(self) -> dict[str, Any]:
        """Wire form; temperature is omitted when unset."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_dict() for message in self.messages],
            "stream": self.stream,
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        return payload


def build_chat_request(config: EffectiveConfig, content: str) -> ChatRequest:
    """Single user message, streaming enabled."""
    return ChatRequest(
        model=config.model,
        messages=(ChatMessage(role=MessageRole.USER, content=content),),
        stream=True,
        temperature=config.temperature,
    )
