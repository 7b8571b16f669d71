"""LLM service protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol


class Role(str, Enum):
    """Message role in conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class Message:
    """A single message in conversation history."""

    role: Role
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class ChatService(Protocol):
    """Protocol for conversational AI backends."""

    async def reply(self, transcript: list[Message], user_text: str) -> str:
        """Answer ``user_text`` given the conversation so far.

        Raises:
            AIBackendUnavailable: When no credential produced an answer.
        """
        ...

    async def close(self) -> None:
        """Release client connections."""
        ...
