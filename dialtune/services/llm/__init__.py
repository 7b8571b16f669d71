"""LLM services (Groq)."""

from dialtune.services.llm.exceptions import (
    AIBackendUnavailable,
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMServiceError,
)
from dialtune.services.llm.groq import GroqChatService
from dialtune.services.llm.protocol import ChatService, Message, Role

__all__ = [
    # Protocol and types
    "ChatService",
    "Message",
    "Role",
    # Implementation
    "GroqChatService",
    # Exceptions
    "LLMServiceError",
    "LLMRateLimitError",
    "LLMConnectionError",
    "LLMAuthenticationError",
    "AIBackendUnavailable",
]
