"""Groq chat service with ordered credential fallback."""

from __future__ import annotations

from typing import Any

import groq
from groq import AsyncGroq

from dialtune.config import Settings, get_settings
from dialtune.logging_config import get_logger
from dialtune.observability.metrics import record_ai_request
from dialtune.services.llm.exceptions import (
    AIBackendUnavailable,
    LLMAuthenticationError,
    LLMConnectionError,
    LLMRateLimitError,
    LLMServiceError,
)
from dialtune.services.llm.protocol import Message

logger: Any = get_logger(__name__)


class GroqChatService:
    """Groq chat completions, trying each configured API key in order.

    A key that fails (rate limit, auth, connection, API error, empty answer)
    is skipped and the next one is tried with the same request. Only when the
    last key fails does the call raise ``AIBackendUnavailable``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        api_keys: list[str] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._api_keys = api_keys if api_keys is not None else self._settings.groq_key_list
        self._model = self._settings.groq_model
        self._clients: dict[int, AsyncGroq] = {}

    @property
    def credential_count(self) -> int:
        return len(self._api_keys)

    def _client(self, index: int) -> AsyncGroq:
        """Lazy initialization of one AsyncGroq client per key."""
        client = self._clients.get(index)
        if client is None:
            client = AsyncGroq(
                api_key=self._api_keys[index],
                timeout=self._settings.ai_timeout_seconds,
                max_retries=0,
            )
            self._clients[index] = client
        return client

    async def reply(self, transcript: list[Message], user_text: str) -> str:
        """Answer ``user_text`` given the transcript so far.

        Raises:
            AIBackendUnavailable: When no key is configured or all keys failed.
        """
        api_messages = self._format_messages(transcript, user_text)

        for index in range(len(self._api_keys)):
            try:
                answer = await self._complete(self._client(index), api_messages)
            except LLMServiceError as e:
                logger.warning(f"Groq credential #{index + 1} failed: {e}")
                record_ai_request("credential_failed")
                continue

            record_ai_request("ok")
            return answer

        record_ai_request("unavailable")
        raise AIBackendUnavailable(
            f"All {len(self._api_keys)} Groq credentials failed",
            attempts=len(self._api_keys),
        )

    async def _complete(self, client: AsyncGroq, api_messages: list[dict]) -> str:
        try:
            response = await client.chat.completions.create(  # type: ignore[call-overload]
                messages=api_messages,
                model=self._model,
                temperature=0.7,
                max_tokens=256,
            )
        except groq.RateLimitError as e:
            raise LLMRateLimitError(
                "Rate limit exceeded",
                retry_after=self._extract_retry_after(e),
            ) from e

        except groq.APIConnectionError as e:
            raise LLMConnectionError("Failed to connect to Groq API") from e

        except groq.AuthenticationError as e:
            raise LLMAuthenticationError("Invalid Groq API key") from e

        except groq.APIStatusError as e:
            raise LLMServiceError(f"Groq API error: {e.status_code}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise LLMServiceError("Empty response from Groq")
        return content

    def _format_messages(self, transcript: list[Message], user_text: str) -> list[dict]:
        """Format messages for Groq API."""
        api_messages = [{"role": "system", "content": self._settings.ai_system_prompt}]

        for msg in transcript:
            api_messages.append({
                "role": msg.role.value,
                "content": msg.content,
            })

        api_messages.append({"role": "user", "content": user_text})
        return api_messages

    def _extract_retry_after(self, error: groq.RateLimitError) -> float:
        """Extract retry-after from rate limit error."""
        if hasattr(error, "response") and error.response:
            retry_after = error.response.headers.get("retry-after")
            if retry_after:
                try:
                    return float(retry_after)
                except ValueError:
                    pass
        return 60.0

    async def close(self) -> None:
        """Close all client connections."""
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
