"""Tests for the Groq chat service and its credential fallback."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import groq
import httpx
import pytest

from dialtune.services.llm.exceptions import AIBackendUnavailable
from dialtune.services.llm.groq import GroqChatService
from dialtune.services.llm.protocol import Message, Role

GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"


def completion(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def status_error(cls: type, status_code: int, headers: dict | None = None) -> Exception:
    request = httpx.Request("POST", GROQ_URL)
    response = httpx.Response(status_code, request=request, headers=headers or {})
    return cls(f"HTTP {status_code}", response=response, body=None)


def connection_error() -> Exception:
    return groq.APIConnectionError(request=httpx.Request("POST", GROQ_URL))


def mock_client(*outcomes) -> MagicMock:
    """AsyncGroq stand-in whose completions return/raise ``outcomes`` in turn."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=list(outcomes))
    client.close = AsyncMock()
    return client


@pytest.fixture
def service(settings) -> GroqChatService:
    return GroqChatService(settings=settings)


class TestGroqChatService:
    """Test suite for GroqChatService."""

    def test_keys_from_settings(self, service) -> None:
        assert service.credential_count == 2

    def test_format_messages(self, service, settings) -> None:
        transcript = [
            Message(role=Role.USER, content="Hi"),
            Message(role=Role.ASSISTANT, content="Hello!"),
        ]
        api_messages = service._format_messages(transcript, "Play jazz")

        assert api_messages[0] == {"role": "system", "content": settings.ai_system_prompt}
        assert [m["role"] for m in api_messages[1:]] == ["user", "assistant", "user"]
        assert api_messages[-1]["content"] == "Play jazz"

    @pytest.mark.asyncio
    async def test_first_key_answers(self, service) -> None:
        first = mock_client(completion("Sure."))
        second = mock_client(completion("unused"))
        service._clients = {0: first, 1: second}

        assert await service.reply([], "hello") == "Sure."
        second.chat.completions.create.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failure",
        [
            status_error(groq.RateLimitError, 429, {"retry-after": "7"}),
            status_error(groq.AuthenticationError, 401),
            status_error(groq.InternalServerError, 500),
            connection_error(),
            completion(""),
        ],
        ids=["rate_limit", "auth", "server_error", "connection", "empty"],
    )
    async def test_falls_back_to_next_key(self, service, failure) -> None:
        first = mock_client(failure)
        second = mock_client(completion("From key two."))
        service._clients = {0: first, 1: second}

        assert await service.reply([], "hello") == "From key two."
        first.chat.completions.create.assert_awaited_once()
        second.chat.completions.create.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_same_request_sent_to_each_key(self, service) -> None:
        first = mock_client(connection_error())
        second = mock_client(completion("ok"))
        service._clients = {0: first, 1: second}

        await service.reply([Message(role=Role.USER, content="earlier")], "now")

        sent_first = first.chat.completions.create.await_args.kwargs["messages"]
        sent_second = second.chat.completions.create.await_args.kwargs["messages"]
        assert sent_first == sent_second

    @pytest.mark.asyncio
    async def test_all_keys_fail(self, service) -> None:
        service._clients = {
            0: mock_client(connection_error()),
            1: mock_client(status_error(groq.AuthenticationError, 401)),
        }

        with pytest.raises(AIBackendUnavailable) as exc_info:
            await service.reply([], "hello")
        assert exc_info.value.attempts == 2

    @pytest.mark.asyncio
    async def test_no_keys_configured(self, settings_factory) -> None:
        service = GroqChatService(settings=settings_factory(groq_api_keys=""))

        with pytest.raises(AIBackendUnavailable) as exc_info:
            await service.reply([], "hello")
        assert exc_info.value.attempts == 0

    def test_retry_after_header(self, service) -> None:
        error = status_error(groq.RateLimitError, 429, {"retry-after": "7"})
        assert service._extract_retry_after(error) == 7.0

    @pytest.mark.asyncio
    async def test_close(self, service) -> None:
        """Test client cleanup."""
        _ = service._client(0)
        await service.close()
        assert service._clients == {}
