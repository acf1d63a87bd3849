"""
Unit tests for the Mistral and Anthropic adapters.

Requests go through httpx.MockTransport; no network access.
"""
import json

import httpx
import pytest

from rukh.core.exceptions import ProviderError
from rukh.llm.anthropic import AnthropicAdapter
from rukh.llm.base import NO_TEXT_CONTENT, ProviderAdapter
from rukh.llm.mistral import MistralAdapter

from tests.conftest import SESSION_ID, RecordingTransport, anthropic_body, mistral_body

MISTRAL_HOST = "api.mistral.ai"
ANTHROPIC_HOST = "api.anthropic.com"


def _mistral(client, sessions, api_key="test-mistral-key"):
    return MistralAdapter(
        client,
        sessions,
        api_key=api_key,
        api_url=f"https://{MISTRAL_HOST}/v1/chat/completions",
        model="mistral-large-2411",
        max_tokens=1000,
        temperature=0.3,
        timeout=5.0,
    )


def _anthropic(client, sessions, api_key="test-anthropic-key"):
    return AnthropicAdapter(
        client,
        sessions,
        api_key=api_key,
        api_url=f"https://{ANTHROPIC_HOST}/v1/messages",
        model="claude-3-7-sonnet-20250219",
        max_tokens=64000,
        temperature=0.3,
        timeout=5.0,
        api_version="2023-06-01",
    )


def _sent(transport: RecordingTransport, index: int = -1) -> dict:
    return json.loads(transport.requests[index].content)


class TestMistralAdapter:
    """Test the Mistral request pipeline."""

    async def test_successful_completion(self, session_store, make_client):
        """Content and usage are parsed and the exchange is persisted."""
        transport = RecordingTransport({MISTRAL_HOST: mistral_body("Hi there", 12, 4)})
        adapter = _mistral(make_client(transport), session_store)

        completion = await adapter.send("Hello", SESSION_ID)

        assert completion.content == "Hi there"
        assert completion.model == "mistral-large-2411"
        assert completion.usage == {"input_tokens": 12, "output_tokens": 4}
        assert completion.persisted.ok

        request = transport.requests[0]
        assert request.headers["authorization"] == "Bearer test-mistral-key"
        assert _sent(transport)["messages"] == [{"role": "user", "content": "Hello"}]

        history = await session_store.load(SESSION_ID)
        assert [(m.role, m.content) for m in history] == [("user", "Hello"), ("assistant", "Hi there")]

    async def test_system_prompt_leads_payload_but_not_history(self, session_store, make_client):
        """The system prompt is a leading system message that never reaches the store."""
        transport = RecordingTransport({MISTRAL_HOST: mistral_body()})
        adapter = _mistral(make_client(transport), session_store)

        await adapter.send("Hello", SESSION_ID, "Be brief.")

        messages = _sent(transport)["messages"]
        assert messages[0] == {"role": "system", "content": "Be brief."}
        assert messages[1] == {"role": "user", "content": "Hello"}
        assert all(m.role != "system" for m in await session_store.load(SESSION_ID))

    async def test_history_is_sent_without_clear_sentinels(self, session_store, make_client):
        """Earlier turns are replayed; empty messages from a clear are dropped."""
        await session_store.append(SESSION_ID, "First", "Answer one")
        await session_store.clear(SESSION_ID)
        transport = RecordingTransport({MISTRAL_HOST: mistral_body()})

        await _mistral(make_client(transport), session_store).send("Second", SESSION_ID)

        assert _sent(transport)["messages"] == [
            {"role": "user", "content": "First"},
            {"role": "assistant", "content": "Answer one"},
            {"role": "user", "content": "Second"},
        ]

    async def test_missing_text_uses_sentinel(self, session_store, make_client):
        transport = RecordingTransport({MISTRAL_HOST: {"choices": [], "usage": {}}})

        completion = await _mistral(make_client(transport), session_store).send("Hello", SESSION_ID)

        assert completion.content == NO_TEXT_CONTENT
        assert completion.usage == {"input_tokens": 0, "output_tokens": 0}


class TestAnthropicAdapter:
    """Test the Anthropic request pipeline."""

    async def test_successful_completion(self, session_store, make_client):
        transport = RecordingTransport({ANTHROPIC_HOST: anthropic_body("Hello from Claude", 7, 4)})
        adapter = _anthropic(make_client(transport), session_store)

        completion = await adapter.send("Hello", SESSION_ID)

        assert completion.content == "Hello from Claude"
        assert completion.usage == {"input_tokens": 7, "output_tokens": 4}
        request = transport.requests[0]
        assert request.headers["x-api-key"] == "test-anthropic-key"
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert "system" not in _sent(transport)

    async def test_system_prompt_is_top_level_field(self, session_store, make_client):
        transport = RecordingTransport({ANTHROPIC_HOST: anthropic_body()})

        await _anthropic(make_client(transport), session_store).send("Hello", SESSION_ID, "Be brief.")

        payload = _sent(transport)
        assert payload["system"] == "Be brief."
        assert payload["messages"] == [{"role": "user", "content": "Hello"}]

    async def test_raw_message_is_persisted_instead_of_outgoing_text(self, session_store, make_client):
        """Injected context goes to the vendor but history keeps what the user typed."""
        transport = RecordingTransport({ANTHROPIC_HOST: anthropic_body("Sure")})
        outgoing = "Context: docs\n\nUser Query: Hello"

        await _anthropic(make_client(transport), session_store).send(
            outgoing, SESSION_ID, raw_message="Hello"
        )

        assert _sent(transport)["messages"][-1]["content"] == outgoing
        history = await session_store.load(SESSION_ID)
        assert history[0].content == "Hello"

    async def test_empty_content_uses_sentinel(self, session_store, make_client):
        transport = RecordingTransport({ANTHROPIC_HOST: {"content": [], "usage": {"input_tokens": 3}}})

        completion = await _anthropic(make_client(transport), session_store).send("Hello", SESSION_ID)

        assert completion.content == NO_TEXT_CONTENT
        assert completion.input_tokens == 3


class TestProviderFailures:
    """Every failure surfaces as ProviderError and leaves history untouched."""

    @pytest.mark.parametrize("status", [400, 401, 429, 500, 529])
    async def test_error_status(self, status, session_store, make_client):
        transport = RecordingTransport({ANTHROPIC_HOST: status})

        with pytest.raises(ProviderError):
            await _anthropic(make_client(transport), session_store).send("Hello", SESSION_ID)

        assert await session_store.load(SESSION_ID) == []

    async def test_timeout(self, session_store, make_client):
        transport = RecordingTransport({MISTRAL_HOST: httpx.ReadTimeout})

        with pytest.raises(ProviderError) as excinfo:
            await _mistral(make_client(transport), session_store).send("Hello", SESSION_ID)

        assert excinfo.value.provider == "Mistral"

    async def test_connection_error(self, session_store, make_client):
        transport = RecordingTransport({MISTRAL_HOST: httpx.ConnectError})

        with pytest.raises(ProviderError):
            await _mistral(make_client(transport), session_store).send("Hello", SESSION_ID)

    async def test_missing_key_skips_request(self, session_store, make_client):
        """Without an API key nothing is sent."""
        transport = RecordingTransport({MISTRAL_HOST: mistral_body()})

        with pytest.raises(ProviderError):
            await _mistral(make_client(transport), session_store, api_key="").send("Hello", SESSION_ID)

        assert transport.requests == []

    async def test_non_json_body(self, session_store):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        )

        with pytest.raises(ProviderError):
            await _anthropic(client, session_store).send("Hello", SESSION_ID)


class TestProviderAdapterContract:
    """A vendor adapter must implement every request hook."""

    def test_incomplete_subclass_cannot_be_built(self, session_store, make_client):
        class HeadersOnly(ProviderAdapter):
            def _headers(self):
                return {}

        with pytest.raises(TypeError):
            HeadersOnly(make_client(RecordingTransport({})), session_store, "key", "https://x", "m", 10, 0.1)
