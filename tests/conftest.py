"""
Shared pytest fixtures.

Every store is rooted in tmp_path and every provider call goes through an
httpx.MockTransport, so no test touches the network or the real data dir.
"""
import dataclasses
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from rukh.core.config import Settings, get_settings
from rukh.core.exceptions import ProviderError
from rukh.llm.base import Completion
from rukh.llm.models import ModelChoice
from rukh.memory.conversation import SessionStore
from rukh.memory.cost_ledger import CostLedger
from rukh.services.mint_service import TokenMinter

SESSION_ID = "a0eebc99-9c0b-4ef8-bb6d-6bb9bd380a11"
WALLET = "0x1234567890abcdef1234567890ABCDEF12345678"


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at temporary directories with fake provider keys."""
    get_settings.cache_clear()
    return dataclasses.replace(
        get_settings(),
        app_env="test",
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        mistral_api_key="test-mistral-key",
        anthropic_api_key="test-anthropic-key",
        default_model="anthropic",
        system_prompt="",
        rate_limit_requests=50,
        rate_limit_period_seconds=3600,
        gated_context="rukh",
        free_uses=3,
        rpc_url="",
        private_key="",
        token_address="",
        enable_audit_logging=True,
    )


@pytest.fixture
def session_store(tmp_path) -> SessionStore:
    return SessionStore.in_directory(tmp_path / "data")


@pytest.fixture
def ledger(tmp_path) -> CostLedger:
    return CostLedger.in_directory(tmp_path / "data")


@pytest.fixture
def disabled_minter() -> TokenMinter:
    return TokenMinter()


def mistral_body(content: str = "Hi there", prompt_tokens: int = 5, completion_tokens: int = 3) -> Dict[str, Any]:
    return {
        "id": "cmpl-1",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": prompt_tokens, "completion_tokens": completion_tokens},
    }


def anthropic_body(text: str = "Hello from Claude", input_tokens: int = 7, output_tokens: int = 4) -> Dict[str, Any]:
    return {
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": text}],
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    }


class RecordingTransport:
    """
    Routes requests by host to canned responses and records each request.

    A host mapped to an int answers with that status code; mapped to an
    exception class, the request raises it.
    """

    def __init__(self, routes: Dict[str, Any]):
        self.routes = routes
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.routes.get(request.url.host)
        if isinstance(answer, type) and issubclass(answer, Exception):
            raise answer("simulated failure", request=request)
        if isinstance(answer, int):
            return httpx.Response(answer, json={"error": {"message": "upstream said no"}})
        if answer is None:
            return httpx.Response(404, json={"error": "no route"})
        return httpx.Response(200, json=answer)

    def hosts(self) -> List[str]:
        return [r.url.host for r in self.requests]


@pytest.fixture
def make_client() -> Callable[[RecordingTransport], httpx.AsyncClient]:
    def _make(transport: RecordingTransport) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(transport))
    return _make


class FakeAdapter:
    """Stand-in provider adapter with scripted behaviour."""

    def __init__(
        self,
        choice: ModelChoice,
        model: str,
        content: Optional[str] = "ok",
        fail: bool = False,
        sessions: Optional[SessionStore] = None,
    ):
        self.choice = choice
        self.label = choice.value.title()
        self.model = model
        self.content = content
        self.fail = fail
        self.sessions = sessions
        self.calls: List[Dict[str, Any]] = []

    async def send(self, message, session_id, system_prompt=None, *, raw_message=None) -> Completion:
        self.calls.append({
            "message": message,
            "session_id": session_id,
            "system_prompt": system_prompt,
            "raw_message": raw_message,
        })
        if self.fail:
            raise ProviderError(self.label)
        persisted = None
        if self.sessions is not None:
            persisted = await self.sessions.append(session_id, raw_message or message, self.content)
        completion = Completion(
            content=self.content,
            session_id=session_id,
            model=self.model,
            input_tokens=5,
            output_tokens=3,
        )
        if persisted is not None:
            completion.persisted = persisted
        return completion
