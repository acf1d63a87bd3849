"""
Provider adapter base - One chat-completion round trip against a vendor API.

Both vendors follow the same sequence:
1. Load the session's history from the Session Store
2. Map it into role-tagged messages and append the new user message
3. POST with a hard timeout
4. Log and reject any non-success status
5. Parse the completion text and token usage
6. Append the raw exchange to the Session Store

Every failure surfaces as a single ProviderError so the orchestrator can
fall back without caring which vendor failed or why.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import httpx

from rukh.core.exceptions import ProviderError
from rukh.core.logging_config import LoggerMixin, truncate_for_log
from rukh.core.outcomes import Outcome
from rukh.llm.models import ModelChoice
from rukh.memory.conversation import SessionStore

NO_TEXT_CONTENT = "No text content in response"


@dataclass
class Completion:
    """Normalized provider result."""
    content: str
    session_id: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    persisted: Outcome = field(default_factory=lambda: Outcome.success("session_append"))

    @property
    def usage(self) -> Dict[str, int]:
        return {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens}


class ProviderAdapter(LoggerMixin, ABC):
    """
    Shared request pipeline for chat-completion vendors.

    Subclasses set `choice` and `label` and implement _headers(),
    _payload() and _parse().
    """

    choice: ModelChoice
    label: str

    def __init__(
        self,
        client: httpx.AsyncClient,
        sessions: SessionStore,
        api_key: str,
        api_url: str,
        model: str,
        max_tokens: int,
        temperature: float,
        timeout: float = 300.0,
    ):
        self.client = client
        self.sessions = sessions
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

    @abstractmethod
    def _headers(self) -> Dict[str, str]:
        ...

    @abstractmethod
    def _payload(self, messages: List[Dict[str, str]], system_prompt: Optional[str]) -> Dict[str, Any]:
        ...

    @abstractmethod
    def _parse(self, body: Dict[str, Any]) -> Tuple[str, int, int]:
        """Return (content, input_tokens, output_tokens)."""
        ...

    async def send(
        self,
        message: str,
        session_id: str,
        system_prompt: Optional[str] = None,
        *,
        raw_message: Optional[str] = None,
    ) -> Completion:
        """
        Send a message with the session's history and record the exchange.

        Args:
            message: Text sent to the vendor (may carry context or an attachment)
            session_id: Conversation to continue
            system_prompt: Top-level instructions, never written to history
            raw_message: What the user typed; persisted instead of `message`

        Returns:
            Completion with content and token usage

        Raises:
            ProviderError: On a missing key, timeout, HTTP error or malformed body
        """
        if not self.api_key:
            self.logger.error(f"{self.label} API key is not configured")
            raise ProviderError(self.label)

        history = await self.sessions.load(session_id)
        # Cleared conversations leave empty sentinels that vendors reject.
        messages = [m.to_dict() for m in history if m.content]
        messages.append({"role": "user", "content": message})

        payload = self._payload(messages, system_prompt or None)
        self.logger.debug(
            f"{self.label} request: session={session_id} history={len(messages) - 1} "
            f"message={truncate_for_log(message)}"
        )

        try:
            response = await self.client.post(
                self.api_url,
                headers=self._headers(),
                json=payload,
                timeout=self.timeout,
            )
        except httpx.TimeoutException:
            self.logger.error(f"{self.label} request timed out after {self.timeout:.0f}s")
            raise ProviderError(self.label)
        except httpx.HTTPError as e:
            self.logger.error(f"{self.label} request failed: {e}")
            raise ProviderError(self.label)

        if response.status_code >= 400:
            self.logger.error(
                f"{self.label} API error {response.status_code}: {truncate_for_log(response.text)}"
            )
            raise ProviderError(self.label)

        try:
            body = response.json()
            content, input_tokens, output_tokens = self._parse(body)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            self.logger.error(f"{self.label} returned an unreadable response: {e}")
            raise ProviderError(self.label)

        self.logger.debug(
            f"{self.label} response: tokens={input_tokens}/{output_tokens} "
            f"content={truncate_for_log(content)}"
        )

        persisted = await self.sessions.append(
            session_id,
            raw_message if raw_message is not None else message,
            content,
        )

        return Completion(
            content=content,
            session_id=session_id,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            persisted=persisted,
        )


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def usage_counts(usage: Any, input_key: str, output_key: str) -> Tuple[int, int]:
    """Read a usage block, treating anything missing as zero."""
    if not isinstance(usage, dict):
        return 0, 0
    return _int(usage.get(input_key)), _int(usage.get(output_key))
