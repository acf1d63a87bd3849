"""
Anthropic adapter - Claude over the Messages API.

The system prompt goes in the top-level `system` field, so the message
list holds only the conversation itself.
"""
from typing import Any, Dict, List, Optional, Tuple

from rukh.llm.base import NO_TEXT_CONTENT, ProviderAdapter, usage_counts
from rukh.llm.models import ModelChoice


class AnthropicAdapter(ProviderAdapter):
    """Adapter for the Anthropic Messages endpoint."""

    choice = ModelChoice.ANTHROPIC
    label = "Anthropic"

    def __init__(self, *args, api_version: str = "2023-06-01", **kwargs):
        super().__init__(*args, **kwargs)
        self.api_version = api_version

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
        }

    def _payload(self, messages: List[Dict[str, str]], system_prompt: Optional[str]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": messages,
        }
        if system_prompt:
            payload["system"] = system_prompt
        return payload

    def _parse(self, body: Dict[str, Any]) -> Tuple[str, int, int]:
        blocks = body.get("content") or []
        text = blocks[0].get("text") if blocks and isinstance(blocks[0], dict) else None
        input_tokens, output_tokens = usage_counts(body.get("usage"), "input_tokens", "output_tokens")
        return text or NO_TEXT_CONTENT, input_tokens, output_tokens
