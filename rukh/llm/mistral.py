"""
Mistral adapter - Chat completions over the Mistral HTTP API.

Mistral has no top-level system field, so the system prompt travels as a
leading system-role entry of the outgoing payload. It is added after
history mapping and never reaches the Session Store.
"""
from typing import Any, Dict, List, Optional, Tuple

from rukh.llm.base import NO_TEXT_CONTENT, ProviderAdapter, usage_counts
from rukh.llm.models import ModelChoice


class MistralAdapter(ProviderAdapter):
    """Adapter for the Mistral chat completions endpoint."""

    choice = ModelChoice.MISTRAL
    label = "Mistral"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _payload(self, messages: List[Dict[str, str]], system_prompt: Optional[str]) -> Dict[str, Any]:
        if system_prompt:
            messages = [{"role": "system", "content": system_prompt}] + messages
        return {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def _parse(self, body: Dict[str, Any]) -> Tuple[str, int, int]:
        choices = body.get("choices") or []
        content = None
        if choices:
            content = (choices[0].get("message") or {}).get("content")
        input_tokens, output_tokens = usage_counts(
            body.get("usage"), "prompt_tokens", "completion_tokens"
        )
        return content or NO_TEXT_CONTENT, input_tokens, output_tokens
