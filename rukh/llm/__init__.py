"""
LLM Package - Provider adapters and model selection.

Components:
- ModelChoice: closed set of selectable providers
- ProviderAdapter: shared request pipeline (history, HTTP, parse, persist)
- MistralAdapter / AnthropicAdapter: vendor-specific payloads and parsing
"""
from rukh.llm.anthropic import AnthropicAdapter
from rukh.llm.base import Completion, ProviderAdapter, NO_TEXT_CONTENT
from rukh.llm.mistral import MistralAdapter
from rukh.llm.models import ModelChoice, parse_model_choice

__all__ = [
    "AnthropicAdapter",
    "Completion",
    "MistralAdapter",
    "ModelChoice",
    "NO_TEXT_CONTENT",
    "ProviderAdapter",
    "parse_model_choice",
]
