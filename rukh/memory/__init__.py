"""
Memory Package - Conversation history and usage accounting.

This package provides two JSON-backed stores:

## Session Store (chat-history.json)
- Append-only log of user/assistant exchanges
- Keyed by session id, shared by both providers

## Cost Ledger (costs.json)
- Token counts and USD cost per wallet and per model
- Totals validated against the request records on load

Example:
    >>> from rukh.memory import SessionStore, CostLedger
    >>> sessions = SessionStore.in_directory(settings.data_dir)
    >>> ledger = CostLedger.in_directory(settings.data_dir)
"""
from rukh.memory.conversation import Message, SessionStore
from rukh.memory.cost_ledger import (
    CostLedger,
    UsageRecord,
    build_usage_record,
    estimate_tokens,
    rates_for,
)

__all__ = [
    "Message",
    "SessionStore",
    "CostLedger",
    "UsageRecord",
    "build_usage_record",
    "estimate_tokens",
    "rates_for",
]
