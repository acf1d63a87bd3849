"""
Rukh - LLM gateway with session memory, cost accounting and reward minting.

Package layout:
- core/     : configuration, logging, errors, validation, middleware
- storage/  : serialized JSON document store
- memory/   : session store and cost ledger
- llm/      : provider adapters (Mistral, Anthropic)
- services/ : ask orchestration, access gate, SIWE, contexts, minting
- models/   : request/response schemas
- api/      : FastAPI application
"""

__version__ = "0.3.0"
