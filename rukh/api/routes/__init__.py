"""
API Routes module - Endpoint definitions.

Each file in this module defines routes for a specific domain:
- ask.py      : The chat endpoint
- context.py  : Context bundle management
- siwe.py     : Sign-In with Ethereum
- sessions.py : Conversation inspection and clearing
- usage.py    : Cost reports
- health.py   : Health check endpoints
"""
from rukh.api.routes.ask import router as ask_router
from rukh.api.routes.context import router as context_router
from rukh.api.routes.health import router as health_router
from rukh.api.routes.sessions import router as sessions_router
from rukh.api.routes.siwe import router as siwe_router
from rukh.api.routes.usage import router as usage_router

__all__ = [
    "ask_router",
    "context_router",
    "health_router",
    "sessions_router",
    "siwe_router",
    "usage_router",
]
