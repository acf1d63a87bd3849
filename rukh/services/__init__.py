"""
Services Package - Business logic behind the HTTP routes.

- AskService: model selection, fallback, accounting (the ask flow)
- SubscriptionGate: fail-open subscription check for the gated context
- SiweService: Sign-In with Ethereum challenges and verification
- ContextService: password-protected markdown bundles
- TokenMinter: best-effort reward mint
- build_services: wires all of the above into a Services container
"""
from rukh.services.access_gate import SubscriptionGate
from rukh.services.container import Services, build_services
from rukh.services.context_service import ContextService
from rukh.services.mint_service import MintResult, TokenMinter, PLACEHOLDER_TX_HASH
from rukh.services.orchestrator import AskCommand, AskResult, AskService, compose_message
from rukh.services.siwe_service import NonceStore, SiweService

__all__ = [
    "AskCommand",
    "AskResult",
    "AskService",
    "ContextService",
    "MintResult",
    "NonceStore",
    "PLACEHOLDER_TX_HASH",
    "Services",
    "SiweService",
    "SubscriptionGate",
    "TokenMinter",
    "build_services",
    "compose_message",
]
