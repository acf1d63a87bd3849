"""
Service container - All process-scoped state in one place.

build_services() wires every component from Settings once, at startup.
The FastAPI lifespan stores the result on app.state and route handlers
reach it through a dependency, so nothing lives in module globals.
"""
from dataclasses import dataclass
from typing import Optional

import httpx

from rukh.core.config import Settings
from rukh.core.logging_config import get_logger
from rukh.core.outcomes import DegradationCounter
from rukh.core.rate_limiter import RateLimiter
from rukh.llm.anthropic import AnthropicAdapter
from rukh.llm.mistral import MistralAdapter
from rukh.llm.models import ModelChoice, parse_model_choice
from rukh.memory.conversation import SessionStore
from rukh.memory.cost_ledger import CostLedger
from rukh.services.access_gate import SubscriptionGate
from rukh.services.context_service import ContextService
from rukh.services.mint_service import TokenMinter
from rukh.services.orchestrator import AskService
from rukh.services.siwe_service import NonceStore, SiweService

logger = get_logger(__name__)


@dataclass
class Services:
    settings: Settings
    http_client: httpx.AsyncClient
    sessions: SessionStore
    ledger: CostLedger
    mistral: MistralAdapter
    anthropic: AnthropicAdapter
    nonces: NonceStore
    siwe: SiweService
    contexts: ContextService
    gate: SubscriptionGate
    minter: TokenMinter
    rate_limiter: RateLimiter
    degradations: DegradationCounter
    ask_service: AskService

    async def startup(self) -> None:
        await self.ledger.load()

    async def aclose(self) -> None:
        await self.http_client.aclose()


def build_services(
    settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
    minter: Optional[TokenMinter] = None,
) -> Services:
    """
    Wire all components.

    Args:
        settings: Application settings
        http_client: Client shared by both adapters (tests pass a mock transport)
        minter: Replacement minter (tests pass one that never touches a chain)
    """
    data_dir = settings.data_dir
    client = http_client or httpx.AsyncClient(timeout=settings.provider_timeout_seconds)

    sessions = SessionStore.in_directory(data_dir)
    ledger = CostLedger.in_directory(data_dir)

    mistral = MistralAdapter(
        client,
        sessions,
        api_key=settings.mistral_api_key,
        api_url=settings.mistral_api_url,
        model=settings.mistral_model,
        max_tokens=settings.mistral_max_tokens,
        temperature=settings.llm_temperature,
        timeout=settings.provider_timeout_seconds,
    )
    anthropic = AnthropicAdapter(
        client,
        sessions,
        api_key=settings.anthropic_api_key,
        api_url=settings.anthropic_api_url,
        model=settings.anthropic_model,
        max_tokens=settings.anthropic_max_tokens,
        temperature=settings.llm_temperature,
        timeout=settings.provider_timeout_seconds,
        api_version=settings.anthropic_api_version,
    )

    default_model = parse_model_choice(settings.default_model)
    if default_model is None:
        logger.warning(f"Unknown DEFAULT_MODEL {settings.default_model!r}, using anthropic")
        default_model = ModelChoice.ANTHROPIC

    nonces = NonceStore(ttl_seconds=settings.nonce_ttl_seconds)
    siwe = SiweService(nonces)
    contexts = ContextService(data_dir / "contexts", max_file_bytes=settings.max_upload_bytes)
    gate = SubscriptionGate(siwe)
    minter = minter or TokenMinter(
        rpc_url=settings.rpc_url,
        private_key=settings.private_key,
        token_address=settings.token_address,
        timeout=settings.mint_timeout_seconds,
    )
    degradations = DegradationCounter()

    ask_service = AskService(
        adapters={ModelChoice.MISTRAL: mistral, ModelChoice.ANTHROPIC: anthropic},
        sessions=sessions,
        ledger=ledger,
        contexts=contexts,
        gate=gate,
        minter=minter,
        degradations=degradations,
        default_model=default_model,
        gated_context=settings.gated_context,
        free_uses=settings.free_uses,
        default_recipient=settings.default_recipient,
        network=settings.network_name,
        explorer_tx_url=settings.explorer_tx_url,
        system_prompt=settings.system_prompt,
    )

    logger.info(
        f"Services ready: data_dir={data_dir} default_model={default_model.value} "
        f"minting={'on' if minter.enabled else 'off'}"
    )

    return Services(
        settings=settings,
        http_client=client,
        sessions=sessions,
        ledger=ledger,
        mistral=mistral,
        anthropic=anthropic,
        nonces=nonces,
        siwe=siwe,
        contexts=contexts,
        gate=gate,
        minter=minter,
        rate_limiter=RateLimiter(
            limit=settings.rate_limit_requests,
            period_seconds=settings.rate_limit_period_seconds,
        ),
        degradations=degradations,
        ask_service=ask_service,
    )
