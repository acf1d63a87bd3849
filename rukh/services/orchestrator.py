"""
Ask Service - Model selection, fallback and accounting for one ask request.

This service orchestrates the ask flow:
1. Resolve the requested model (unspecified or unknown -> default)
2. Check the free-use quota of the gated context
3. Build the outgoing text (first-message context injection, attachment)
4. Call the selected provider, then the other one if it fails
5. Book usage in the Cost Ledger when output was produced
6. Mint the reward token, whatever happened above
7. Return a normalized result

Only the access check can abort a request. Provider, persistence and
mint failures degrade the response instead and are counted.
"""
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from rukh.core.exceptions import PaymentRequiredError, ProviderError
from rukh.core.logging_config import LoggerMixin
from rukh.core.outcomes import DegradationCounter
from rukh.llm.base import Completion, ProviderAdapter
from rukh.llm.models import ModelChoice
from rukh.memory.conversation import SessionStore
from rukh.memory.cost_ledger import CostLedger, build_usage_record
from rukh.services.access_gate import SubscriptionGate
from rukh.services.context_service import ContextService
from rukh.services.mint_service import TokenMinter

ANONYMOUS_ORIGIN = "anonymous"


@dataclass
class AskCommand:
    """A validated ask request."""
    message: str
    model: Optional[ModelChoice] = None
    session_id: Optional[str] = None
    wallet_address: Optional[str] = None
    context: Optional[str] = None
    data: Any = None
    attachment_name: Optional[str] = None
    attachment_text: Optional[str] = None


@dataclass
class AskResult:
    output: Optional[str]
    model: str
    network: str
    tx_hash: str
    explorer_link: str
    session_id: str
    usage: Dict[str, int]
    cost: Optional[Dict[str, float]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape; `output` and `cost` are omitted when absent."""
        body: Dict[str, Any] = {
            "model": self.model,
            "network": self.network,
            "txHash": self.tx_hash,
            "explorerLink": self.explorer_link,
            "sessionId": self.session_id,
            "usage": self.usage,
        }
        if self.output is not None:
            body["output"] = self.output
        if self.cost is not None:
            body["cost"] = self.cost
        return body


def compose_message(
    message: str,
    context_text: Optional[str] = None,
    attachment_name: Optional[str] = None,
    attachment_text: Optional[str] = None,
) -> str:
    """
    Build the text actually sent to the provider.

    Context text is only passed in for the first message of a session.
    """
    text = f"Context: {context_text}\n\nUser Query: {message}" if context_text else message
    if attachment_text:
        text += f"\n\nUploaded file ({attachment_name or 'attachment.md'}):\n{attachment_text}"
    return text


class AskService(LoggerMixin):
    """
    Orchestrates an ask request across providers, stores and side effects.

    Example:
        >>> service = services.ask_service
        >>> result = await service.ask(AskCommand(message="Hello", model=ModelChoice.MISTRAL))
        >>> result.output
        'Hi there'
    """

    def __init__(
        self,
        adapters: Mapping[ModelChoice, ProviderAdapter],
        sessions: SessionStore,
        ledger: CostLedger,
        contexts: ContextService,
        gate: SubscriptionGate,
        minter: TokenMinter,
        degradations: DegradationCounter,
        default_model: ModelChoice = ModelChoice.ANTHROPIC,
        gated_context: str = "rukh",
        free_uses: int = 3,
        default_recipient: str = "",
        network: str = "arbitrum-sepolia",
        explorer_tx_url: str = "",
        system_prompt: str = "",
    ):
        self.adapters = dict(adapters)
        self.sessions = sessions
        self.ledger = ledger
        self.contexts = contexts
        self.gate = gate
        self.minter = minter
        self.degradations = degradations
        self.default_model = default_model
        self.gated_context = gated_context
        self.free_uses = free_uses
        self.default_recipient = default_recipient
        self.network = network
        self.explorer_tx_url = explorer_tx_url
        self.system_prompt = system_prompt

    def resolve_model(self, choice: Optional[ModelChoice]) -> ModelChoice:
        """Unspecified means the configured default."""
        return choice if choice in self.adapters else self.default_model

    async def ask(self, command: AskCommand) -> AskResult:
        """
        Process one ask request.

        Raises:
            PaymentRequiredError: Gated context quota used up and the
                subscription check failed
        """
        session_id = command.session_id or str(uuid.uuid4())
        primary = self.resolve_model(command.model)
        origin = command.wallet_address or ANONYMOUS_ORIGIN

        self.logger.info(
            f"Ask: session={session_id} model={primary.value} "
            f"context={command.context or '-'} wallet={command.wallet_address or '-'}"
        )

        if command.context:
            await self._check_access(command.context, command.wallet_address, command.data)

        outgoing = await self._build_outgoing(command, session_id, origin)

        completion, used = await self._complete(primary, outgoing, session_id, command.message)

        usage = {"input_tokens": 0, "output_tokens": 0}
        cost = None
        recipient = command.wallet_address or self.default_recipient

        if completion is not None:
            self.degradations.observe(completion.persisted)
            usage = completion.usage
            record = build_usage_record(
                command.message,
                session_id,
                completion.model,
                outgoing,
                completion.content,
                completion.input_tokens,
                completion.output_tokens,
            )
            self.degradations.observe(await self.ledger.book(recipient, record))
            cost = record.cost_summary()

        mint = await self.minter.mint(recipient)
        self.degradations.observe(mint.outcome)

        model_name = completion.model if completion else self.adapters[primary].model
        self.logger.info(
            f"Ask done: session={session_id} provider={used.value if used else 'none'} "
            f"output={'yes' if completion else 'no'} tx={mint.tx_hash}"
        )

        return AskResult(
            output=completion.content if completion else None,
            model=model_name,
            network=self.network,
            tx_hash=mint.tx_hash,
            explorer_link=f"{self.explorer_tx_url}{mint.tx_hash}",
            session_id=session_id,
            usage=usage,
            cost=cost,
        )

    async def _check_access(self, context: str, wallet_address: Optional[str], data: Any) -> None:
        if context != self.gated_context:
            return

        uses = await self.contexts.count_queries(context, wallet_address or ANONYMOUS_ORIGIN)
        if uses < self.free_uses:
            self.logger.debug(f"Free use {uses + 1}/{self.free_uses} of '{context}' for {wallet_address}")
            return

        if not await self.gate.is_subscribed(wallet_address, data):
            self.logger.warning(f"Payment required: '{context}' quota exhausted for {wallet_address}")
            raise PaymentRequiredError(context, self.free_uses)

    async def _build_outgoing(self, command: AskCommand, session_id: str, origin: str) -> str:
        context_text = None
        if command.context:
            loaded = await self.contexts.load_context_text(command.context)
            files = loaded["files"] if loaded else []
            self.degradations.observe(
                await self.contexts.record_query(command.context, origin, files)
            )
            if loaded and await self.sessions.is_first_message(session_id):
                context_text = loaded["text"]
                self.logger.debug(f"Injecting context '{command.context}' ({len(files)} files)")

        return compose_message(
            command.message, context_text, command.attachment_name, command.attachment_text
        )

    async def _complete(
        self,
        primary: ModelChoice,
        outgoing: str,
        session_id: str,
        raw_message: str,
    ) -> Tuple[Optional[Completion], Optional[ModelChoice]]:
        """Try the primary provider, then the other one exactly once."""
        system_prompt = self.system_prompt or None
        for choice in (primary, primary.other):
            adapter = self.adapters.get(choice)
            if adapter is None:
                continue
            try:
                completion = await adapter.send(
                    outgoing, session_id, system_prompt, raw_message=raw_message
                )
                return completion, choice
            except ProviderError as e:
                self.logger.warning(f"{e.message}; trying fallback" if choice is primary else e.message)
            except Exception:
                self.logger.exception(f"Unexpected failure from {adapter.label}")

        self.logger.error(f"All providers failed for session {session_id}")
        return None, None
