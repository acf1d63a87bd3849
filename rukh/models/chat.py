"""
Request and Response models for the Ask API.

These Pydantic models define the contract between client and server.
Field names on the wire are camelCase; Python attributes are snake_case.
Validators reuse rukh.core.validators so JSON and multipart requests are
checked by the same rules.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rukh.core.validators import (
    parse_auth_data,
    validate_message,
    validate_session_id,
    validate_wallet_address,
)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class AskRequest(BaseModel):
    """
    Body of POST /ask (JSON, or the text fields of a multipart form).

    Attributes:
        message: The user's message
        model: Provider name; empty or unknown selects the default
        session_id: UUID of the conversation to continue
        wallet_address: EVM address credited with usage and the mint
        context: Name of a context to inject on the first message
        data: SIWE proof ({nonce, signature}) as an object or JSON string
    """
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(
        ...,
        description="The user's message or question",
        examples=["What is Rukh?"]
    )
    model: Optional[str] = Field(
        default=None,
        description="Provider to use: 'mistral' or 'anthropic'"
    )
    session_id: Optional[str] = Field(
        default=None,
        alias="sessionId",
        description="Session ID for multi-turn conversations"
    )
    wallet_address: Optional[str] = Field(
        default=None,
        alias="walletAddress",
        description="Wallet address (0x followed by 40 hex characters)"
    )
    context: Optional[str] = Field(
        default=None,
        description="Context name whose documents prefix the first message"
    )
    data: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Subscription proof for the gated context"
    )

    @field_validator("message", mode="before")
    @classmethod
    def _check_message(cls, value: Any) -> str:
        ok, sanitized, error = validate_message(value if isinstance(value, str) else None)
        if not ok:
            raise ValueError(error)
        return sanitized

    @field_validator("model", "context", mode="before")
    @classmethod
    def _blank_optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("session_id", mode="before")
    @classmethod
    def _check_session_id(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        ok, error = validate_session_id(value)
        if not ok:
            raise ValueError(error)
        return value

    @field_validator("wallet_address", mode="before")
    @classmethod
    def _check_wallet(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        ok, error = validate_wallet_address(value)
        if not ok:
            raise ValueError(error)
        return value

    @field_validator("data", mode="before")
    @classmethod
    def _parse_data(cls, value: Any) -> Optional[Dict[str, Any]]:
        try:
            return parse_auth_data(value)
        except ValueError:
            raise ValueError("data must be a JSON object or a JSON-encoded object string")


class UsageBlock(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0


class CostBlock(BaseModel):
    """USD cost of this request, rounded to 4 decimal places."""
    model_config = ConfigDict(populate_by_name=True)

    input_cost: float = Field(..., alias="inputCost")
    output_cost: float = Field(..., alias="outputCost")
    total_cost: float = Field(..., alias="totalCost")


class AskResponse(BaseModel):
    """
    Response model for POST /ask.

    `output` is absent when both providers failed; `txHash` is then still
    present (placeholder if the mint failed too).
    """
    model_config = ConfigDict(populate_by_name=True)

    output: Optional[str] = Field(default=None, description="The assistant's response")
    model: str = Field(..., description="Model identifier that produced the output")
    network: str = Field(..., description="Network the reward token was minted on")
    tx_hash: str = Field(..., alias="txHash")
    explorer_link: str = Field(..., alias="explorerLink")
    session_id: str = Field(..., alias="sessionId")
    usage: UsageBlock = Field(default_factory=UsageBlock)
    cost: Optional[CostBlock] = None


class SessionMessage(BaseModel):
    role: str
    content: str
    timestamp: int


class SessionHistoryResponse(BaseModel):
    """Response model for GET /sessions/{session_id}."""
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    is_first_message: bool = Field(..., alias="isFirstMessage")
    messages: List[SessionMessage] = Field(default_factory=list)


class DeleteSessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    deleted: bool


class HealthResponse(BaseModel):
    """Response model for the /health endpoint."""
    status: str = Field(default="healthy")
    version: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    degradations: Dict[str, int] = Field(
        default_factory=dict,
        description="Count of degraded best-effort operations since startup"
    )


class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str
    message: str
    details: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
