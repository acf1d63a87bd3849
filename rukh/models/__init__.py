"""
Models module - Pydantic schemas for data validation.

This module defines:
- Request models: Input validation for API endpoints
- Response models: Output formatting for API responses
"""
from rukh.models.chat import (
    AskRequest,
    AskResponse,
    CostBlock,
    DeleteSessionResponse,
    ErrorResponse,
    HealthResponse,
    SessionHistoryResponse,
    SessionMessage,
    UsageBlock,
)
from rukh.models.context import (
    ContextCreatedResponse,
    ContextFile,
    ContextLink,
    ContextListResponse,
    ContextSummary,
    CreateContextRequest,
    LinkRequest,
    MessageResponse,
    UploadResponse,
)
from rukh.models.siwe import ChallengeResponse, VerifyRequest, VerifyResponse

__all__ = [
    "AskRequest",
    "AskResponse",
    "ChallengeResponse",
    "ContextCreatedResponse",
    "ContextFile",
    "ContextLink",
    "ContextListResponse",
    "ContextSummary",
    "CostBlock",
    "CreateContextRequest",
    "DeleteSessionResponse",
    "ErrorResponse",
    "HealthResponse",
    "LinkRequest",
    "MessageResponse",
    "SessionHistoryResponse",
    "SessionMessage",
    "UploadResponse",
    "UsageBlock",
    "VerifyRequest",
    "VerifyResponse",
]
