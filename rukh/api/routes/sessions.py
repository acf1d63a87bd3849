"""
Session Routes - Inspect and clear conversations.

Clearing appends two empty messages; history is never shrunk.
"""
from fastapi import APIRouter, Depends

from rukh.api.deps import get_services
from rukh.core.exceptions import ValidationError
from rukh.core.logging_config import get_logger
from rukh.core.validators import validate_session_id
from rukh.models.chat import DeleteSessionResponse, SessionHistoryResponse, SessionMessage
from rukh.services.container import Services

logger = get_logger(__name__)

router = APIRouter(
    prefix="/sessions",
    tags=["Sessions"],
)


def _checked(session_id: str) -> str:
    is_valid, error = validate_session_id(session_id)
    if not is_valid:
        raise ValidationError(error, field="session_id")
    return session_id


@router.get("/{session_id}", response_model=SessionHistoryResponse, summary="Get session history")
async def get_session(
    session_id: str,
    services: Services = Depends(get_services),
) -> SessionHistoryResponse:
    messages = await services.sessions.load(_checked(session_id))
    return SessionHistoryResponse(
        session_id=session_id,
        is_first_message=not messages,
        messages=[
            SessionMessage(role=m.role, content=m.content, timestamp=m.timestamp)
            for m in messages
        ],
    )


@router.delete("/{session_id}", response_model=DeleteSessionResponse, summary="Clear a session")
async def delete_session(
    session_id: str,
    services: Services = Depends(get_services),
) -> DeleteSessionResponse:
    deleted = await services.sessions.clear(_checked(session_id))
    logger.info(f"Session clear requested: {session_id} deleted={deleted}")
    return DeleteSessionResponse(session_id=session_id, deleted=deleted)
