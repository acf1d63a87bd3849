"""
Ask Routes - The chat endpoint.

POST /ask accepts either a JSON body or a multipart form carrying the same
fields plus an optional markdown file. Validation happens here; the
orchestrator only ever sees a well-formed AskCommand.
"""
from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError

from rukh.api.deps import (
    enforce_rate_limit,
    first_error,
    get_services,
    read_ask_body,
    read_markdown_upload,
)
from rukh.core.exceptions import ValidationError
from rukh.core.logging_config import get_logger
from rukh.llm.models import parse_model_choice
from rukh.models.chat import AskRequest, AskResponse, ErrorResponse
from rukh.services.container import Services
from rukh.services.orchestrator import AskCommand

logger = get_logger(__name__)

router = APIRouter(
    prefix="/ask",
    tags=["Ask"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        402: {"model": ErrorResponse, "description": "Subscription required"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    }
)


@router.post(
    "",
    status_code=201,
    response_model=AskResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(enforce_rate_limit)],
    summary="Send a message to a language model",
    description="""
    Send a message to Mistral or Anthropic and receive the completion.

    **Body:** JSON or multipart form with `message` (required), `model`,
    `sessionId`, `walletAddress`, `context`, `data` and an optional `file`
    (markdown only).

    **Model selection:** `mistral` or `anthropic`. Omitted or unknown
    names use the configured default. If the chosen provider fails, the
    other one is tried once.

    **Side effect:** one reward token is minted to `walletAddress` (or the
    default recipient) on every request.
    """
)
async def ask(request: Request, services: Services = Depends(get_services)) -> AskResponse:
    """Validate the request, run the ask flow and return its result."""
    fields, upload = await read_ask_body(request)

    try:
        body = AskRequest.model_validate(fields)
    except PydanticValidationError as e:
        message, field = first_error(e)
        raise ValidationError(message, field=field)

    attachment_name = attachment_text = None
    if upload is not None and upload.filename:
        attachment_name, attachment_text = await read_markdown_upload(
            upload, services.settings.max_upload_bytes
        )

    command = AskCommand(
        message=body.message,
        model=parse_model_choice(body.model),
        session_id=body.session_id,
        wallet_address=body.wallet_address,
        context=body.context,
        data=body.data,
        attachment_name=attachment_name,
        attachment_text=attachment_text,
    )

    result = await services.ask_service.ask(command)
    return AskResponse.model_validate(result.to_dict())
