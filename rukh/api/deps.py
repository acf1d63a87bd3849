"""
Route dependencies - Service lookup, rate limiting and body parsing helpers.
"""
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends, Request, Response
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile

from rukh.core.audit import client_address
from rukh.core.exceptions import RateLimitExceeded, ValidationError
from rukh.core.logging_config import get_logger
from rukh.core.validators import validate_markdown_upload
from rukh.services.container import Services

logger = get_logger(__name__)

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def get_services(request: Request) -> Services:
    """The process-scoped container built in the app lifespan."""
    return request.app.state.services


def enforce_rate_limit(
    request: Request,
    response: Response,
    services: Services = Depends(get_services),
) -> None:
    """
    Count the request against the caller's fixed window.

    Raises:
        RateLimitExceeded: When the window's quota is used up
    """
    limiter = services.rate_limiter
    client = client_address(request)
    is_allowed, remaining = limiter.is_allowed(client)

    response.headers["X-RateLimit-Limit"] = str(limiter.limit)
    response.headers["X-RateLimit-Remaining"] = str(remaining)

    if not is_allowed:
        raise RateLimitExceeded(limiter.limit, limiter.retry_after_seconds(client))


def first_error(exc: PydanticValidationError) -> Tuple[str, Optional[str]]:
    """Human-readable message and field name of a pydantic error."""
    errors = exc.errors()
    if not errors:
        return "Invalid request", None
    error = errors[0]
    message = str(error.get("msg", "Invalid request"))
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    loc = error.get("loc") or ()
    field = str(loc[-1]) if loc else None
    if error.get("type") == "missing" and field:
        message = f"{field} is required"
    return message, field


async def read_ask_body(request: Request) -> Tuple[Dict[str, Any], Optional[UploadFile]]:
    """
    Read an ask request sent as JSON or as a multipart form.

    Returns:
        (text fields, uploaded file or None)
    """
    content_type = request.headers.get("content-type", "").lower()

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        fields: Dict[str, Any] = {}
        upload = None
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if upload is None:
                    upload = value
            else:
                fields[key] = value
        return fields, upload

    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body, None


async def read_markdown_upload(upload: UploadFile, max_bytes: int) -> Tuple[str, str]:
    """
    Validate and decode a markdown upload.

    Returns:
        (file name, text content)

    Raises:
        ValidationError: Wrong extension, too large, or not UTF-8
    """
    content = await upload.read()
    ok, error = validate_markdown_upload(upload.filename, len(content), max_bytes)
    if not ok:
        raise ValidationError(error, field="file")
    try:
        return upload.filename, content.decode("utf-8")
    except UnicodeDecodeError:
        raise ValidationError("Markdown file must be UTF-8 encoded", field="file")
