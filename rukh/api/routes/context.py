"""
Context Routes - Manage password-protected markdown bundles.

Every route except create and list needs the context password in the
`x-context-password` header. All routes share the /ask rate limit.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Header, Query, UploadFile
from fastapi.responses import PlainTextResponse

from rukh.api.deps import enforce_rate_limit, get_services, read_markdown_upload
from rukh.core.logging_config import get_logger
from rukh.models.chat import ErrorResponse
from rukh.models.context import (
    ContextCreatedResponse,
    ContextFile,
    ContextLink,
    ContextListResponse,
    CreateContextRequest,
    LinkRequest,
    MessageResponse,
    UploadResponse,
)
from rukh.services.container import Services

logger = get_logger(__name__)

router = APIRouter(
    prefix="/context",
    tags=["Context"],
    dependencies=[Depends(enforce_rate_limit)],
    responses={
        401: {"model": ErrorResponse, "description": "Invalid password"},
        404: {"model": ErrorResponse, "description": "Context or file not found"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
    }
)

PasswordHeader = Header(default="", alias="x-context-password")


@router.post("", status_code=201, response_model=ContextCreatedResponse, summary="Create a context")
async def create_context(
    body: CreateContextRequest,
    services: Services = Depends(get_services),
) -> ContextCreatedResponse:
    path = await services.contexts.create_context(body.name, body.password, body.description)
    return ContextCreatedResponse(message="Context created successfully", path=path)


@router.get("", response_model=ContextListResponse, summary="List contexts")
async def list_contexts(services: Services = Depends(get_services)) -> ContextListResponse:
    return ContextListResponse(contexts=await services.contexts.list_contexts())


@router.delete("/{name}", response_model=MessageResponse, summary="Delete a context")
async def delete_context(
    name: str,
    password: str = PasswordHeader,
    services: Services = Depends(get_services),
) -> MessageResponse:
    await services.contexts.delete_context(name, password)
    return MessageResponse(message=f"Context '{name}' deleted successfully")


@router.post(
    "/{name}/files",
    status_code=201,
    response_model=UploadResponse,
    summary="Upload a markdown file",
)
async def upload_file(
    name: str,
    file: UploadFile = File(...),
    description: Optional[str] = Form(default=""),
    password: str = PasswordHeader,
    services: Services = Depends(get_services),
) -> UploadResponse:
    file_name, content = await read_markdown_upload(file, services.settings.max_upload_bytes)
    result = await services.contexts.upload_file(
        name, file_name, content, password, description or ""
    )
    verb = "updated" if result["wasOverwritten"] else "uploaded"
    return UploadResponse(
        message=f"File {verb} successfully",
        path=result["path"],
        was_overwritten=result["wasOverwritten"],
    )


@router.get("/{name}/files", response_model=List[ContextFile], summary="List files")
async def list_files(
    name: str,
    password: str = PasswordHeader,
    services: Services = Depends(get_services),
) -> List[ContextFile]:
    return [ContextFile(**f) for f in await services.contexts.list_files(name, password)]


@router.get("/{name}/files/{file_name}", response_class=PlainTextResponse, summary="Get file content")
async def get_file(
    name: str,
    file_name: str,
    password: str = PasswordHeader,
    services: Services = Depends(get_services),
) -> PlainTextResponse:
    content = await services.contexts.get_file(name, file_name, password)
    return PlainTextResponse(content, media_type="text/markdown; charset=utf-8")


@router.delete("/{name}/files/{file_name}", response_model=MessageResponse, summary="Delete a file")
async def delete_file(
    name: str,
    file_name: str,
    password: str = PasswordHeader,
    services: Services = Depends(get_services),
) -> MessageResponse:
    await services.contexts.delete_file(name, file_name, password)
    return MessageResponse(message=f"File '{file_name}' deleted successfully")


@router.post("/{name}/links", status_code=201, response_model=ContextLink, summary="Add a link")
async def add_link(
    name: str,
    body: LinkRequest,
    password: str = PasswordHeader,
    services: Services = Depends(get_services),
) -> ContextLink:
    link = await services.contexts.add_link(name, password, body.url, body.title, body.description)
    return ContextLink.model_validate(link)


@router.get("/{name}/links", response_model=List[ContextLink], summary="List links")
async def list_links(
    name: str,
    password: str = PasswordHeader,
    services: Services = Depends(get_services),
) -> List[ContextLink]:
    return [ContextLink.model_validate(l) for l in await services.contexts.list_links(name, password)]


@router.delete("/{name}/links", response_model=MessageResponse, summary="Delete a link")
async def delete_link(
    name: str,
    url: str = Query(..., min_length=1),
    password: str = PasswordHeader,
    services: Services = Depends(get_services),
) -> MessageResponse:
    await services.contexts.delete_link(name, url, password)
    return MessageResponse(message="Link deleted successfully")
