"""
Request and Response models for the Context API.
"""
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class CreateContextRequest(BaseModel):
    name: str = Field(
        ...,
        min_length=1,
        pattern=r"^[a-z0-9-]+$",
        description="Lowercase letters, numbers and hyphens",
        examples=["my-context"]
    )
    password: str = Field(..., min_length=1, description="Password for the context")
    description: str = Field(default="", description="What the context is about")


class ContextSummary(BaseModel):
    name: str
    description: str = ""


class ContextFile(BaseModel):
    name: str
    description: str = ""
    size: int = Field(..., description="Size in KB, rounded up")


class ContextCreatedResponse(BaseModel):
    message: str
    path: str


class UploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    path: str
    was_overwritten: bool = Field(..., alias="wasOverwritten")


class LinkRequest(BaseModel):
    url: str = Field(..., min_length=1, examples=["https://github.com/w3hc/rukh"])
    title: str = ""
    description: str = ""


class ContextLink(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    title: str = ""
    description: str = ""
    added_at: str = Field(default="", alias="addedAt")


class MessageResponse(BaseModel):
    message: str


class ContextListResponse(BaseModel):
    contexts: List[ContextSummary] = Field(default_factory=list)
