"""Pydantic models for the outline writer API."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class GenerateOutlineRequest(BaseModel):
    """Body of POST /api/generate-outline (camelCase on the wire).

    The prompt is optional here so that a missing prompt is reported by the
    completion pipeline as a 400 before any provider call.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    prompt: str | None = None
    current_outline: str | None = None
    current_title: str | None = None
    custom_instructions: str | None = None
    style_instructions: str | None = None
    system_instructions: str | None = None
    technical_instructions: str | None = None
    chat_history: list[ChatTurn] | None = None
    is_document_request: bool = False


class CreateProjectRequest(BaseModel):
    title: str | None = Field(default=None, max_length=200)


class RenameProjectRequest(BaseModel):
    title: str = Field(..., max_length=200)


class CustomInstructionsRequest(BaseModel):
    custom_instructions: str = Field(..., max_length=20000)


class OutlineEditRequest(BaseModel):
    outline: str


class SendMessageRequest(BaseModel):
    message: str = Field(..., max_length=20000)


class InstructionsUpdateRequest(BaseModel):
    system: str | None = None
    style: str | None = None
    technical: str | None = None
