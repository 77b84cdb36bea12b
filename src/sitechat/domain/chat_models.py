from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


Role = Literal["system", "user", "assistant"]


class Message(BaseModel):
    role: Role
    content: str = ""


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_name: Optional[str] = Field(default=None, alias="projectName")
    user_message: str = Field(default="", alias="userMessage")
    user_system_prompt: Optional[str] = Field(default=None, alias="userSystemPrompt")


class ChatResponse(BaseModel):
    html: str = ""
    chat: str


class DeleteHistoryResponse(BaseModel):
    success: bool = True


class UserSystemPromptResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_system_prompt: str = Field(default="", alias="userSystemPrompt")


class FixedSystemPromptResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    fixed_system_prompt: str = Field(default="", alias="fixedSystemPrompt")


class ProjectListEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filename: str
    project_name: str = Field(alias="projectName")
    description: str = ""
    last_modified: str = Field(alias="lastModified")


class ErrorResponse(BaseModel):
    error: str


@dataclass(frozen=True)
class ProjectSummary:
    """One stored artifact, labeled with its history's first user message."""

    name: str
    first_user_message: str
    last_modified: float


@dataclass(frozen=True)
class CompletionResult:
    artifact_content: Optional[str]
    reply_text: str


@dataclass(frozen=True)
class ModelConfig:
    model: str = "o3-mini"
    reasoning_effort: Optional[str] = "high"
    json_output: bool = True


def messages_to_payload(messages: List[Message]) -> List[dict]:
    """Serialize messages for the completion API, dropping blank content."""
    return [
        {"role": m.role, "content": m.content}
        for m in messages
        if m.content and m.content.strip()
    ]
