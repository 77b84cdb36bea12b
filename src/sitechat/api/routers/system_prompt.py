from __future__ import annotations

from fastapi import APIRouter, Depends

from ...domain.chat_models import FixedSystemPromptResponse, UserSystemPromptResponse
from ...infrastructure.project_store import ProjectStore
from ..deps import get_store

router = APIRouter(prefix="/systemPrompt", tags=["system-prompt"])


@router.get("/user", response_model=UserSystemPromptResponse)
def get_user_prompt(store: ProjectStore = Depends(get_store)) -> UserSystemPromptResponse:
    return UserSystemPromptResponse(user_system_prompt=store.load_user_prompt())


@router.get("/fixed", response_model=FixedSystemPromptResponse)
def get_fixed_prompt(store: ProjectStore = Depends(get_store)) -> FixedSystemPromptResponse:
    return FixedSystemPromptResponse(fixed_system_prompt=store.load_fixed_prompt())
