from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from ...domain.chat_models import ChatRequest, ChatResponse, DeleteHistoryResponse, Message
from ...infrastructure.project_store import ProjectStore, validate_project_name
from ...services.turn_orchestrator import TurnOrchestrator
from ..deps import get_orchestrator, get_store

logger = logging.getLogger("sitechat.api")

router = APIRouter(tags=["chat"])


@router.post("/chat", response_model=ChatResponse)
def post_chat(
    req: ChatRequest,
    background: BackgroundTasks,
    orchestrator: TurnOrchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    outcome = orchestrator.run_turn(
        project_name=req.project_name,
        user_message=req.user_message,
        user_system_prompt=req.user_system_prompt,
    )
    if outcome.commit_job is not None:
        background.add_task(outcome.commit_job)
    return ChatResponse(html=outcome.result.artifact_content or "", chat=outcome.result.reply_text)


@router.get("/chatHistory", response_model=List[Message])
def get_chat_history(
    project_name: Optional[str] = Query(None, alias="projectName"),
    store: ProjectStore = Depends(get_store),
) -> List[Message]:
    # CorruptState propagates to the 500 handler here; turns degrade instead
    return store.load_history(validate_project_name(project_name))


@router.delete("/chatHistory", response_model=DeleteHistoryResponse)
def delete_chat_history(
    project_name: Optional[str] = Query(None, alias="projectName"),
    store: ProjectStore = Depends(get_store),
) -> DeleteHistoryResponse:
    project = validate_project_name(project_name)
    store.delete_history(project)
    logger.info("chat_history_deleted", extra={"project": project})
    return DeleteHistoryResponse(success=True)
