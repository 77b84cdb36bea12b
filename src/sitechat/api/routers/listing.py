from __future__ import annotations

from datetime import UTC, datetime
from typing import List

from fastapi import APIRouter, Depends

from ...domain.chat_models import ProjectListEntry
from ...infrastructure.project_store import ARTIFACT_SUFFIX, ProjectStore
from ..deps import get_store

router = APIRouter(prefix="/api", tags=["listing"])


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, UTC).isoformat().replace("+00:00", "Z")


@router.get("/list", response_model=List[ProjectListEntry])
def list_projects(store: ProjectStore = Depends(get_store)) -> List[ProjectListEntry]:
    return [
        ProjectListEntry(
            filename=f"{summary.name}{ARTIFACT_SUFFIX}",
            project_name=summary.name,
            description=summary.first_user_message,
            last_modified=_iso(summary.last_modified),
        )
        for summary in store.list_projects()
    ]
