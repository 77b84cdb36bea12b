from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Request

from ..core.settings import Settings
from ..infrastructure.committer import GitCommitter, SnapshotCommitter
from ..infrastructure.project_store import ProjectStore, create_project_store
from ..services.completion_client import CompletionClient
from ..services.reply_interpreter import ReplyInterpreter
from ..services.turn_orchestrator import TurnOrchestrator


@dataclass
class Services:
    settings: Settings
    store: ProjectStore
    orchestrator: TurnOrchestrator


def build_services(settings: Settings) -> Services:
    store = create_project_store(settings)
    snapshotter = SnapshotCommitter(GitCommitter(settings.git_dir)) if settings.auto_commit else None
    orchestrator = TurnOrchestrator(
        store=store,
        client=CompletionClient.from_settings(settings),
        interpreter=ReplyInterpreter(settings.fallback_policy),
        model_config=settings.model_config(),
        snapshotter=snapshotter,
        serialize_turns=settings.serialize_turns,
    )
    return Services(settings=settings, store=store, orchestrator=orchestrator)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_store(services: Services = Depends(get_services)) -> ProjectStore:
    return services.store


def get_orchestrator(services: Services = Depends(get_services)) -> TurnOrchestrator:
    return services.orchestrator
