"""Sequencing of a single chat turn.

A turn moves through ``ASSEMBLING -> CALLING -> INTERPRETING -> PERSISTING``
then ``COMMITTING`` when auto-commit is enabled, and finally ``DONE``.
Any failure lands in ``FAILED``. Nothing is written to the store before the
completion call succeeds, so a failed call leaves the project untouched.

The snapshot commit is returned as a deferred job on the outcome; the HTTP
layer runs it after the response has been sent. The per-project lock
covers only ``PERSISTING``: the history is reloaded under the lock and the
turn's messages are replayed onto it, so a slow completion call never blocks
other turns for the same project.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Callable, Dict, Iterator, List, Optional

from ..domain.chat_models import CompletionResult, Message, ModelConfig
from ..domain.errors import CompletionError, CorruptState, TransportError, ValidationError
from ..infrastructure.committer import SnapshotCommitter
from ..infrastructure.project_store import ProjectStore, validate_project_name
from ..observability.metrics import SNAPSHOTS, TURNS
from .completion_client import CompletionClient
from .prompt_assembler import assemble, is_duplicate_submission
from .reply_interpreter import ReplyInterpreter

LOG = logging.getLogger("sitechat.turn")


class TurnState(str, Enum):
    ASSEMBLING = "assembling"
    CALLING = "calling"
    INTERPRETING = "interpreting"
    PERSISTING = "persisting"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


class ProjectLocks:
    """Per-key mutual exclusion for read-modify-write of project records."""

    def __init__(self) -> None:
        self._locks: Dict[str, Lock] = {}
        self._guard = Lock()

    def get(self, key: str) -> Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str, enabled: bool = True) -> Iterator[None]:
        if not enabled:
            yield
            return
        with self.get(key):
            yield


@dataclass
class TurnOutcome:
    project: str
    result: CompletionResult
    state: TurnState
    history: List[Message] = field(default_factory=list)
    artifact_written: bool = False
    commit_job: Optional[Callable[[], bool]] = None


def rebase_history(latest: List[Message], base: List[Message], assembled: List[Message]) -> List[Message]:
    """Replay the messages a turn added to ``base`` on top of ``latest``.

    ``latest`` is the history stored when the turn persists. It differs from
    ``base`` when another turn for the same project persisted while this one
    was waiting on the completion API.
    """
    if latest == base or not latest:
        return list(assembled)
    added = assembled[len(base):]
    if not base and added and added[0].role == "system":
        # the other turn already seeded the history
        added = added[1:]
    merged = list(latest)
    for message in added:
        if message.role == "user" and is_duplicate_submission(merged, message.content):
            continue
        merged.append(message)
    return merged


# Key for the shared, non-per-project user prompt record
_USER_PROMPT_KEY = "\x00user-prompt"


class TurnOrchestrator:
    def __init__(
        self,
        store: ProjectStore,
        client: CompletionClient,
        interpreter: ReplyInterpreter,
        model_config: ModelConfig,
        snapshotter: Optional[SnapshotCommitter] = None,
        locks: Optional[ProjectLocks] = None,
        serialize_turns: bool = True,
    ) -> None:
        self.store = store
        self.client = client
        self.interpreter = interpreter
        self.model_config = model_config
        self.snapshotter = snapshotter
        self.locks = locks or ProjectLocks()
        self.serialize_turns = serialize_turns

    def _enter(self, project: str, state: TurnState) -> TurnState:
        LOG.debug("turn_state", extra={"project": project, "state": state.value})
        return state

    def _load_history(self, project: str) -> List[Message]:
        try:
            return self.store.load_history(project)
        except CorruptState as exc:
            LOG.warning("history_unreadable_starting_fresh", extra={"project": project, "err": str(exc)})
            return []

    def run_turn(
        self,
        project_name: Optional[str],
        user_message: str,
        user_system_prompt: Optional[str] = None,
    ) -> TurnOutcome:
        """Run one turn for ``project_name`` and return its outcome.

        Raises ``ValidationError`` before any side effect when the project name
        is missing, and re-raises ``UpstreamError``/``TransportError`` from the
        completion call.
        """
        state = TurnState.ASSEMBLING
        try:
            project = validate_project_name(project_name)
        except ValidationError:
            TURNS.labels(outcome="invalid").inc()
            raise
        self._enter(project, state)

        history = self._load_history(project)
        assembly = assemble(self.store, project, user_message, history, user_prompt=user_system_prompt)

        state = self._enter(project, TurnState.CALLING)
        try:
            raw = self.client.complete(assembly.messages, self.model_config)
        except CompletionError as exc:
            state = self._enter(project, TurnState.FAILED)
            outcome = "transport_error" if isinstance(exc, TransportError) else "upstream_error"
            TURNS.labels(outcome=outcome).inc()
            LOG.error("turn_failed", extra={"project": project, "reason": str(exc)})
            raise

        state = self._enter(project, TurnState.INTERPRETING)
        result = self.interpreter.interpret(raw)

        state = self._enter(project, TurnState.PERSISTING)
        with self.locks.hold(project, self.serialize_turns):
            latest = self._load_history(project)
            new_history = rebase_history(latest, history, assembly.history)
            if new_history and new_history[-1].role == "user":
                new_history.append(Message(role="assistant", content=result.reply_text))
            else:
                LOG.warning("assistant_reply_not_recorded_no_user_turn", extra={"project": project})
            self.store.save_history(project, new_history)
            artifact_written = False
            if result.artifact_content and result.artifact_content.strip():
                self.store.save_artifact(project, result.artifact_content)
                artifact_written = True

        if user_system_prompt is not None:
            with self.locks.hold(_USER_PROMPT_KEY, self.serialize_turns):
                self.store.save_user_prompt(user_system_prompt)

        commit_job = None
        if self.snapshotter is not None:
            state = self._enter(project, TurnState.COMMITTING)
            commit_job = self._commit_job(project, result.reply_text)
        state = self._enter(project, TurnState.DONE)

        TURNS.labels(outcome="ok").inc()
        LOG.info(
            "turn_completed",
            extra={"project": project, "artifact_written": artifact_written, "messages": len(new_history)},
        )
        return TurnOutcome(
            project=project,
            result=result,
            state=state,
            history=new_history,
            artifact_written=artifact_written,
            commit_job=commit_job,
        )

    def _commit_job(self, project: str, reply_text: str) -> Callable[[], bool]:
        snapshotter = self.snapshotter
        paths = [self.store.history_path(project), self.store.artifact_path(project)]

        def job() -> bool:
            ok = snapshotter.snapshot(project, paths, reply_text) if snapshotter else False
            SNAPSHOTS.labels(result="committed" if ok else "skipped_or_failed").inc()
            return ok

        return job
