from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from ..domain.chat_models import Message
from ..infrastructure.project_store import ProjectStore

PROMPT_SEPARATOR = "\n\n"
CURRENT_CONTEXT_LABEL = "Current HTML context:"
INITIAL_CONTEXT_LABEL = "Initial HTML context (template):"


def combine_system_prompt(fixed: str, user: str) -> str:
    """Join the operator prompt and the shared user prompt; blank parts are skipped."""
    parts = [p for p in ((fixed or "").strip(), (user or "").strip()) if p]
    return PROMPT_SEPARATOR.join(parts)


def is_duplicate_submission(history: List[Message], user_message: str) -> bool:
    """True when ``user_message`` repeats a user turn still awaiting its reply."""
    if not history or history[-1].role != "user":
        return False
    return history[-1].content.strip() == user_message.strip()


def context_message(artifact: Optional[str], template: Optional[str]) -> Optional[Message]:
    if artifact and artifact.strip():
        return Message(role="system", content=f"{CURRENT_CONTEXT_LABEL}\n{artifact}")
    if template and template.strip():
        return Message(role="system", content=f"{INITIAL_CONTEXT_LABEL}\n{template}")
    return None


@dataclass
class Assembly:
    """Result of prompt assembly.

    ``history`` is what must be persisted; ``messages`` is the transient list
    sent to the completion API (history plus at most one context message).
    """

    history: List[Message]
    messages: List[Message]
    seeded: bool = False
    appended_user: bool = False


def assemble(
    store: ProjectStore,
    project: str,
    user_message: str,
    history: List[Message],
    user_prompt: Optional[str] = None,
) -> Assembly:
    """Seed, extend and decorate ``history`` for one turn.

    ``user_prompt`` overrides the stored shared user prompt when the caller
    supplied a new one with this turn.
    """
    history = list(history)
    seeded = False
    if not history:
        if user_prompt is None:
            user_prompt = store.load_user_prompt()
        combined = combine_system_prompt(store.load_fixed_prompt(), user_prompt)
        history.append(Message(role="system", content=combined))
        seeded = True

    appended = False
    text = user_message or ""
    if text.strip() and not is_duplicate_submission(history, text):
        history.append(Message(role="user", content=text))
        appended = True

    messages = [m for m in history if m.content and m.content.strip()]
    artifact = store.load_artifact(project)
    ctx = context_message(artifact, None if artifact else store.load_template())
    if ctx is not None:
        messages.append(ctx)
    return Assembly(history=history, messages=messages, seeded=seeded, appended_user=appended)
