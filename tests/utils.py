from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from src.sitechat.domain.chat_models import Message, ModelConfig
from src.sitechat.domain.errors import CompletionError


class StubCompletionClient:
    """Stands in for ``CompletionClient``; records every call."""

    def __init__(self, replies: Optional[List[str]] = None, error: Optional[CompletionError] = None) -> None:
        self.replies = list(replies or [])
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def complete(self, messages: List[Message], config: ModelConfig) -> str:
        self.calls.append({"messages": [m.model_copy() for m in messages], "config": config})
        if self.error is not None:
            raise self.error
        if not self.replies:
            return json.dumps({"chat": "ok"})
        return self.replies.pop(0)


class RecordingCommitter:
    def __init__(self, fail_with: Optional[Exception] = None) -> None:
        self.staged: List[List[str]] = []
        self.labels: List[str] = []
        self.fail_with = fail_with

    def stage(self, paths) -> None:
        self.staged.append([str(p) for p in paths])

    def commit(self, label: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.labels.append(label)


def structured_reply(chat: str, html: Optional[str] = None) -> str:
    body: Dict[str, Any] = {"chat": chat}
    if html is not None:
        body["html"] = html
    return json.dumps(body)
