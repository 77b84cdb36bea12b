"""Decoding of the model's textual reply into a :class:`CompletionResult`.

The model is asked for a JSON object ``{"html": "...", "chat": "..."}``.
Anything else falls back to a plain chat reply so a turn never fails here;
a valid ``html`` field survives the fallback.
Two fallback policies exist:

``raw``
    the reply text is the model output verbatim (default).
``fixed``
    the reply text is the constant :data:`FIXED_FALLBACK_TEXT`.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from ..domain.chat_models import CompletionResult

logger = logging.getLogger("sitechat.reply")

FALLBACK_RAW = "raw"
FALLBACK_FIXED = "fixed"
FIXED_FALLBACK_TEXT = "response error"

_FENCE = re.compile(r"^```(?:json)?\s*\n(?P<body>.*)\n```\s*$", re.DOTALL)


def _strip_fence(text: str) -> str:
    m = _FENCE.match(text.strip())
    return m.group("body") if m else text


def _decode(raw: str) -> Optional[dict]:
    try:
        data: Any = json.loads(_strip_fence(raw))
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _artifact(data: Optional[dict]) -> Optional[str]:
    html = data.get("html") if data else None
    return html if isinstance(html, str) and html.strip() else None


class ReplyInterpreter:
    def __init__(self, fallback_policy: str = FALLBACK_RAW) -> None:
        if fallback_policy not in (FALLBACK_RAW, FALLBACK_FIXED):
            logger.warning("unknown_fallback_policy", extra={"policy": fallback_policy})
            fallback_policy = FALLBACK_RAW
        self.fallback_policy = fallback_policy

    def interpret(self, raw: str) -> CompletionResult:
        data = _decode(raw or "")
        artifact = _artifact(data)
        chat = data.get("chat") if data else None
        if isinstance(chat, str):
            return CompletionResult(artifact_content=artifact, reply_text=chat)
        # a usable html field is kept even when the chat text is missing
        logger.info(
            "reply_not_structured",
            extra={"policy": self.fallback_policy, "chars": len(raw or ""), "has_html": artifact is not None},
        )
        text = FIXED_FALLBACK_TEXT if self.fallback_policy == FALLBACK_FIXED else (raw or "")
        return CompletionResult(artifact_content=artifact, reply_text=text)
