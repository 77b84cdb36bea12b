from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter

from ..core.settings import Settings
from ..domain.chat_models import Message, ModelConfig, messages_to_payload
from ..domain.errors import TransportError, UpstreamError
from ..observability.metrics import COMPLETION_LATENCY

LOG = logging.getLogger("sitechat.llm")

_MAX_LOGGED_BODY = 2000


def _build_session() -> requests.Session:
    session = requests.Session()
    # One attempt per turn; failures surface to the caller
    adapter = HTTPAdapter(max_retries=0, pool_connections=10, pool_maxsize=10)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def build_payload(messages: List[Message], config: ModelConfig) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "model": config.model,
        "messages": messages_to_payload(messages),
    }
    if config.reasoning_effort:
        payload["reasoning_effort"] = config.reasoning_effort
    if config.json_output:
        payload["response_format"] = {"type": "json_object"}
    return payload


def extract_reply(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else None


class CompletionClient:
    """Blocking client for an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        timeout: Tuple[float, float] = (5.0, 300.0),
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._session = session or _build_session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionClient":
        return cls(
            base_url=settings.base_url,
            api_key=settings.api_key,
            timeout=(settings.connect_timeout, settings.read_timeout),
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def complete(self, messages: List[Message], config: ModelConfig) -> str:
        payload = build_payload(messages, config)
        url = f"{self.base_url}/chat/completions"
        LOG.debug("completion_request", extra={"model": config.model, "messages": len(payload["messages"])})
        start = time.perf_counter()
        try:
            resp = self._session.post(url, json=payload, headers=self._headers(), timeout=self._timeout)
        except requests.exceptions.RequestException as exc:
            LOG.error("completion_transport_failed", extra={"url": url, "err": str(exc)})
            raise TransportError(f"Completion request failed: {exc.__class__.__name__}", cause=exc) from exc
        finally:
            COMPLETION_LATENCY.labels(model=config.model).observe(time.perf_counter() - start)

        if not resp.ok:
            body = resp.text or ""
            LOG.error(
                "completion_upstream_error",
                extra={"status": resp.status_code, "body": body[:_MAX_LOGGED_BODY]},
            )
            raise UpstreamError(resp.status_code, body)

        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamError(resp.status_code, resp.text or "") from exc
        reply = extract_reply(data)
        if reply is None:
            LOG.error("completion_reply_missing", extra={"status": resp.status_code})
            raise UpstreamError(resp.status_code, resp.text or "")
        LOG.debug("completion_response", extra={"chars": len(reply)})
        return reply
