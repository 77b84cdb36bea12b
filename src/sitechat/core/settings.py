"""Environment-driven settings for the SiteChat backend.

Values are read from a mapping (``os.environ`` by default) so tests can
build settings from a plain dict without touching the process environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from ..domain.chat_models import ModelConfig

_TRUTHY = ("1", "true", "yes", "on")


def _flag(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = (env.get(key) or "").strip().lower()
    if not raw:
        return default
    return raw in _TRUTHY


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = (env.get(key) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    history_dir: Path
    artifact_dir: Path
    prompt_dir: Path
    store_impl: str = "file"
    api_key: Optional[str] = None
    base_url: str = "https://api.openai.com/v1"
    model: str = "o3-mini"
    reasoning_effort: Optional[str] = "high"
    json_output: bool = True
    connect_timeout: float = 5.0
    read_timeout: float = 300.0
    fallback_policy: str = "raw"
    auto_commit: bool = False
    git_dir: Path = Path(".")
    serialize_turns: bool = True
    host: str = "0.0.0.0"
    port: int = 3000
    tls_key: Optional[str] = None
    tls_cert: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        port_raw = (env.get("PORT") or "").strip()
        effort = (env.get("SITECHAT_REASONING_EFFORT") or "high").strip()
        return cls(
            history_dir=Path(env.get("SITECHAT_HISTORY_DIR") or "data/history"),
            artifact_dir=Path(env.get("SITECHAT_ARTIFACT_DIR") or "data/artifacts"),
            prompt_dir=Path(env.get("SITECHAT_PROMPT_DIR") or "data/prompts"),
            store_impl=(env.get("SITECHAT_STORE_IMPL") or "file").strip().lower(),
            api_key=env.get("OPENAI_API_KEY") or None,
            base_url=(env.get("OPENAI_BASE_URL") or "https://api.openai.com/v1").rstrip("/"),
            model=(env.get("SITECHAT_MODEL") or "o3-mini").strip(),
            # "none" disables the parameter for models that reject it
            reasoning_effort=None if effort.lower() == "none" else effort,
            json_output=_flag(env, "SITECHAT_JSON_OUTPUT", True),
            connect_timeout=_float(env, "SITECHAT_LLM_CONNECT_TIMEOUT", 5.0),
            read_timeout=_float(env, "SITECHAT_LLM_READ_TIMEOUT", 300.0),
            fallback_policy=(env.get("SITECHAT_FALLBACK_POLICY") or "raw").strip().lower(),
            auto_commit=_flag(env, "SITECHAT_AUTO_COMMIT", False),
            git_dir=Path(env.get("SITECHAT_GIT_DIR") or "."),
            serialize_turns=_flag(env, "SITECHAT_SERIALIZE_TURNS", True),
            host=(env.get("HOST") or "0.0.0.0").strip(),
            port=int(port_raw) if port_raw.isdigit() else 3000,
            tls_key=env.get("SITECHAT_TLS_KEY") or None,
            tls_cert=env.get("SITECHAT_TLS_CERT") or None,
        )

    def model_config(self) -> ModelConfig:
        return ModelConfig(
            model=self.model,
            reasoning_effort=self.reasoning_effort,
            json_output=self.json_output,
        )

    @property
    def tls_enabled(self) -> bool:
        return bool(self.tls_key and self.tls_cert)


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
