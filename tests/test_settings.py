from pathlib import Path

from src.sitechat.core import settings as settings_module
from src.sitechat.core.settings import Settings


def test_defaults_from_empty_env():
    s = Settings.from_env({})
    assert s.history_dir == Path("data/history")
    assert s.artifact_dir == Path("data/artifacts")
    assert s.model == "o3-mini"
    assert s.reasoning_effort == "high"
    assert s.json_output is True
    assert s.auto_commit is False
    assert s.serialize_turns is True
    assert s.fallback_policy == "raw"
    assert s.port == 3000
    assert s.api_key is None
    assert s.tls_enabled is False


def test_overrides_are_applied():
    s = Settings.from_env(
        {
            "SITECHAT_MODEL": "gpt-4o",
            "SITECHAT_REASONING_EFFORT": "none",
            "SITECHAT_JSON_OUTPUT": "0",
            "SITECHAT_AUTO_COMMIT": "yes",
            "SITECHAT_FALLBACK_POLICY": "FIXED",
            "OPENAI_BASE_URL": "http://localhost:8000/v1/",
            "PORT": "8443",
            "SITECHAT_TLS_KEY": "key.pem",
            "SITECHAT_TLS_CERT": "cert.pem",
            "SITECHAT_LLM_READ_TIMEOUT": "oops",
        }
    )
    assert s.model == "gpt-4o"
    assert s.reasoning_effort is None
    assert s.json_output is False
    assert s.auto_commit is True
    assert s.fallback_policy == "fixed"
    assert s.base_url == "http://localhost:8000/v1"
    assert s.port == 8443
    assert s.tls_enabled is True
    assert s.read_timeout == 300.0

    cfg = s.model_config()
    assert cfg.model == "gpt-4o" and cfg.reasoning_effort is None and cfg.json_output is False


def test_get_settings_is_cached_until_reset(monkeypatch):
    monkeypatch.setattr(settings_module, "_settings", None)
    monkeypatch.setenv("SITECHAT_MODEL", "first")
    assert settings_module.get_settings().model == "first"
    monkeypatch.setenv("SITECHAT_MODEL", "second")
    assert settings_module.get_settings().model == "first"
    settings_module.reset_settings()
    assert settings_module.get_settings().model == "second"
