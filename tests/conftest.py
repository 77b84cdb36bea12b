import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

# Keep the module-level app from creating data directories in the repo
os.environ.setdefault("SITECHAT_STORE_IMPL", "memory")
os.environ.setdefault("SITECHAT_AUTO_COMMIT", "false")


@pytest.fixture
def file_settings(tmp_path):
    """Settings pointing every storage directory into ``tmp_path``."""
    from src.sitechat.core.settings import Settings

    return Settings.from_env(
        {
            "SITECHAT_HISTORY_DIR": str(tmp_path / "history"),
            "SITECHAT_ARTIFACT_DIR": str(tmp_path / "artifacts"),
            "SITECHAT_PROMPT_DIR": str(tmp_path / "prompts"),
            "SITECHAT_STORE_IMPL": "file",
            "OPENAI_API_KEY": "test-key",
        }
    )
