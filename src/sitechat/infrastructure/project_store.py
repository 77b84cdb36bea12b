from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from threading import RLock
from typing import Dict, List, Optional, Protocol

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from ..core.settings import Settings
from ..domain.chat_models import Message, ProjectSummary
from ..domain.errors import CorruptState, ValidationError

logger = logging.getLogger("sitechat.store")

_MESSAGES = TypeAdapter(List[Message])

FIXED_PROMPT_FILE = "fixed_system_prompt.txt"
USER_PROMPT_FILE = "user_system_prompt.txt"
TEMPLATE_FILE = "template.html"
ARTIFACT_SUFFIX = ".html"
HISTORY_SUFFIX = ".json"


def validate_project_name(project: Optional[str]) -> str:
    """Return the trimmed project name or raise if it is not a safe file key."""
    name = (project or "").strip()
    if not name:
        raise ValidationError("projectName is required")
    if name in (".", "..") or "/" in name or "\\" in name or "\x00" in name:
        raise ValidationError(f"Invalid projectName: {name!r}")
    return name


def first_user_message(messages: List[Message]) -> str:
    for m in messages:
        if m.role == "user":
            return m.content
    return ""


class ProjectStore(Protocol):
    def load_history(self, project: str) -> List[Message]: ...
    def save_history(self, project: str, messages: List[Message]) -> None: ...
    def delete_history(self, project: str) -> None: ...
    def load_artifact(self, project: str) -> Optional[str]: ...
    def save_artifact(self, project: str, content: str) -> None: ...
    def load_user_prompt(self) -> str: ...
    def save_user_prompt(self, text: str) -> None: ...
    def load_fixed_prompt(self) -> str: ...
    def load_template(self) -> Optional[str]: ...
    def list_projects(self) -> List[ProjectSummary]: ...
    def history_path(self, project: str) -> Optional[Path]: ...
    def artifact_path(self, project: str) -> Optional[Path]: ...


class InMemoryProjectStore:
    """Process-local store for tests and throwaway dev servers."""

    def __init__(self, fixed_prompt: str = "", template: Optional[str] = None) -> None:
        self._histories: Dict[str, List[Message]] = {}
        self._artifacts: Dict[str, tuple[str, float]] = {}
        self._user_prompt = ""
        self._fixed_prompt = fixed_prompt
        self._template = template
        self._lock = RLock()

    def load_history(self, project: str) -> List[Message]:
        with self._lock:
            return [m.model_copy() for m in self._histories.get(validate_project_name(project), [])]

    def save_history(self, project: str, messages: List[Message]) -> None:
        with self._lock:
            self._histories[validate_project_name(project)] = [m.model_copy() for m in messages]

    def delete_history(self, project: str) -> None:
        with self._lock:
            self._histories.pop(validate_project_name(project), None)

    def load_artifact(self, project: str) -> Optional[str]:
        with self._lock:
            entry = self._artifacts.get(validate_project_name(project))
            return entry[0] if entry else None

    def save_artifact(self, project: str, content: str) -> None:
        with self._lock:
            self._artifacts[validate_project_name(project)] = (content, time.time())

    def load_user_prompt(self) -> str:
        with self._lock:
            return self._user_prompt

    def save_user_prompt(self, text: str) -> None:
        with self._lock:
            self._user_prompt = text

    def load_fixed_prompt(self) -> str:
        return self._fixed_prompt

    def load_template(self) -> Optional[str]:
        return self._template

    def list_projects(self) -> List[ProjectSummary]:
        with self._lock:
            out = [
                ProjectSummary(
                    name=name,
                    first_user_message=first_user_message(self._histories.get(name, [])),
                    last_modified=mtime,
                )
                for name, (_content, mtime) in self._artifacts.items()
            ]
        return sorted(out, key=lambda s: s.last_modified, reverse=True)

    def history_path(self, project: str) -> Optional[Path]:
        return None

    def artifact_path(self, project: str) -> Optional[Path]:
        return None


class FileProjectStore:
    """JSON/HTML file-backed store.

    Layout:
      <history_dir>/<project>.json   ordered message list
      <artifact_dir>/<project>.html  latest generated document
      <prompt_dir>/fixed_system_prompt.txt, user_system_prompt.txt, template.html

    Every write replaces the whole file through a temp file and ``os.replace``,
    so readers see either the previous or the next complete record.
    """

    def __init__(self, history_dir: Path, artifact_dir: Path, prompt_dir: Path) -> None:
        self._history_dir = Path(history_dir)
        self._artifact_dir = Path(artifact_dir)
        self._prompt_dir = Path(prompt_dir)
        for d in (self._history_dir, self._artifact_dir, self._prompt_dir):
            d.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_settings(cls, settings: Settings) -> "FileProjectStore":
        return cls(settings.history_dir, settings.artifact_dir, settings.prompt_dir)

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _write_atomic(path: Path, text: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    @staticmethod
    def _read_text(path: Path) -> Optional[str]:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def history_path(self, project: str) -> Path:
        return self._history_dir / f"{validate_project_name(project)}{HISTORY_SUFFIX}"

    def artifact_path(self, project: str) -> Path:
        return self._artifact_dir / f"{validate_project_name(project)}{ARTIFACT_SUFFIX}"

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def load_history(self, project: str) -> List[Message]:
        path = self.history_path(project)
        try:
            raw = self._read_text(path)
        except UnicodeDecodeError as exc:
            raise CorruptState(str(path), "not valid UTF-8") from exc
        if raw is None:
            return []
        try:
            return _MESSAGES.validate_json(raw)
        except PydanticValidationError as exc:
            raise CorruptState(str(path), f"{exc.error_count()} validation error(s)") from exc

    def save_history(self, project: str, messages: List[Message]) -> None:
        payload = [m.model_dump() for m in messages]
        self._write_atomic(self.history_path(project), json.dumps(payload, ensure_ascii=False, indent=2))

    def delete_history(self, project: str) -> None:
        try:
            self.history_path(project).unlink()
        except FileNotFoundError:
            pass

    # ------------------------------------------------------------------
    # Artifact
    # ------------------------------------------------------------------
    def load_artifact(self, project: str) -> Optional[str]:
        return self._read_text(self.artifact_path(project))

    def save_artifact(self, project: str, content: str) -> None:
        self._write_atomic(self.artifact_path(project), content)

    # ------------------------------------------------------------------
    # Shared prompts
    # ------------------------------------------------------------------
    def load_user_prompt(self) -> str:
        return self._read_text(self._prompt_dir / USER_PROMPT_FILE) or ""

    def save_user_prompt(self, text: str) -> None:
        self._write_atomic(self._prompt_dir / USER_PROMPT_FILE, text)

    def load_fixed_prompt(self) -> str:
        return self._read_text(self._prompt_dir / FIXED_PROMPT_FILE) or ""

    def load_template(self) -> Optional[str]:
        return self._read_text(self._prompt_dir / TEMPLATE_FILE)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------
    def list_projects(self) -> List[ProjectSummary]:
        out: List[ProjectSummary] = []
        for path in self._artifact_dir.glob(f"*{ARTIFACT_SUFFIX}"):
            name = path.name[: -len(ARTIFACT_SUFFIX)]
            try:
                mtime = path.stat().st_mtime
            except FileNotFoundError:
                # deleted between glob and stat
                continue
            try:
                label = first_user_message(self.load_history(name))
            except (CorruptState, ValidationError) as exc:
                logger.warning("project_list_history_unreadable", extra={"project": name, "err": str(exc)})
                label = ""
            out.append(ProjectSummary(name=name, first_user_message=label, last_modified=mtime))
        return sorted(out, key=lambda s: s.last_modified, reverse=True)


def create_project_store(settings: Settings) -> ProjectStore:
    if settings.store_impl == "memory":
        return InMemoryProjectStore()
    return FileProjectStore.from_settings(settings)
