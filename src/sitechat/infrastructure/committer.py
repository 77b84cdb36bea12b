from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence

from ..domain.errors import CommitFailure

logger = logging.getLogger("sitechat.commit")

MAX_LABEL_REPLY_CHARS = 200
_QUOTE_CHARS = re.compile(r"['\"`]")
_WHITESPACE = re.compile(r"\s+")


class Committer(Protocol):
    def stage(self, paths: Sequence[Path]) -> None: ...
    def commit(self, label: str) -> None: ...


class GitCommitter:
    """Runs ``git add``/``git commit`` in a working tree."""

    def __init__(self, repo_dir: Path, git_executable: str = "git", timeout: float = 30.0) -> None:
        self.repo_dir = Path(repo_dir)
        self.git_executable = git_executable
        self.timeout = timeout

    def _run(self, args: List[str]) -> str:
        cmd = [self.git_executable] + args
        try:
            proc = subprocess.run(
                cmd,
                cwd=str(self.repo_dir),
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            raise CommitFailure(f"git {args[0]} exited with status {e.returncode}", output=(e.stderr or e.stdout or "")) from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise CommitFailure(f"git {args[0]} could not run: {e}") from e
        return proc.stdout

    def stage(self, paths: Sequence[Path]) -> None:
        self._run(["add", "--"] + [str(p) for p in paths])

    def commit(self, label: str) -> None:
        self._run(["commit", "-m", label])


def sanitize_label_text(text: str, limit: int = MAX_LABEL_REPLY_CHARS) -> str:
    """Strip quote characters and newlines so the text fits a one-line commit label."""
    cleaned = _QUOTE_CHARS.sub("", text or "")
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    if len(cleaned) > limit:
        cleaned = cleaned[: limit - 1].rstrip() + "…"
    return cleaned


def snapshot_label(project: str, reply_text: str) -> str:
    return f"{project}: {sanitize_label_text(reply_text)}"


class SnapshotCommitter:
    """Best-effort labeled snapshot of a project's files.

    Never raises: missing files turn the call into a logged no-op and commit
    failures are logged with the tool's output.
    """

    def __init__(self, committer: Committer) -> None:
        self._committer = committer

    def snapshot(self, project: str, paths: Iterable[Optional[Path]], reply_text: str) -> bool:
        existing = [p for p in paths if p is not None and Path(p).exists()]
        if not existing:
            logger.info("snapshot_skipped_no_files", extra={"project": project})
            return False
        label = snapshot_label(project, reply_text)
        try:
            self._committer.stage(existing)
            self._committer.commit(label)
        except CommitFailure as exc:
            logger.warning(
                "snapshot_commit_failed",
                extra={"project": project, "err": str(exc), "output": exc.output},
            )
            return False
        logger.info("snapshot_committed", extra={"project": project, "files": len(existing)})
        return True
