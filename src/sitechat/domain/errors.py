from __future__ import annotations

from typing import Optional


class SiteChatError(Exception):
    """Base class for errors raised by the chat-turn pipeline."""


class ValidationError(SiteChatError):
    """Missing or malformed caller input (HTTP 400)."""


class CorruptState(SiteChatError):
    """A persisted record exists but cannot be decoded."""

    def __init__(self, location: str, reason: str) -> None:
        super().__init__(f"Unreadable record at {location}: {reason}")
        self.location = location
        self.reason = reason


class CompletionError(SiteChatError):
    """The completion API could not produce a reply."""


class UpstreamError(CompletionError):
    """The completion API answered with a non-success status or an unusable body."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Completion API returned status {status_code}")
        self.status_code = status_code
        self.body = body


class TransportError(CompletionError):
    """Network-level failure talking to the completion API (DNS, TLS, timeout)."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class CommitFailure(SiteChatError):
    """The version-control snapshot step failed."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output
