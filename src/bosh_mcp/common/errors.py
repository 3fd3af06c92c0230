"""Error hierarchy shared across bosh-mcp components."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from .schemas import Task


class BoshMCPError(Exception):
    """Base class for every error raised by bosh-mcp."""


class NoCredentialsAvailable(BoshMCPError):
    """Raised when no credential source produced usable credentials."""

    def __init__(self, message: str = "no BOSH credentials available") -> None:
        super().__init__(message)


class CredentialSourceError(BoshMCPError):
    """Raised when a credential source fails (malformed file, helper failure)."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class APIError(BoshMCPError):
    """The Director rejected a request."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"API error {status}: {body}")
        self.status = status
        self.body = body


class TaskLocationError(BoshMCPError):
    """The Director answered a state-changing request without a usable task reference."""


class TaskLocationMissing(TaskLocationError):
    def __init__(self, status: int) -> None:
        super().__init__(f"response {status} carried no Location header")
        self.status = status


class TaskLocationMalformed(TaskLocationError):
    def __init__(self, location: str) -> None:
        super().__init__(f"cannot parse task id from Location header {location!r}")
        self.location = location


class TaskWaitTimeout(BoshMCPError):
    """Waiting for a task exceeded its deadline.

    ``task`` holds the last snapshot fetched before the deadline passed.
    """

    def __init__(self, task: "Task", timeout: float) -> None:
        super().__init__(
            f"timeout after {timeout:g}s waiting for task {task.id} (last state: {task.state})"
        )
        self.task = task
        self.timeout = timeout


class PolicyError(BoshMCPError):
    """Raised when the operation policy file is invalid."""


def describe(exc: BaseException, *, default: Optional[str] = None) -> str:
    message = str(exc)
    if message:
        return message
    return default or exc.__class__.__name__
