"""Tool call results handed back to the MCP layer."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from pydantic import BaseModel

MISSING_REQUIRED_FIELD = "missing_required_field"
BLOCKED_OPERATION = "blocked_operation"
INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"
TOKEN_GENERATION_FAILED = "token_generation_failed"
AUTH_FAILED = "auth_failed"
DIRECTOR_ERROR = "director_error"
TASK_WAIT_TIMEOUT = "task_wait_timeout"


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Either a JSON payload or a typed failure.

    A minted confirmation token is a successful result; rejections carry
    ``is_error`` and a ``kind`` so the protocol layer can tell them apart.
    """

    payload: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    kind: Optional[str] = None

    @classmethod
    def ok(cls, payload: dict[str, Any]) -> "ToolResult":
        return cls(payload=payload)

    @classmethod
    def failure(cls, message: str, *, kind: str, payload: Optional[dict[str, Any]] = None) -> "ToolResult":
        return cls(payload=payload, error=message, kind=kind)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def text(self) -> str:
        if self.error is None:
            return json.dumps(self.payload or {}, indent=2, default=str)
        if not self.payload:
            return self.error
        return json.dumps({"error": self.error, "kind": self.kind, **self.payload}, indent=2, default=str)


def missing_field(name: str) -> ToolResult:
    return ToolResult.failure(f"{name} is required", kind=MISSING_REQUIRED_FIELD)


def dump(value: BaseModel | Iterable[BaseModel]) -> Any:
    """Serialise Director models for a JSON payload."""

    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude_none=True)
    return [item.model_dump(mode="json", exclude_none=True) for item in value]
