"""Which operations need a confirmation token and which are refused outright."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Optional

import structlog
import yaml

from ..common.errors import PolicyError

LOGGER = structlog.get_logger("bosh_mcp.server.policy")

DEFAULT_TOKEN_TTL_SECONDS = 300
DEFAULT_CONFIRM_OPERATIONS = frozenset({"delete_deployment", "recreate", "stop", "cck"})


def _normalise_entries(entries: Iterable[Any] | None) -> frozenset[str]:
    if not entries:
        return frozenset()
    return frozenset(str(item).strip() for item in entries if item is not None and str(item).strip())


class OperationPolicy:
    """Read-only membership tests against the configured operation sets."""

    def __init__(
        self,
        *,
        confirm_operations: Iterable[str] = DEFAULT_CONFIRM_OPERATIONS,
        blocked_operations: Iterable[str] = (),
        token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
    ) -> None:
        self._confirm_operations = frozenset(confirm_operations)
        self._blocked_operations = frozenset(blocked_operations)
        self._token_ttl_seconds = token_ttl_seconds

    @property
    def confirm_operations(self) -> frozenset[str]:
        return self._confirm_operations

    @property
    def blocked_operations(self) -> frozenset[str]:
        return self._blocked_operations

    @property
    def token_ttl_seconds(self) -> int:
        return self._token_ttl_seconds

    def requires_confirmation(self, operation: str) -> bool:
        return operation in self._confirm_operations

    def is_blocked(self, operation: str) -> bool:
        return operation in self._blocked_operations

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "OperationPolicy":
        """Build a policy from a parsed config mapping.

        A missing or non-positive ``token_ttl`` and empty operation lists fall
        back to the defaults.
        """

        ttl = payload.get("token_ttl")
        if ttl is None:
            ttl = DEFAULT_TOKEN_TTL_SECONDS
        try:
            ttl = int(ttl)
        except (TypeError, ValueError) as exc:
            raise PolicyError(f"token_ttl must be an integer number of seconds, got {ttl!r}") from exc
        if ttl <= 0:
            ttl = DEFAULT_TOKEN_TTL_SECONDS

        for key in ("confirm_operations", "blocked_operations"):
            value = payload.get(key)
            if value is not None and not isinstance(value, list):
                raise PolicyError(f"{key} must be a list of operation names")

        confirm = _normalise_entries(payload.get("confirm_operations")) or DEFAULT_CONFIRM_OPERATIONS
        blocked = _normalise_entries(payload.get("blocked_operations"))
        return cls(confirm_operations=confirm, blocked_operations=blocked, token_ttl_seconds=ttl)


def load_operation_policy(path: Optional[Path]) -> OperationPolicy:
    if path is None:
        return OperationPolicy()
    if not path.exists():
        LOGGER.warning("Operation policy file not found, using defaults", path=str(path))
        return OperationPolicy()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise PolicyError(f"Invalid YAML in operation policy {path}: {exc}") from exc
    if data is None:
        LOGGER.info("Loaded empty operation policy", path=str(path))
        return OperationPolicy()
    if not isinstance(data, dict):
        raise PolicyError("Policy file must contain a mapping at the top level")
    policy = OperationPolicy.from_dict(data)
    LOGGER.info(
        "Loaded operation policy",
        path=str(path),
        token_ttl=policy.token_ttl_seconds,
        confirm_operations=sorted(policy.confirm_operations),
        blocked_operations=sorted(policy.blocked_operations),
    )
    return policy
