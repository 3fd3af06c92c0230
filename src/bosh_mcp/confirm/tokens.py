"""Single-use, expiring confirmation tokens bound to an operation and a resource."""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

LOGGER = structlog.get_logger("bosh_mcp.confirm.tokens")

TOKEN_PREFIX = "tok_"
TOKEN_BYTES = 16


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class PendingToken:
    """A token waiting to be confirmed."""

    operation: str
    resource: str
    expires_at: datetime

    def expired(self, now: datetime) -> bool:
        return now > self.expires_at


class TokenStore:
    """In-memory map of pending tokens.

    Every method takes the same lock; no I/O happens while it is held, so
    issuing and validating can never interleave on the same token.
    """

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], datetime] = _utc_now) -> None:
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._tokens: dict[str, PendingToken] = {}

    @property
    def ttl_seconds(self) -> int:
        return int(self._ttl.total_seconds())

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def generate(self, operation: str, resource: str) -> str:
        """Mint a token for ``operation`` on ``resource``.

        Returns an empty string if the system entropy source fails; callers
        must treat that as a hard failure and never hand it out.
        """

        try:
            token = TOKEN_PREFIX + secrets.token_bytes(TOKEN_BYTES).hex()
        except (OSError, NotImplementedError) as exc:
            LOGGER.error("Entropy source unavailable", operation=operation, error=str(exc))
            return ""

        with self._lock:
            self._tokens[token] = PendingToken(
                operation=operation,
                resource=resource,
                expires_at=self._clock() + self._ttl,
            )
        LOGGER.info("Issued confirmation token", operation=operation, resource=resource)
        return token

    def validate(self, token: str, operation: str, resource: str) -> bool:
        """Consume ``token`` if it was minted for exactly this operation and resource."""

        with self._lock:
            pending = self._tokens.get(token)
            if pending is None:
                return False
            if pending.expired(self._clock()):
                del self._tokens[token]
                return False
            if pending.operation != operation or pending.resource != resource:
                return False
            del self._tokens[token]
        LOGGER.info("Consumed confirmation token", operation=operation, resource=resource)
        return True

    def get_pending(self, token: str) -> Optional[PendingToken]:
        with self._lock:
            pending = self._tokens.get(token)
            if pending is None:
                return None
            if pending.expired(self._clock()):
                del self._tokens[token]
                return None
            return pending

    def cleanup(self) -> int:
        """Drop every expired token and return how many were removed."""

        with self._lock:
            now = self._clock()
            expired = [token for token, pending in self._tokens.items() if pending.expired(now)]
            for token in expired:
                del self._tokens[token]
        if expired:
            LOGGER.debug("Swept expired confirmation tokens", count=len(expired))
        return len(expired)
