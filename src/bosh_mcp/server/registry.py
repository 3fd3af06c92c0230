"""Dependencies shared by every tool handler."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import httpx
import structlog

from ..auth.provider import CredentialProvider, build_default_provider
from ..common.errors import (
    APIError,
    CredentialSourceError,
    NoCredentialsAvailable,
    TaskLocationError,
    TaskWaitTimeout,
    describe,
)
from ..common.settings import ServerSettings
from ..confirm.tokens import TokenStore
from ..director.client import DEFAULT_POLL_INTERVAL, DEFAULT_TASK_WAIT_TIMEOUT, DirectorClient
from .policy import OperationPolicy, load_operation_policy
from .results import AUTH_FAILED, DIRECTOR_ERROR, TASK_WAIT_TIMEOUT, ToolResult, dump

LOGGER = structlog.get_logger("bosh_mcp.server.registry")

ClientFactory = Callable[..., DirectorClient]
DirectorCall = Callable[[DirectorClient], Awaitable[dict[str, Any]]]

# JSON and pydantic validation failures are ValueErrors.
DIRECTOR_ERRORS = (APIError, TaskLocationError, httpx.HTTPError, ValueError)


class ToolRegistry:
    """Owns the credential provider, policy and token store for one server process."""

    def __init__(
        self,
        provider: CredentialProvider,
        policy: Optional[OperationPolicy] = None,
        *,
        token_store: Optional[TokenStore] = None,
        request_timeout: float = 30.0,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        wait_timeout: float = DEFAULT_TASK_WAIT_TIMEOUT,
        client_factory: ClientFactory = DirectorClient,
    ) -> None:
        self.provider = provider
        self.policy = policy or OperationPolicy()
        self.tokens = token_store if token_store is not None else TokenStore(self.policy.token_ttl_seconds)
        self.request_timeout = request_timeout
        self.poll_interval = poll_interval
        self.wait_timeout = wait_timeout
        self._client_factory = client_factory

    @classmethod
    def from_settings(cls, settings: ServerSettings) -> "ToolRegistry":
        provider = build_default_provider(
            config_path=settings.bosh_config_path,
            om_command=settings.om_command,
            om_cache_ttl_seconds=settings.om_cache_ttl_seconds,
            om_timeout_seconds=settings.om_timeout_seconds,
        )
        return cls(
            provider,
            load_operation_policy(settings.policy_path),
            request_timeout=settings.request_timeout_seconds,
            poll_interval=settings.task_poll_interval_seconds,
            wait_timeout=settings.task_wait_timeout_seconds,
        )

    @asynccontextmanager
    async def client(self, environment: Optional[str] = None) -> AsyncIterator[DirectorClient]:
        creds = await self.provider.resolve(environment)
        client = self._client_factory(creds, timeout=self.request_timeout)
        try:
            yield client
        finally:
            await client.aclose()

    async def run(self, environment: Optional[str], action: str, call: DirectorCall) -> ToolResult:
        """Run ``call`` against a fresh client and turn failures into tool results.

        ``action`` completes the message "failed to ..." when the Director call fails.
        """

        try:
            async with self.client(environment) as client:
                payload = await call(client)
        except (NoCredentialsAvailable, CredentialSourceError) as exc:
            LOGGER.warning("Credential resolution failed", environment=environment, error=str(exc))
            return ToolResult.failure(f"auth failed: {describe(exc)}", kind=AUTH_FAILED)
        except TaskWaitTimeout as exc:
            return ToolResult.failure(
                f"failed waiting for task: {exc}",
                kind=TASK_WAIT_TIMEOUT,
                payload={"task": dump(exc.task)},
            )
        except DIRECTOR_ERRORS as exc:
            LOGGER.warning("Director call failed", action=action, error=describe(exc))
            return ToolResult.failure(f"failed to {action}: {describe(exc)}", kind=DIRECTOR_ERROR)
        return ToolResult.ok(payload)


async def optional_task_output(client: DirectorClient, task_id: int) -> Optional[str]:
    """Fetch the task's result output, or None if the Director will not serve it."""

    try:
        return await client.get_task_output(task_id)
    except (APIError, httpx.HTTPError) as exc:
        LOGGER.info("Task output unavailable", task_id=task_id, error=describe(exc))
        return None
