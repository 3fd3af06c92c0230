"""Deployment operations gated by the confirmation-token protocol.

Every operation goes through :meth:`OperationRunner.run`:

1. blocked operations are rejected before anything touches the token store;
2. operations in the confirm-set without a token get a freshly minted token
   back and nothing is sent to the Director;
3. a presented token must validate for the same operation and resource, and
   is consumed by that validation;
4. only then is the Director called, optionally waiting for the task.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog

from ..director.client import DirectorClient
from .registry import ToolRegistry, optional_task_output
from .results import (
    BLOCKED_OPERATION,
    INVALID_OR_EXPIRED_TOKEN,
    MISSING_REQUIRED_FIELD,
    TOKEN_GENERATION_FAILED,
    ToolResult,
    dump,
    missing_field,
)

LOGGER = structlog.get_logger("bosh_mcp.server.operations")

DELETE_DEPLOYMENT = "delete_deployment"
RECREATE = "recreate"
STOP = "stop"
START = "start"
RESTART = "restart"
CLOUD_CHECK = "cck"

OUTPUT_STATES = frozenset({"done", "error"})


@dataclass(slots=True)
class OperationRequest:
    """Arguments common to every deployment operation."""

    deployment: str
    job: Optional[str] = None
    index: Optional[str] = None
    environment: Optional[str] = None
    confirm: Optional[str] = None
    force: bool = False
    wait: bool = False
    timeout: Optional[float] = None

    @property
    def resource(self) -> str:
        """Token binding key: ``deployment`` or ``deployment/job``."""

        if self.job:
            return f"{self.deployment}/{self.job}"
        return self.deployment

    def describe(self) -> dict[str, Any]:
        fields: dict[str, Any] = {"deployment": self.deployment}
        if self.job:
            fields["job"] = self.job
        if self.index:
            fields["index"] = self.index
        return fields


Action = Callable[[DirectorClient, OperationRequest], Awaitable[int]]


class OperationRunner:
    """Policy check, mint-or-validate, then execute."""

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    async def run(self, operation: str, request: OperationRequest, action: Action, *, verb: str) -> ToolResult:
        if not request.deployment:
            return missing_field("deployment")
        if request.index and not request.job:
            return ToolResult.failure("job is required when index is given", kind=MISSING_REQUIRED_FIELD)

        policy = self._registry.policy
        if policy.is_blocked(operation):
            LOGGER.warning("Rejected blocked operation", operation=operation, resource=request.resource)
            return ToolResult.failure(f"{operation} is blocked by configuration", kind=BLOCKED_OPERATION)

        if policy.requires_confirmation(operation):
            if not request.confirm:
                return self._mint(operation, request)
            if not self._registry.tokens.validate(request.confirm, operation, request.resource):
                LOGGER.warning("Rejected confirmation token", operation=operation, resource=request.resource)
                return ToolResult.failure("invalid or expired confirmation token", kind=INVALID_OR_EXPIRED_TOKEN)

        return await self._execute(operation, request, action, verb)

    def _mint(self, operation: str, request: OperationRequest) -> ToolResult:
        token = self._registry.tokens.generate(operation, request.resource)
        if not token:
            return ToolResult.failure(
                "could not generate a confirmation token", kind=TOKEN_GENERATION_FAILED
            )
        return ToolResult.ok(
            {
                "requires_confirmation": True,
                "confirmation_token": token,
                "operation": operation,
                **request.describe(),
                "expires_in_seconds": self._registry.tokens.ttl_seconds,
            }
        )

    async def _execute(self, operation: str, request: OperationRequest, action: Action, verb: str) -> ToolResult:
        registry = self._registry

        async def call(client: DirectorClient) -> dict[str, Any]:
            task_id = await action(client, request)
            LOGGER.info("Submitted operation", operation=operation, resource=request.resource, task_id=task_id)
            if not request.wait:
                return {
                    "task_id": task_id,
                    "state": "queued",
                    "operation": operation,
                    **request.describe(),
                }
            timeout = request.timeout if request.timeout and request.timeout > 0 else registry.wait_timeout
            task = await client.wait_for_task(task_id, timeout, registry.poll_interval)
            payload: dict[str, Any] = {
                "task_id": task_id,
                "state": task.state,
                "operation": operation,
                **request.describe(),
                "task": dump(task),
            }
            if task.state in OUTPUT_STATES:
                output = await optional_task_output(client, task_id)
                if output is not None:
                    payload["output"] = output
            return payload

        return await registry.run(request.environment, verb, call)


class DeploymentOperations:
    """The deployment tools exposed over MCP."""

    def __init__(self, registry: ToolRegistry) -> None:
        self._runner = OperationRunner(registry)

    async def delete_deployment(self, request: OperationRequest) -> ToolResult:
        async def action(client: DirectorClient, req: OperationRequest) -> int:
            return await client.delete_deployment(req.deployment, req.force)

        return await self._runner.run(DELETE_DEPLOYMENT, request, action, verb="delete deployment")

    async def recreate(self, request: OperationRequest) -> ToolResult:
        async def action(client: DirectorClient, req: OperationRequest) -> int:
            return await client.recreate(req.deployment, req.job, req.index)

        return await self._runner.run(RECREATE, request, action, verb="recreate")

    async def stop(self, request: OperationRequest) -> ToolResult:
        return await self._runner.run(STOP, request, _job_state("stopped"), verb="stop")

    async def start(self, request: OperationRequest) -> ToolResult:
        return await self._runner.run(START, request, _job_state("started"), verb="start")

    async def restart(self, request: OperationRequest) -> ToolResult:
        return await self._runner.run(RESTART, request, _job_state("restart"), verb="restart")

    async def cloud_check(self, request: OperationRequest) -> ToolResult:
        async def action(client: DirectorClient, req: OperationRequest) -> int:
            return await client.cloud_check(req.deployment)

        return await self._runner.run(CLOUD_CHECK, request, action, verb="run cloud check")


def _job_state(state: str) -> Action:
    async def action(client: DirectorClient, req: OperationRequest) -> int:
        return await client.change_job_state(req.deployment, req.job, state, req.index)

    return action
