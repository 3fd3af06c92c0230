"""FastMCP wiring for the BOSH tools."""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.types import ToolAnnotations

from ..confirm.tokens import TokenStore
from .diagnostics import Diagnostics
from .operations import DeploymentOperations, OperationRequest
from .registry import ToolRegistry
from .results import ToolResult

LOGGER = structlog.get_logger("bosh_mcp.server.app")

SERVER_NAME = "bosh-mcp-server"
DEFAULT_TOKEN_CLEANUP_INTERVAL = 60.0

READ_ONLY_ANNOTATIONS = ToolAnnotations(readOnlyHint=True, idempotentHint=True, openWorldHint=True)
MUTATING_ANNOTATIONS = ToolAnnotations(
    readOnlyHint=False, destructiveHint=False, idempotentHint=False, openWorldHint=True
)
DESTRUCTIVE_ANNOTATIONS = ToolAnnotations(
    readOnlyHint=False, destructiveHint=True, idempotentHint=False, openWorldHint=True
)

INSTRUCTIONS = (
    "Inspect and operate BOSH deployments through the Director API.\n"
    "Destructive tools (delete_deployment, recreate, stop, cck by default) answer the first call "
    "with a confirmation_token. Call the same tool again with the same deployment and job and "
    "confirm=<token> to execute. Tokens are single-use and expire.\n"
    "Every tool accepts an optional environment naming an entry in the BOSH CLI config."
)


def respond(result: ToolResult) -> str:
    """Return the payload text, or raise so MCP marks the call as an error."""

    if result.is_error:
        raise ToolError(result.text)
    return result.text


async def sweep_tokens(store: TokenStore, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        store.cleanup()


@asynccontextmanager
async def token_sweeper(store: TokenStore, interval: float) -> AsyncIterator[None]:
    task = asyncio.create_task(sweep_tokens(store, interval))
    LOGGER.info("Started confirmation token sweeper", interval_seconds=interval)
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


def build_server(
    registry: ToolRegistry,
    *,
    token_cleanup_interval: float = DEFAULT_TOKEN_CLEANUP_INTERVAL,
) -> FastMCP:
    diagnostics = Diagnostics(registry)
    operations = DeploymentOperations(registry)
    interval = token_cleanup_interval if token_cleanup_interval > 0 else DEFAULT_TOKEN_CLEANUP_INTERVAL

    def lifespan(_server: FastMCP):
        return token_sweeper(registry.tokens, interval)

    mcp = FastMCP(SERVER_NAME, instructions=INSTRUCTIONS, lifespan=lifespan)

    # Diagnostics

    @mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def bosh_vms(deployment: str, environment: Optional[str] = None) -> str:
        """List the VMs of a deployment."""
        return respond(await diagnostics.vms(deployment, environment))

    @mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def bosh_instances(deployment: str, environment: Optional[str] = None) -> str:
        """List the instances of a deployment with process details."""
        return respond(await diagnostics.instances(deployment, environment))

    @mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def bosh_tasks(
        state: Optional[str] = None,
        deployment: Optional[str] = None,
        limit: int = 0,
        environment: Optional[str] = None,
    ) -> str:
        """List recent Director tasks, optionally filtered by state and deployment."""
        return respond(await diagnostics.tasks(state, deployment, limit, environment))

    @mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def bosh_task(id: int, output: bool = False, environment: Optional[str] = None) -> str:  # noqa: A002
        """Show one task; output=true also returns its result output."""
        return respond(await diagnostics.task(id, output, environment))

    @mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def bosh_task_wait(
        id: int,  # noqa: A002
        timeout: Optional[float] = None,
        environment: Optional[str] = None,
    ) -> str:
        """Wait until a task is done, errored or cancelled."""
        return respond(await diagnostics.task_wait(id, timeout, environment))

    # Infrastructure

    @mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def bosh_deployments(environment: Optional[str] = None) -> str:
        """List deployments with their releases and stemcells."""
        return respond(await diagnostics.deployments(environment))

    @mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def bosh_stemcells(environment: Optional[str] = None) -> str:
        """List uploaded stemcells."""
        return respond(await diagnostics.stemcells(environment))

    @mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def bosh_releases(environment: Optional[str] = None) -> str:
        """List uploaded releases."""
        return respond(await diagnostics.releases(environment))

    @mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def bosh_cloud_config(environment: Optional[str] = None) -> str:
        """Show the latest cloud config."""
        return respond(await diagnostics.cloud_config(environment))

    @mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def bosh_runtime_config(environment: Optional[str] = None) -> str:
        """Show the latest runtime configs."""
        return respond(await diagnostics.runtime_config(environment))

    @mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def bosh_cpi_config(environment: Optional[str] = None) -> str:
        """Show the latest CPI config."""
        return respond(await diagnostics.cpi_config(environment))

    @mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def bosh_variables(deployment: str, environment: Optional[str] = None) -> str:
        """List the config-server variables of a deployment."""
        return respond(await diagnostics.variables(deployment, environment))

    @mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
    async def bosh_locks(environment: Optional[str] = None) -> str:
        """List current Director locks."""
        return respond(await diagnostics.locks(environment))

    # Operations

    @mcp.tool(annotations=DESTRUCTIVE_ANNOTATIONS)
    async def bosh_delete_deployment(
        deployment: str,
        confirm: Optional[str] = None,
        force: bool = False,
        wait: bool = False,
        timeout: Optional[float] = None,
        environment: Optional[str] = None,
    ) -> str:
        """Delete a deployment. Requires a confirmation token by default."""
        request = OperationRequest(
            deployment=deployment,
            environment=environment,
            confirm=confirm,
            force=force,
            wait=wait,
            timeout=timeout,
        )
        return respond(await operations.delete_deployment(request))

    @mcp.tool(annotations=DESTRUCTIVE_ANNOTATIONS)
    async def bosh_recreate(
        deployment: str,
        job: Optional[str] = None,
        index: Optional[str] = None,
        confirm: Optional[str] = None,
        wait: bool = False,
        timeout: Optional[float] = None,
        environment: Optional[str] = None,
    ) -> str:
        """Recreate the VMs of a deployment, a job, or one instance."""
        request = OperationRequest(
            deployment=deployment,
            job=job,
            index=index,
            environment=environment,
            confirm=confirm,
            wait=wait,
            timeout=timeout,
        )
        return respond(await operations.recreate(request))

    @mcp.tool(annotations=DESTRUCTIVE_ANNOTATIONS)
    async def bosh_stop(
        deployment: str,
        job: Optional[str] = None,
        index: Optional[str] = None,
        confirm: Optional[str] = None,
        wait: bool = False,
        timeout: Optional[float] = None,
        environment: Optional[str] = None,
    ) -> str:
        """Stop the processes of a deployment, a job, or one instance."""
        request = OperationRequest(
            deployment=deployment,
            job=job,
            index=index,
            environment=environment,
            confirm=confirm,
            wait=wait,
            timeout=timeout,
        )
        return respond(await operations.stop(request))

    @mcp.tool(annotations=MUTATING_ANNOTATIONS)
    async def bosh_start(
        deployment: str,
        job: Optional[str] = None,
        index: Optional[str] = None,
        confirm: Optional[str] = None,
        wait: bool = False,
        timeout: Optional[float] = None,
        environment: Optional[str] = None,
    ) -> str:
        """Start the processes of a deployment, a job, or one instance."""
        request = OperationRequest(
            deployment=deployment,
            job=job,
            index=index,
            environment=environment,
            confirm=confirm,
            wait=wait,
            timeout=timeout,
        )
        return respond(await operations.start(request))

    @mcp.tool(annotations=MUTATING_ANNOTATIONS)
    async def bosh_restart(
        deployment: str,
        job: Optional[str] = None,
        index: Optional[str] = None,
        confirm: Optional[str] = None,
        wait: bool = False,
        timeout: Optional[float] = None,
        environment: Optional[str] = None,
    ) -> str:
        """Restart the processes of a deployment, a job, or one instance."""
        request = OperationRequest(
            deployment=deployment,
            job=job,
            index=index,
            environment=environment,
            confirm=confirm,
            wait=wait,
            timeout=timeout,
        )
        return respond(await operations.restart(request))

    @mcp.tool(annotations=DESTRUCTIVE_ANNOTATIONS)
    async def bosh_cck(
        deployment: str,
        confirm: Optional[str] = None,
        wait: bool = False,
        timeout: Optional[float] = None,
        environment: Optional[str] = None,
    ) -> str:
        """Scan a deployment for problems (cloud check)."""
        request = OperationRequest(
            deployment=deployment,
            environment=environment,
            confirm=confirm,
            wait=wait,
            timeout=timeout,
        )
        return respond(await operations.cloud_check(request))

    return mcp
