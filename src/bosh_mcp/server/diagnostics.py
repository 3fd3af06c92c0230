"""Read-only tools: VMs, instances, tasks, and Director inventory."""

from __future__ import annotations

from typing import Any, Optional

from ..director.client import DirectorClient, TaskFilter
from .registry import ToolRegistry, optional_task_output
from .results import ToolResult, dump, missing_field


class Diagnostics:
    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    async def vms(self, deployment: str, environment: Optional[str] = None) -> ToolResult:
        if not deployment:
            return missing_field("deployment")

        async def call(client: DirectorClient) -> dict[str, Any]:
            return {"deployment": deployment, "vms": dump(await client.list_vms(deployment))}

        return await self._registry.run(environment, "list VMs", call)

    async def instances(self, deployment: str, environment: Optional[str] = None) -> ToolResult:
        if not deployment:
            return missing_field("deployment")

        async def call(client: DirectorClient) -> dict[str, Any]:
            return {"deployment": deployment, "instances": dump(await client.list_instances(deployment))}

        return await self._registry.run(environment, "list instances", call)

    async def tasks(
        self,
        state: Optional[str] = None,
        deployment: Optional[str] = None,
        limit: int = 0,
        environment: Optional[str] = None,
    ) -> ToolResult:
        task_filter = TaskFilter(state=state or None, deployment=deployment or None, limit=limit or 0)

        async def call(client: DirectorClient) -> dict[str, Any]:
            return {"tasks": dump(await client.list_tasks(task_filter))}

        return await self._registry.run(environment, "list tasks", call)

    async def task(self, task_id: int, output: bool = False, environment: Optional[str] = None) -> ToolResult:
        if not task_id:
            return missing_field("id")

        async def call(client: DirectorClient) -> dict[str, Any]:
            task = await client.get_task(task_id)
            payload: dict[str, Any] = {"task": dump(task)}
            if output:
                result = await optional_task_output(client, task_id)
                if result is not None:
                    payload["output"] = result
            return payload

        return await self._registry.run(environment, "get task", call)

    async def task_wait(
        self,
        task_id: int,
        timeout: Optional[float] = None,
        environment: Optional[str] = None,
    ) -> ToolResult:
        """Block until the task reaches done, error or cancelled."""

        if not task_id:
            return missing_field("id")
        registry = self._registry
        wait_timeout = timeout if timeout and timeout > 0 else registry.wait_timeout

        async def call(client: DirectorClient) -> dict[str, Any]:
            task = await client.wait_for_task(task_id, wait_timeout, registry.poll_interval)
            payload: dict[str, Any] = {"task": dump(task)}
            if task.state in ("done", "error"):
                result = await optional_task_output(client, task_id)
                if result is not None:
                    payload["output"] = result
            return payload

        return await registry.run(environment, "wait for task", call)

    async def deployments(self, environment: Optional[str] = None) -> ToolResult:
        async def call(client: DirectorClient) -> dict[str, Any]:
            return {"deployments": dump(await client.list_deployments())}

        return await self._registry.run(environment, "list deployments", call)

    async def stemcells(self, environment: Optional[str] = None) -> ToolResult:
        async def call(client: DirectorClient) -> dict[str, Any]:
            return {"stemcells": dump(await client.list_stemcells())}

        return await self._registry.run(environment, "list stemcells", call)

    async def releases(self, environment: Optional[str] = None) -> ToolResult:
        async def call(client: DirectorClient) -> dict[str, Any]:
            return {"releases": dump(await client.list_releases())}

        return await self._registry.run(environment, "list releases", call)

    async def cloud_config(self, environment: Optional[str] = None) -> ToolResult:
        async def call(client: DirectorClient) -> dict[str, Any]:
            return {"cloud_config": dump(await client.get_cloud_config())}

        return await self._registry.run(environment, "get cloud config", call)

    async def runtime_config(self, environment: Optional[str] = None) -> ToolResult:
        async def call(client: DirectorClient) -> dict[str, Any]:
            return {"runtime_configs": dump(await client.get_runtime_configs())}

        return await self._registry.run(environment, "get runtime configs", call)

    async def cpi_config(self, environment: Optional[str] = None) -> ToolResult:
        async def call(client: DirectorClient) -> dict[str, Any]:
            return {"cpi_config": dump(await client.get_cpi_config())}

        return await self._registry.run(environment, "get CPI config", call)

    async def variables(self, deployment: str, environment: Optional[str] = None) -> ToolResult:
        if not deployment:
            return missing_field("deployment")

        async def call(client: DirectorClient) -> dict[str, Any]:
            return {"deployment": deployment, "variables": dump(await client.list_variables(deployment))}

        return await self._registry.run(environment, "list variables", call)

    async def locks(self, environment: Optional[str] = None) -> ToolResult:
        async def call(client: DirectorClient) -> dict[str, Any]:
            return {"locks": dump(await client.list_locks())}

        return await self._registry.run(environment, "list locks", call)

