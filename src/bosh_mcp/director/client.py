"""Async HTTP client for the BOSH Director REST API."""

from __future__ import annotations

import asyncio
import re
import ssl
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Type, TypeVar
from urllib.parse import quote, urlparse

import httpx
import structlog
from opentelemetry import trace
from pydantic import BaseModel

from ..common.errors import (
    APIError,
    CredentialSourceError,
    TaskLocationMalformed,
    TaskLocationMissing,
    TaskWaitTimeout,
)
from ..common.schemas import (
    VM,
    ConfigEntry,
    Credentials,
    Deployment,
    Instance,
    Lock,
    Release,
    Stemcell,
    Task,
    Variable,
)

LOGGER = structlog.get_logger("bosh_mcp.director.client")
TRACER = trace.get_tracer("bosh_mcp.director")

DEFAULT_DIRECTOR_PORT = 25555
DEFAULT_TASK_WAIT_TIMEOUT = 600.0
DEFAULT_POLL_INTERVAL = 2.0
TASK_ACCEPTED_STATUSES = frozenset({202, 302})

_TASK_LOCATION_RE = re.compile(r"/tasks/(\d+)/?$")
_PEM_PREFIX = "-----BEGIN"

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(slots=True)
class TaskFilter:
    """Filters accepted by ``GET /tasks``."""

    state: Optional[str] = None
    deployment: Optional[str] = None
    limit: int = 0

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.state:
            params["state"] = self.state
        if self.deployment:
            params["deployment"] = self.deployment
        if self.limit > 0:
            params["limit"] = str(self.limit)
        return params


def director_url(environment: str) -> str:
    """Normalise a Director address the way the BOSH CLI does.

    A bare host such as ``10.0.0.5`` (what ``om bosh-env`` prints) becomes
    ``https://10.0.0.5:25555``.
    """

    value = environment.strip().rstrip("/")
    if "://" not in value:
        value = f"https://{value}"
    parsed = urlparse(value)
    if parsed.port is None and parsed.scheme == "https" and not parsed.path:
        value = f"{value}:{DEFAULT_DIRECTOR_PORT}"
    return value


def build_tls_verify(ca_cert: Optional[str]) -> ssl.SSLContext | bool:
    """Pin verification to ``ca_cert`` (PEM text or a file path); disabled without one."""

    if not ca_cert:
        return False
    try:
        if ca_cert.lstrip().startswith(_PEM_PREFIX):
            return ssl.create_default_context(cadata=ca_cert)
        path = Path(ca_cert).expanduser()
        return ssl.create_default_context(cafile=str(path))
    except FileNotFoundError as exc:
        raise CredentialSourceError("ca_cert", f"failed to read CA cert {ca_cert}") from exc
    except (ssl.SSLError, OSError, ValueError) as exc:
        raise CredentialSourceError("ca_cert", f"invalid CA cert: {exc}") from exc


def parse_task_location(location: str) -> int:
    match = _TASK_LOCATION_RE.search(urlparse(location).path)
    if not match:
        raise TaskLocationMalformed(location)
    return int(match.group(1))


def _segment(value: str) -> str:
    return quote(value, safe="")


class DirectorClient:
    """Basic-auth client for one Director.

    Reads return parsed models. State-changing calls never follow redirects:
    the Director answers them with ``302``/``202`` and ``Location: /tasks/{id}``
    and the task id is returned to the caller.
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._credentials = credentials
        self._base_url = director_url(credentials.environment)
        verify = build_tls_verify(credentials.ca_cert)
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            auth=httpx.BasicAuth(credentials.client, credentials.client_secret.get_secret_value()),
            headers={"Accept": "application/json"},
            verify=verify,
            follow_redirects=False,
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> "DirectorClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, str]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        with TRACER.start_as_current_span("director.request") as span:
            span.set_attribute("http.method", method)
            span.set_attribute("bosh.path", path)
            response = await self._http.request(method, path, params=params, headers=headers)
            span.set_attribute("http.status_code", response.status_code)
        LOGGER.debug("Director request", method=method, path=path, status=response.status_code)
        return response

    async def _get(self, path: str, params: Optional[dict[str, str]] = None) -> httpx.Response:
        response = await self._send("GET", path, params=params)
        if not response.is_success:
            # redirects are not followed; any non-2xx read is an error
            location = response.headers.get("Location")
            body = response.text or (f"redirected to {location}" if location else "")
            raise APIError(response.status_code, body)
        return response

    async def _get_json(self, path: str, params: Optional[dict[str, str]] = None) -> Any:
        response = await self._get(path, params)
        return response.json()

    async def _get_list(
        self, path: str, model: Type[ModelT], params: Optional[dict[str, str]] = None
    ) -> list[ModelT]:
        payload = await self._get_json(path, params)
        return [model.model_validate(item) for item in payload or []]

    async def _submit_task(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, str]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> int:
        response = await self._send(method, path, params=params, headers=headers)
        if response.status_code not in TASK_ACCEPTED_STATUSES:
            body = response.text or f"expected a redirect to a task, got {response.status_code}"
            raise APIError(response.status_code, body)
        location = response.headers.get("Location")
        if not location:
            raise TaskLocationMissing(response.status_code)
        task_id = parse_task_location(location)
        LOGGER.info("Director accepted task", method=method, path=path, task_id=task_id)
        return task_id

    # Reads

    async def list_vms(self, deployment: str) -> list[VM]:
        return await self._get_list(f"/deployments/{_segment(deployment)}/vms", VM)

    async def list_instances(self, deployment: str) -> list[Instance]:
        return await self._get_list(
            f"/deployments/{_segment(deployment)}/instances", Instance, {"format": "full"}
        )

    async def list_tasks(self, task_filter: Optional[TaskFilter] = None) -> list[Task]:
        params = (task_filter or TaskFilter()).to_params()
        return await self._get_list("/tasks", Task, params or None)

    async def get_task(self, task_id: int) -> Task:
        payload = await self._get_json(f"/tasks/{int(task_id)}")
        return Task.model_validate(payload)

    async def get_task_output(self, task_id: int, output_type: str = "result") -> str:
        response = await self._get(f"/tasks/{int(task_id)}/output", {"type": output_type or "result"})
        return response.text

    async def list_deployments(self) -> list[Deployment]:
        return await self._get_list("/deployments", Deployment)

    async def list_stemcells(self) -> list[Stemcell]:
        return await self._get_list("/stemcells", Stemcell)

    async def list_releases(self) -> list[Release]:
        return await self._get_list("/releases", Release)

    async def get_cloud_config(self) -> list[ConfigEntry]:
        return await self._get_configs("cloud")

    async def get_runtime_configs(self) -> list[ConfigEntry]:
        return await self._get_configs("runtime")

    async def get_cpi_config(self) -> list[ConfigEntry]:
        return await self._get_configs("cpi")

    async def _get_configs(self, config_type: str) -> list[ConfigEntry]:
        return await self._get_list("/configs", ConfigEntry, {"type": config_type, "latest": "true"})

    async def list_variables(self, deployment: str) -> list[Variable]:
        return await self._get_list(f"/deployments/{_segment(deployment)}/variables", Variable)

    async def list_locks(self) -> list[Lock]:
        return await self._get_list("/locks", Lock)

    # State-changing calls; each returns the Director task id.

    async def delete_deployment(self, deployment: str, force: bool = False) -> int:
        params = {"force": "true"} if force else None
        return await self._submit_task("DELETE", f"/deployments/{_segment(deployment)}", params=params)

    async def change_job_state(
        self,
        deployment: str,
        job: Optional[str],
        state: str,
        index: Optional[str] = None,
    ) -> int:
        if index and not job:
            raise ValueError("an instance index requires a job name")
        path = f"/deployments/{_segment(deployment)}/jobs/{_segment(job) if job else '*'}"
        if index:
            path = f"{path}/{_segment(str(index))}"
        return await self._submit_task(
            "PUT",
            path,
            params={"state": state},
            headers={"Content-Type": "text/yaml"},
        )

    async def recreate(self, deployment: str, job: Optional[str] = None, index: Optional[str] = None) -> int:
        return await self.change_job_state(deployment, job, "recreate", index)

    async def cloud_check(self, deployment: str) -> int:
        return await self._submit_task(
            "POST",
            f"/deployments/{_segment(deployment)}/scans",
            headers={"Content-Type": "application/json"},
        )

    async def wait_for_task(
        self,
        task_id: int,
        timeout: float = DEFAULT_TASK_WAIT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> Task:
        """Poll ``GET /tasks/{id}`` until the task is done, errored or cancelled.

        Raises ``TaskWaitTimeout`` carrying the last snapshot once ``timeout``
        seconds have passed since entry. Failed polls propagate immediately.
        """

        loop = asyncio.get_running_loop()
        deadline = loop.time() + max(0.0, timeout)
        polls = 0
        with TRACER.start_as_current_span("director.wait_for_task") as span:
            span.set_attribute("bosh.task_id", int(task_id))
            while True:
                task = await self.get_task(task_id)
                polls += 1
                if task.is_terminal:
                    span.set_attribute("bosh.task_state", task.state)
                    LOGGER.info("Task finished", task_id=task.id, state=task.state, polls=polls)
                    return task
                remaining = deadline - loop.time()
                if remaining <= 0:
                    LOGGER.warning("Task wait timed out", task_id=task.id, state=task.state, polls=polls)
                    raise TaskWaitTimeout(task, timeout)
                await asyncio.sleep(min(poll_interval, remaining))
