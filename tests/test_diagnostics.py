from __future__ import annotations

import json

import httpx
import pytest

from bosh_mcp.server.diagnostics import Diagnostics
from bosh_mcp.server.results import AUTH_FAILED, DIRECTOR_ERROR, MISSING_REQUIRED_FIELD
from tests.utils.director import Recorder, task_json


@pytest.mark.asyncio
async def test_vms_lists_deployment_vms(make_registry):
    handler = Recorder(httpx.Response(200, json=[{"job": "router", "index": 0, "process_state": "running"}]))
    result = await Diagnostics(make_registry(handler)).vms("cf")

    assert not result.is_error
    assert result.payload["deployment"] == "cf"
    assert result.payload["vms"][0]["process_state"] == "running"
    assert json.loads(result.text)["vms"][0]["job"] == "router"


@pytest.mark.asyncio
async def test_vms_requires_deployment(make_registry):
    handler = Recorder()
    result = await Diagnostics(make_registry(handler)).vms("")
    assert result.kind == MISSING_REQUIRED_FIELD
    assert handler.requests == []


@pytest.mark.asyncio
async def test_unknown_fields_are_preserved(make_registry):
    handler = Recorder(
        httpx.Response(200, json=[{"job": "api", "index": 1, "vitals": {"cpu": {"sys": "1.0"}}, "processes": []}])
    )
    result = await Diagnostics(make_registry(handler)).instances("cf")
    assert result.payload["instances"][0]["vitals"] == {"cpu": {"sys": "1.0"}}


@pytest.mark.asyncio
async def test_tasks_with_filters(make_registry):
    handler = Recorder(httpx.Response(200, json=[{"id": 3, "state": "error", "description": "deploy"}]))
    result = await Diagnostics(make_registry(handler)).tasks(state="error", deployment="cf", limit=10)

    params = handler.requests[0].url.params
    assert params["state"] == "error"
    assert params["deployment"] == "cf"
    assert params["limit"] == "10"
    assert result.payload["tasks"][0]["id"] == 3


@pytest.mark.asyncio
async def test_task_with_output(make_registry):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/output"):
            return httpx.Response(200, text="result line\n")
        return task_json(5, "done")

    result = await Diagnostics(make_registry(handler)).task(5, output=True)
    assert result.payload["task"]["state"] == "done"
    assert result.payload["output"] == "result line\n"


@pytest.mark.asyncio
async def test_task_output_failure_is_not_fatal(make_registry):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/output"):
            return httpx.Response(404, text="no output")
        return task_json(6, "error")

    result = await Diagnostics(make_registry(handler)).task(6, output=True)
    assert not result.is_error
    assert "output" not in result.payload


@pytest.mark.asyncio
async def test_task_requires_id(make_registry):
    result = await Diagnostics(make_registry(Recorder())).task(0)
    assert result.kind == MISSING_REQUIRED_FIELD
    assert result.error == "id is required"


@pytest.mark.asyncio
async def test_task_wait_returns_final_state(make_registry):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/output"):
            return httpx.Response(200, text="")
        return task_json(7, "cancelled")

    result = await Diagnostics(make_registry(handler)).task_wait(7, timeout=5)
    assert result.payload["task"]["state"] == "cancelled"
    assert "output" not in result.payload


@pytest.mark.asyncio
async def test_inventory_reads(make_registry):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/deployments":
            return httpx.Response(200, json=[{"name": "cf", "releases": [{"name": "capi", "version": "1.0"}]}])
        if path == "/stemcells":
            return httpx.Response(200, json=[{"name": "bosh-google-kvm", "version": "621.1"}])
        if path == "/releases":
            return httpx.Response(200, json=[{"name": "capi", "release_versions": [{"version": "1.0"}]}])
        if path == "/configs":
            kind = request.url.params["type"]
            return httpx.Response(200, json=[{"id": "1", "name": "default", "type": kind, "content": "---"}])
        if path == "/deployments/cf/variables":
            return httpx.Response(200, json=[{"id": "12", "name": "/p-bosh/cf/admin_password"}])
        if path == "/locks":
            return httpx.Response(200, json=[{"type": "deployment", "resource": ["cf"], "timeout": "1700000000"}])
        return httpx.Response(404, text="not found")

    diagnostics = Diagnostics(make_registry(handler))

    assert (await diagnostics.deployments()).payload["deployments"][0]["releases"][0]["name"] == "capi"
    assert (await diagnostics.stemcells()).payload["stemcells"][0]["version"] == "621.1"
    assert (await diagnostics.releases()).payload["releases"][0]["release_versions"][0]["version"] == "1.0"
    assert (await diagnostics.cloud_config()).payload["cloud_config"][0]["type"] == "cloud"
    assert (await diagnostics.runtime_config()).payload["runtime_configs"][0]["type"] == "runtime"
    assert (await diagnostics.cpi_config()).payload["cpi_config"][0]["type"] == "cpi"
    assert (await diagnostics.variables("cf")).payload["variables"][0]["name"] == "/p-bosh/cf/admin_password"
    assert (await diagnostics.locks()).payload["locks"][0]["resource"] == ["cf"]


@pytest.mark.asyncio
async def test_director_error_is_wrapped(make_registry):
    handler = Recorder(httpx.Response(401, text="Not authorized"))
    result = await Diagnostics(make_registry(handler)).deployments()
    assert result.is_error
    assert result.kind == DIRECTOR_ERROR
    assert result.error == "failed to list deployments: API error 401: Not authorized"


@pytest.mark.asyncio
async def test_missing_credentials(make_registry):
    result = await Diagnostics(make_registry(Recorder(), environ={})).stemcells()
    assert result.kind == AUTH_FAILED
    assert result.text == "auth failed: no BOSH credentials available"
