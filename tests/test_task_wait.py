from __future__ import annotations

import httpx
import pytest

from bosh_mcp.common.errors import APIError, TaskWaitTimeout
from tests.utils.director import Recorder, task_json


@pytest.mark.asyncio
async def test_wait_returns_first_terminal_snapshot(director_client):
    handler = Recorder(
        task_json(7, "queued"),
        task_json(7, "processing"),
        task_json(7, "done", result="deleted deployment 'cf'"),
    )
    async with director_client(handler) as client:
        task = await client.wait_for_task(7, timeout=5, poll_interval=0)

    assert task.state == "done"
    assert task.result == "deleted deployment 'cf'"
    assert len(handler.requests) == 3
    assert all(request.url.path == "/tasks/7" for request in handler.requests)


@pytest.mark.asyncio
@pytest.mark.parametrize("state", ["error", "cancelled"])
async def test_wait_stops_on_failed_states(director_client, state):
    handler = Recorder(task_json(8, "processing"), task_json(8, state))
    async with director_client(handler) as client:
        task = await client.wait_for_task(8, timeout=5, poll_interval=0)

    assert task.state == state
    assert len(handler.requests) == 2


@pytest.mark.asyncio
async def test_wait_timeout_carries_last_snapshot(director_client):
    handler = Recorder(task_json(9, "processing"))
    async with director_client(handler) as client:
        with pytest.raises(TaskWaitTimeout) as exc_info:
            await client.wait_for_task(9, timeout=0, poll_interval=0)

    assert exc_info.value.task.id == 9
    assert exc_info.value.task.state == "processing"
    assert "timeout" in str(exc_info.value)
    assert len(handler.requests) == 1


@pytest.mark.asyncio
async def test_wait_timeout_after_several_polls(director_client):
    handler = Recorder(task_json(10, "processing"))
    async with director_client(handler) as client:
        with pytest.raises(TaskWaitTimeout):
            await client.wait_for_task(10, timeout=0.05, poll_interval=0.01)

    assert len(handler.requests) >= 2


@pytest.mark.asyncio
async def test_wait_propagates_poll_errors(director_client):
    handler = Recorder(task_json(11, "processing"), httpx.Response(500, text="director down"))
    async with director_client(handler) as client:
        with pytest.raises(APIError):
            await client.wait_for_task(11, timeout=5, poll_interval=0)
