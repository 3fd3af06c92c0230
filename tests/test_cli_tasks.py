from __future__ import annotations

import json

import pytest

from bosh_mcp.cli import tasks
from bosh_mcp.common.errors import NoCredentialsAvailable, TaskWaitTimeout
from bosh_mcp.common.schemas import Task


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("BOSH_MCP_TASK_WAIT_TIMEOUT", "BOSH_MCP_TASK_POLL_INTERVAL"):
        monkeypatch.delenv(name, raising=False)


def _sample_tasks() -> list[Task]:
    return [
        Task(id=101, state="done", description="create deployment", deployment="cf", user="admin", started_at=1700000000),
        Task(id=102, state="processing", description="run errand smoke-tests", deployment="cf"),
    ]


@pytest.mark.asyncio
async def test_cli_tasks_recent_plain(monkeypatch, capsys):
    async def fake_recent(environment, task_filter, settings):  # noqa: ANN001
        assert environment is None
        assert task_filter.limit == 3
        assert task_filter.state is None
        return _sample_tasks()

    monkeypatch.setattr(tasks, "fetch_recent_tasks", fake_recent)

    assert await tasks.run(["recent", "--limit", "3"]) == 0
    output = capsys.readouterr().out
    assert "description" in output
    assert "create deployment" in output
    assert "2023-11-14 22:13:20" in output


@pytest.mark.asyncio
async def test_cli_tasks_recent_json(monkeypatch, capsys):
    async def fake_recent(environment, task_filter, settings):  # noqa: ANN001
        assert environment == "prod"
        assert task_filter.state == "processing"
        assert task_filter.deployment == "cf"
        return _sample_tasks()[1:]

    monkeypatch.setattr(tasks, "fetch_recent_tasks", fake_recent)

    code = await tasks.run(
        ["--environment", "prod", "recent", "--state", "processing", "--deployment", "cf", "--json"]
    )
    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload == [
        {"id": 102, "state": "processing", "description": "run errand smoke-tests", "deployment": "cf"}
    ]


@pytest.mark.asyncio
async def test_cli_tasks_wait_uses_settings_defaults(monkeypatch, capsys):
    seen = {}

    async def fake_wait(environment, task_id, timeout, interval, settings):  # noqa: ANN001
        seen.update(task_id=task_id, timeout=timeout, interval=interval)
        return Task(id=task_id, state="done", description="delete deployment", result="ok")

    monkeypatch.setattr(tasks, "wait_for_task", fake_wait)

    assert await tasks.run(["wait", "55"]) == 0
    assert seen == {"task_id": 55, "timeout": 600, "interval": 2.0}
    output = capsys.readouterr().out
    assert "Task 55: done" in output


@pytest.mark.asyncio
async def test_cli_tasks_wait_failed_task_exit_code(monkeypatch):
    async def fake_wait(environment, task_id, timeout, interval, settings):  # noqa: ANN001
        assert timeout == 30
        assert interval == 1
        return Task(id=task_id, state="error", description="deploy")

    monkeypatch.setattr(tasks, "wait_for_task", fake_wait)
    assert await tasks.run(["wait", "56", "--timeout", "30", "--interval", "1"]) == 1


@pytest.mark.asyncio
async def test_cli_tasks_wait_timeout(monkeypatch, capsys):
    async def fake_wait(environment, task_id, timeout, interval, settings):  # noqa: ANN001
        raise TaskWaitTimeout(Task(id=task_id, state="processing"), timeout)

    monkeypatch.setattr(tasks, "wait_for_task", fake_wait)
    assert await tasks.run(["wait", "57", "--timeout", "1"]) == 2
    assert "last state: processing" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_cli_tasks_reports_missing_credentials(monkeypatch, capsys):
    async def fake_recent(environment, task_filter, settings):  # noqa: ANN001
        raise NoCredentialsAvailable()

    monkeypatch.setattr(tasks, "fetch_recent_tasks", fake_recent)
    assert await tasks.run(["recent"]) == 1
    assert "no BOSH credentials available" in capsys.readouterr().err


def test_format_timestamp():
    assert tasks.format_timestamp(None) == "-"
    assert tasks.format_timestamp(0) == "-"
    assert tasks.format_timestamp(1700000000) == "2023-11-14 22:13:20"


def test_environment_option_names_config_entry(capsys, monkeypatch):
    monkeypatch.setenv("COLUMNS", "200")
    with pytest.raises(SystemExit):
        tasks.parse_args(["--help"])
    assert "BOSH CLI config environment name" in capsys.readouterr().out
    assert tasks.parse_args(["--environment", "prod", "recent"]).environment == "prod"
