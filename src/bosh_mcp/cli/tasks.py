"""Command-line utilities for inspecting BOSH Director tasks."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from ..auth.provider import build_default_provider
from ..common.errors import BoshMCPError, TaskWaitTimeout
from ..common.schemas import Task
from ..common.settings import ServerSettings
from ..director.client import DirectorClient, TaskFilter


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect BOSH Director tasks")
    parser.add_argument("--environment", default=None, help="BOSH CLI config environment name")

    subparsers = parser.add_subparsers(dest="command", required=True)

    recent_parser = subparsers.add_parser("recent", help="List recent tasks")
    recent_parser.add_argument("--state", default=None, help="Only tasks in this state")
    recent_parser.add_argument("--deployment", default=None, help="Only tasks for this deployment")
    recent_parser.add_argument("--limit", type=int, default=20, help="Number of tasks to fetch")
    recent_parser.add_argument("--json", action="store_true", help="Output raw JSON")

    wait_parser = subparsers.add_parser("wait", help="Wait for a task to finish")
    wait_parser.add_argument("task_id", type=int, help="Director task id")
    wait_parser.add_argument("--timeout", type=float, default=None, help="Seconds to wait before giving up")
    wait_parser.add_argument("--interval", type=float, default=None, help="Seconds between polls")
    wait_parser.add_argument("--json", action="store_true", help="Output raw JSON")

    return parser.parse_args(argv)


async def open_client(environment: Optional[str], settings: ServerSettings) -> DirectorClient:
    provider = build_default_provider(
        config_path=settings.bosh_config_path,
        om_command=settings.om_command,
        om_cache_ttl_seconds=settings.om_cache_ttl_seconds,
        om_timeout_seconds=settings.om_timeout_seconds,
    )
    credentials = await provider.resolve(environment)
    return DirectorClient(credentials, timeout=settings.request_timeout_seconds)


async def fetch_recent_tasks(
    environment: Optional[str],
    task_filter: TaskFilter,
    settings: ServerSettings,
) -> list[Task]:
    async with await open_client(environment, settings) as client:
        return await client.list_tasks(task_filter)


async def wait_for_task(
    environment: Optional[str],
    task_id: int,
    timeout: float,
    interval: float,
    settings: ServerSettings,
) -> Task:
    async with await open_client(environment, settings) as client:
        return await client.wait_for_task(task_id, timeout, interval)


def format_timestamp(value: int | None) -> str:
    if not value:
        return "-"
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def task_row(task: Task) -> dict[str, str]:
    return {
        "id": str(task.id),
        "state": task.state,
        "deployment": task.deployment or "-",
        "user": task.user or "-",
        "started_at": format_timestamp(task.started_at),
        "description": task.description or "-",
    }


def print_table(tasks: list[Task]) -> None:
    headers = ["id", "state", "deployment", "user", "started_at", "description"]
    widths = {header: len(header) for header in headers}
    rows = [task_row(task) for task in tasks]
    for row in rows:
        for key, value in row.items():
            widths[key] = max(widths[key], len(value))

    print("  ".join(key.ljust(widths[key]) for key in headers))
    print("  ".join("-" * widths[key] for key in headers))
    for row in rows:
        print("  ".join(row[key].ljust(widths[key]) for key in headers))


def task_payload(task: Task) -> dict[str, Any]:
    return task.model_dump(mode="json", exclude_none=True)


async def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = ServerSettings()
    try:
        if args.command == "recent":
            task_filter = TaskFilter(state=args.state, deployment=args.deployment, limit=args.limit)
            tasks = await fetch_recent_tasks(args.environment, task_filter, settings)
            if args.json:
                print(json.dumps([task_payload(task) for task in tasks], indent=2))
            else:
                print_table(tasks)
        elif args.command == "wait":
            timeout = args.timeout if args.timeout is not None else settings.task_wait_timeout_seconds
            interval = args.interval if args.interval is not None else settings.task_poll_interval_seconds
            task = await wait_for_task(args.environment, args.task_id, timeout, interval, settings)
            if args.json:
                print(json.dumps(task_payload(task), indent=2))
            else:
                print(f"Task {task.id}: {task.state}")
                if task.result:
                    print(task.result)
            if task.state != "done":
                return 1
    except TaskWaitTimeout as exc:
        print(f"error: {exc} (last state: {exc.task.state})", file=sys.stderr)
        return 2
    except BoshMCPError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


def main() -> None:
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
