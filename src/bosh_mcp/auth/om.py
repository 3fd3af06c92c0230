"""Credentials fetched from Ops Manager with ``om bosh-env``."""

from __future__ import annotations

import asyncio
import contextlib
import os
import time
from collections.abc import Mapping
from typing import Callable, Optional

import structlog

from ..common.errors import CredentialSourceError
from ..common.schemas import Credentials
from .env import credentials_from_mapping

LOGGER = structlog.get_logger("bosh_mcp.auth.om")

OM_TARGET_VAR = "OM_TARGET"
DEFAULT_CACHE_TTL_SECONDS = 300
DEFAULT_TIMEOUT_SECONDS = 60.0


def parse_bosh_env(output: str) -> Optional[Credentials]:
    """Parse ``export KEY=VALUE`` lines as printed by ``om bosh-env``."""

    values: dict[str, str] = {}
    for line in output.splitlines():
        line = line.strip()
        if line.startswith("export "):
            line = line[len("export "):]
        key, sep, value = line.partition("=")
        if not sep:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        values[key.strip()] = value
    return credentials_from_mapping(values)


class OpsManagerCredentialSource:
    """Shells out to ``om bosh-env`` and caches the result for ``cache_ttl_seconds``.

    The cache lock is held across the subprocess call so that concurrent
    resolutions inside the TTL window share a single ``om`` invocation. The
    call is bounded by ``timeout_seconds`` and the child is killed if the
    caller gives up first.
    """

    name = "om"

    def __init__(
        self,
        *,
        command: str = "om",
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        environ: Optional[Mapping[str, str]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._command = command
        self._cache_ttl = cache_ttl_seconds if cache_ttl_seconds > 0 else DEFAULT_CACHE_TTL_SECONDS
        self._timeout = timeout_seconds if timeout_seconds > 0 else DEFAULT_TIMEOUT_SECONDS
        self._environ = environ
        self._clock = clock
        self._lock = asyncio.Lock()
        self._cached: Optional[Credentials] = None
        self._cached_at = 0.0

    async def get_credentials(self, environment: Optional[str] = None) -> Optional[Credentials]:
        environ = self._environ if self._environ is not None else os.environ
        if not environ.get(OM_TARGET_VAR):
            return None

        async with self._lock:
            if self._cache_valid():
                return self._cached

            output = await self._run_bosh_env()
            creds = parse_bosh_env(output)
            if creds is None:
                LOGGER.warning("om bosh-env output did not contain complete credentials")
                return None

            self._cached = creds
            self._cached_at = self._clock()
            LOGGER.info("Fetched credentials from Ops Manager", director=creds.environment)
            return creds

    def _cache_valid(self) -> bool:
        if self._cached is None:
            return False
        return self._clock() - self._cached_at < self._cache_ttl

    async def _run_bosh_env(self) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                self._command,
                "bosh-env",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise CredentialSourceError(self.name, f"{self._command} command not found") from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), self._timeout)
        except asyncio.TimeoutError as exc:
            raise CredentialSourceError(
                self.name, f"{self._command} bosh-env timed out after {self._timeout:g}s"
            ) from exc
        finally:
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
                LOGGER.warning("Killed unfinished om bosh-env", pid=process.pid)
        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip() or f"exit status {process.returncode}"
            raise CredentialSourceError(self.name, f"{self._command} bosh-env failed: {detail}")
        return stdout.decode(errors="replace")
