"""Credential provider chain: env vars > config file > Ops Manager."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol, Sequence

import structlog

from ..common.errors import CredentialSourceError, NoCredentialsAvailable
from ..common.schemas import Credentials
from .config import ConfigFileCredentialSource
from .env import EnvCredentialSource
from .om import DEFAULT_CACHE_TTL_SECONDS, DEFAULT_TIMEOUT_SECONDS, OpsManagerCredentialSource

LOGGER = structlog.get_logger("bosh_mcp.auth.provider")


class CredentialSource(Protocol):
    name: str

    async def get_credentials(self, environment: Optional[str] = None) -> Optional[Credentials]:
        """Return credentials, None to defer to the next source, or raise."""


class CredentialProvider:
    """Tries each source in order and returns the first valid credentials."""

    def __init__(self, sources: Sequence[CredentialSource]) -> None:
        self._sources = list(sources)

    @property
    def sources(self) -> list[CredentialSource]:
        return list(self._sources)

    async def resolve(self, environment: Optional[str] = None) -> Credentials:
        environment = environment or None
        for source in self._sources:
            try:
                creds = await source.get_credentials(environment)
            except CredentialSourceError:
                raise
            except Exception as exc:  # noqa: BLE001 - normalised for callers
                raise CredentialSourceError(source.name, str(exc) or exc.__class__.__name__) from exc
            if creds is not None:
                LOGGER.debug(
                    "Resolved credentials",
                    source=source.name,
                    environment=environment,
                    director=creds.environment,
                )
                return creds
        raise NoCredentialsAvailable()


def build_default_provider(
    *,
    config_path: Optional[Path] = None,
    om_command: str = "om",
    om_cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
    om_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> CredentialProvider:
    return CredentialProvider(
        [
            EnvCredentialSource(),
            ConfigFileCredentialSource(config_path),
            OpsManagerCredentialSource(
                command=om_command,
                cache_ttl_seconds=om_cache_ttl_seconds,
                timeout_seconds=om_timeout_seconds,
            ),
        ]
    )
