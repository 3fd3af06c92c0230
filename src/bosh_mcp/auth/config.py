"""Credentials from the BOSH CLI config file (``~/.bosh/config``)."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import structlog
import yaml
from pydantic import SecretStr

from ..common.errors import CredentialSourceError
from ..common.schemas import Credentials
from ..common.settings import DEFAULT_BOSH_CONFIG_PATH

LOGGER = structlog.get_logger("bosh_mcp.auth.config")


class ConfigFileCredentialSource:
    """Reads ``environments: {name: {url, client, client_secret, ca_cert}}``.

    Without a named environment the first entry of the mapping is used. YAML
    mappings keep file order when loaded, but that is the only guarantee;
    callers with more than one entry should always pass a name.
    """

    name = "config"

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = (path or DEFAULT_BOSH_CONFIG_PATH).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    async def get_credentials(self, environment: Optional[str] = None) -> Optional[Credentials]:
        environments = self._load_environments()
        if not environments:
            return None

        if environment:
            entry = environments.get(environment)
            if entry is None:
                LOGGER.debug("Named environment not in config", path=str(self._path), environment=environment)
                return None
        else:
            environment, entry = next(iter(environments.items()))

        if not isinstance(entry, dict):
            raise CredentialSourceError(
                self.name, f"environment {environment!r} in {self._path} must be a mapping"
            )

        creds = Credentials(
            environment=_text(entry.get("url")),
            client=_text(entry.get("client")),
            client_secret=SecretStr(_text(entry.get("client_secret"))),
            ca_cert=_text(entry.get("ca_cert")) or None,
        )
        if not creds.is_valid():
            LOGGER.debug("Config environment is incomplete", path=str(self._path), environment=environment)
            return None
        return creds

    def _load_environments(self) -> dict[str, Any]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise CredentialSourceError(self.name, f"cannot read {self._path}: {exc}") from exc

        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise CredentialSourceError(self.name, f"invalid YAML in {self._path}: {exc}") from exc

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise CredentialSourceError(self.name, f"{self._path} must contain a mapping at the top level")

        environments = data.get("environments")
        if environments is None:
            return {}
        if not isinstance(environments, dict):
            raise CredentialSourceError(self.name, f"'environments' in {self._path} must be a mapping")
        return environments


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)
