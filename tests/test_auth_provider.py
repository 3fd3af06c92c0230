from __future__ import annotations

import pytest
from pydantic import SecretStr

from bosh_mcp.auth.config import ConfigFileCredentialSource
from bosh_mcp.auth.env import EnvCredentialSource
from bosh_mcp.auth.provider import CredentialProvider, build_default_provider
from bosh_mcp.common.errors import CredentialSourceError, NoCredentialsAvailable
from bosh_mcp.common.schemas import Credentials


class StaticSource:
    def __init__(self, name: str, creds: Credentials | None = None, error: Exception | None = None) -> None:
        self.name = name
        self._creds = creds
        self._error = error
        self.calls: list[str | None] = []

    async def get_credentials(self, environment=None):  # noqa: ANN001
        self.calls.append(environment)
        if self._error is not None:
            raise self._error
        return self._creds


def _creds(url: str) -> Credentials:
    return Credentials(environment=url, client="admin", client_secret=SecretStr("secret"))


@pytest.mark.asyncio
async def test_provider_returns_first_available_source():
    env = StaticSource("env", _creds("https://from-env"))
    config = StaticSource("config", _creds("https://from-config"))
    provider = CredentialProvider([env, config])

    creds = await provider.resolve()
    assert creds.environment == "https://from-env"
    assert config.calls == []


@pytest.mark.asyncio
async def test_provider_falls_through_to_later_sources():
    env = StaticSource("env")
    config = StaticSource("config", _creds("https://from-config"))
    provider = CredentialProvider([env, config])

    creds = await provider.resolve("prod")
    assert creds.environment == "https://from-config"
    assert env.calls == ["prod"]
    assert config.calls == ["prod"]


@pytest.mark.asyncio
async def test_provider_passes_none_for_blank_environment():
    source = StaticSource("env", _creds("https://director"))
    await CredentialProvider([source]).resolve("")
    assert source.calls == [None]


@pytest.mark.asyncio
async def test_provider_raises_when_nothing_matches():
    provider = CredentialProvider([StaticSource("env"), StaticSource("config")])
    with pytest.raises(NoCredentialsAvailable):
        await provider.resolve()


@pytest.mark.asyncio
async def test_provider_stops_at_source_error():
    failing = StaticSource("config", error=CredentialSourceError("config", "invalid YAML"))
    later = StaticSource("om", _creds("https://from-om"))
    provider = CredentialProvider([failing, later])

    with pytest.raises(CredentialSourceError, match="invalid YAML"):
        await provider.resolve()
    assert later.calls == []


@pytest.mark.asyncio
async def test_provider_wraps_unexpected_errors():
    provider = CredentialProvider([StaticSource("om", error=RuntimeError("boom"))])
    with pytest.raises(CredentialSourceError) as exc_info:
        await provider.resolve()
    assert exc_info.value.source == "om"
    assert "boom" in str(exc_info.value)


@pytest.mark.asyncio
async def test_env_wins_over_config_file(tmp_path):
    config_path = tmp_path / "config"
    config_path.write_text(
        "environments:\n  prod:\n    url: https://from-config\n    client: admin\n    client_secret: c\n",
        encoding="utf-8",
    )
    env = EnvCredentialSource(
        environ={"BOSH_ENVIRONMENT": "https://from-env", "BOSH_CLIENT": "admin", "BOSH_CLIENT_SECRET": "e"}
    )
    provider = CredentialProvider([env, ConfigFileCredentialSource(config_path)])

    assert (await provider.resolve("prod")).environment == "https://from-env"

    provider = CredentialProvider([EnvCredentialSource(environ={}), ConfigFileCredentialSource(config_path)])
    assert (await provider.resolve("prod")).environment == "https://from-config"


def test_default_provider_order(tmp_path):
    provider = build_default_provider(config_path=tmp_path / "config", om_command="om")
    assert [source.name for source in provider.sources] == ["env", "config", "om"]
