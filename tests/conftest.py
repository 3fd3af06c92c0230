from __future__ import annotations

from typing import Callable, Optional

import httpx
import pytest
from pydantic import SecretStr

from bosh_mcp.auth.env import EnvCredentialSource
from bosh_mcp.auth.provider import CredentialProvider
from bosh_mcp.common.schemas import Credentials
from bosh_mcp.confirm.tokens import TokenStore
from bosh_mcp.director.client import DirectorClient
from bosh_mcp.server.policy import OperationPolicy
from bosh_mcp.server.registry import ToolRegistry
from tests.utils.director import BOSH_ENV, DIRECTOR_URL


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(environment=DIRECTOR_URL, client="admin", client_secret=SecretStr("s3cret"))


@pytest.fixture
def director_client(credentials):
    """Build a DirectorClient whose requests are answered by ``handler``."""

    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> DirectorClient:
        return DirectorClient(credentials, transport=httpx.MockTransport(handler))

    return _factory


@pytest.fixture
def make_registry():
    """Build a ToolRegistry backed by env credentials and a mocked Director."""

    def _factory(
        handler: Callable[[httpx.Request], httpx.Response],
        *,
        policy: Optional[OperationPolicy] = None,
        token_store: Optional[TokenStore] = None,
        environ: Optional[dict[str, str]] = None,
        wait_timeout: float = 5.0,
    ) -> ToolRegistry:
        transport = httpx.MockTransport(handler)

        def client_factory(creds: Credentials, *, timeout: float) -> DirectorClient:
            return DirectorClient(creds, timeout=timeout, transport=transport)

        provider = CredentialProvider([EnvCredentialSource(environ=BOSH_ENV if environ is None else environ)])
        return ToolRegistry(
            provider,
            policy,
            token_store=token_store,
            poll_interval=0.0,
            wait_timeout=wait_timeout,
            client_factory=client_factory,
        )

    return _factory

