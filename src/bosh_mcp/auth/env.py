"""Credentials from ``BOSH_*`` environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Optional

from pydantic import SecretStr

from ..common.schemas import Credentials

ENVIRONMENT_VAR = "BOSH_ENVIRONMENT"
CLIENT_VAR = "BOSH_CLIENT"
CLIENT_SECRET_VAR = "BOSH_CLIENT_SECRET"
CA_CERT_VAR = "BOSH_CA_CERT"


def credentials_from_mapping(values: Mapping[str, str]) -> Optional[Credentials]:
    """Build credentials from ``BOSH_*`` keys, or None if a required key is empty."""

    creds = Credentials(
        environment=values.get(ENVIRONMENT_VAR, ""),
        client=values.get(CLIENT_VAR, ""),
        client_secret=SecretStr(values.get(CLIENT_SECRET_VAR, "")),
        ca_cert=values.get(CA_CERT_VAR) or None,
    )
    if not creds.is_valid():
        return None
    return creds


class EnvCredentialSource:
    """Reads the four ``BOSH_*`` variables. The named environment is ignored."""

    name = "env"

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ

    async def get_credentials(self, environment: Optional[str] = None) -> Optional[Credentials]:
        environ = self._environ if self._environ is not None else os.environ
        return credentials_from_mapping(environ)
