"""Credential resolution for the BOSH Director.

Sources are consulted in a fixed order (environment variables, the BOSH CLI
config file, then Ops Manager via ``om bosh-env``) and the first one that
yields valid credentials wins.
"""

from .config import ConfigFileCredentialSource
from .env import EnvCredentialSource
from .om import OpsManagerCredentialSource, parse_bosh_env
from .provider import CredentialProvider, CredentialSource, build_default_provider

__all__ = [
    "ConfigFileCredentialSource",
    "CredentialProvider",
    "CredentialSource",
    "EnvCredentialSource",
    "OpsManagerCredentialSource",
    "build_default_provider",
    "parse_bosh_env",
]
