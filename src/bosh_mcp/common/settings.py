"""Runtime settings for the bosh-mcp server and CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BOSH_CONFIG_PATH = Path("~/.bosh/config")


def env_field(default, env_name: str):
    return Field(default, validation_alias=env_name)


class ServerSettings(BaseSettings):
    """Settings read from ``BOSH_MCP_*`` environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    policy_path: Optional[Path] = env_field(None, "BOSH_MCP_CONFIG")
    bosh_config_path: Path = env_field(DEFAULT_BOSH_CONFIG_PATH, "BOSH_MCP_BOSH_CONFIG")
    om_command: str = env_field("om", "BOSH_MCP_OM_COMMAND")
    om_cache_ttl_seconds: int = env_field(300, "BOSH_MCP_OM_CACHE_TTL")
    om_timeout_seconds: float = env_field(60.0, "BOSH_MCP_OM_TIMEOUT")
    request_timeout_seconds: float = env_field(30.0, "BOSH_MCP_REQUEST_TIMEOUT")
    task_poll_interval_seconds: float = env_field(2.0, "BOSH_MCP_TASK_POLL_INTERVAL")
    task_wait_timeout_seconds: int = env_field(600, "BOSH_MCP_TASK_WAIT_TIMEOUT")
    token_cleanup_interval_seconds: int = env_field(60, "BOSH_MCP_TOKEN_CLEANUP_INTERVAL")
    log_level: str = env_field("INFO", "BOSH_MCP_LOG_LEVEL")
    otel_exporter_endpoint: Optional[str] = env_field(None, "BOSH_MCP_OTEL_EXPORTER_ENDPOINT")
    otel_exporter_headers: Optional[str] = env_field(None, "BOSH_MCP_OTEL_EXPORTER_HEADERS")
    otel_sampler_ratio: float = env_field(0.1, "BOSH_MCP_OTEL_SAMPLER_RATIO")

    @field_validator("policy_path", mode="before")
    @classmethod
    def _blank_policy_path(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("bosh_config_path", mode="after")
    @classmethod
    def _expand_bosh_config(cls, value: Path) -> Path:
        return value.expanduser()
