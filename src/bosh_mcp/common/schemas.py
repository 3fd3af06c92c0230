"""Data models for BOSH Director resources and bosh-mcp credentials."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr


TASK_STATES = frozenset(
    {"queued", "processing", "done", "error", "cancelled", "timeout", "cancelling"}
)
TERMINAL_TASK_STATES = frozenset({"done", "error", "cancelled"})


class Credentials(BaseModel):
    """Connection details for a single Director."""

    model_config = ConfigDict(frozen=True)

    environment: str = ""
    client: str = ""
    client_secret: SecretStr = SecretStr("")
    ca_cert: Optional[str] = None

    def is_valid(self) -> bool:
        return bool(self.environment and self.client and self.client_secret.get_secret_value())


class DirectorModel(BaseModel):
    """Base for Director payloads; unknown fields are kept so nothing is lost on output."""

    model_config = ConfigDict(extra="allow")


class Task(DirectorModel):
    id: int
    state: str
    description: str = ""
    result: Optional[str] = None
    user: Optional[str] = None
    deployment: Optional[str] = None
    timestamp: Optional[int] = None
    started_at: Optional[int] = None
    context_id: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_TASK_STATES


class VM(DirectorModel):
    agent_id: Optional[str] = None
    cid: Optional[str] = None
    job: Optional[str] = None
    index: Optional[int] = None
    id: Optional[str] = None
    az: Optional[str] = None
    ips: list[str] = Field(default_factory=list)
    vm_type: Optional[str] = None
    process_state: Optional[str] = None
    active: Optional[bool] = None


class InstanceProcess(DirectorModel):
    name: str
    state: Optional[str] = None


class Instance(VM):
    disk_cid: Optional[str] = None
    bootstrap: Optional[bool] = None
    processes: list[InstanceProcess] = Field(default_factory=list)


class NamedVersion(DirectorModel):
    name: str
    version: Optional[str] = None


class Deployment(DirectorModel):
    name: str
    releases: list[NamedVersion] = Field(default_factory=list)
    stemcells: list[NamedVersion] = Field(default_factory=list)
    cloud_config: Optional[str] = None
    teams: list[str] = Field(default_factory=list)


class Stemcell(DirectorModel):
    name: str
    version: str
    operating_system: Optional[str] = None
    cid: Optional[str] = None
    cpi: Optional[str] = None
    deployments: list[Any] = Field(default_factory=list)


class ReleaseVersion(DirectorModel):
    version: str
    commit_hash: Optional[str] = None
    uncommitted_changes: Optional[bool] = None
    currently_deployed: Optional[bool] = None
    job_names: list[str] = Field(default_factory=list)


class Release(DirectorModel):
    name: str
    release_versions: list[ReleaseVersion] = Field(default_factory=list)


class ConfigEntry(DirectorModel):
    """Cloud, runtime or CPI config as returned by ``GET /configs``."""

    id: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    content: Optional[str] = None
    created_at: Optional[str] = None
    team: Optional[str] = None


class Variable(DirectorModel):
    id: Optional[str] = None
    name: str


class Lock(DirectorModel):
    type: str
    resource: list[str] = Field(default_factory=list)
    timeout: Optional[str] = None
    task_id: Optional[str] = None
