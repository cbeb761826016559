"""Service declaration models."""

import re
from pathlib import Path
from typing import Dict, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from svcadm.constants import NAME_PATTERN, RESTART_POLICY_PATTERN


Port = int

ServiceName = Literal[
    "nginx",
    "gitlab",
    "mattermost",
    "sonarqube",
    "postgresql",
    "clamav",
    "trivy",
    "minio",
    "vault",
]

_NAME_RE = re.compile(NAME_PATTERN)


class ImageRef(BaseModel):
    """Image repository and tag."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    repository: str = Field(..., min_length=1)
    tag: str = Field(default="latest", min_length=1)

    @property
    def reference(self) -> str:
        """Full ``repository:tag`` reference."""
        return f"{self.repository}:{self.tag}"


class ContainerConfig(BaseModel):
    """Container runtime settings."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., pattern=NAME_PATTERN)
    restart: str = Field(default="unless-stopped", pattern=RESTART_POLICY_PATTERN)
    ports: Dict[Port, Port] = Field(default_factory=dict, description="host port -> container port")
    env: Dict[str, str] = Field(default_factory=dict)

    @field_validator("ports")
    @classmethod
    def validate_ports(cls, v):
        """Validate both ends of every port mapping."""
        for host_port, container_port in v.items():
            for port in (host_port, container_port):
                if port < 0 or port > 65535:
                    raise ValueError(f"port out of range [0, 65535]: {port}")
        return v

    @field_validator("env", mode="before")
    @classmethod
    def stringify_env(cls, v):
        """YAML scalars (numbers, booleans) are passed to the container as strings."""
        if v is None:
            return {}
        return {str(key): "" if value is None else str(value) for key, value in dict(v).items()}


class PersistenceConfig(BaseModel):
    """Volumes kept across container restarts."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    enabled: bool = False
    volumes: Dict[str, str] = Field(default_factory=dict, description="volume name or host path -> mount path")

    @field_validator("volumes")
    @classmethod
    def validate_volumes(cls, v):
        """Keys are named volumes or absolute host paths."""
        for volume in v:
            if not _NAME_RE.match(volume) and not Path(volume).is_absolute():
                raise ValueError(f"invalid volume name: {volume}")
        return v


class BackupConfig(BaseModel):
    """Backup settings."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    enabled: bool = False
    frequency: Literal["daily", "weekly", "monthly"] = "daily"
    retention: int = Field(default=7, ge=0)
    location: str = Field(default="")


class ServiceSpec(BaseModel):
    """Declarative description of one service, immutable after load."""
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    name: ServiceName
    enabled: bool = False
    image: ImageRef
    container: ContainerConfig
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    proxy_frontend: bool = Field(default=False, alias="proxyFrontend")

    def named_volumes(self) -> Dict[str, str]:
        """Declared persistence volumes, only when persistence is enabled."""
        if not self.persistence.enabled:
            return {}
        return dict(self.persistence.volumes)
