"""Configuration models."""

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from svcadm.constants import NAME_PATTERN
from svcadm.models.service import ServiceSpec


class NetworkConfig(BaseModel):
    """Network joined by every managed container."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(default="svcadm", pattern=NAME_PATTERN)
    driver: Literal["bridge", "host", "none"] = "bridge"


class OperatorConfig(BaseModel):
    """Container engine selection."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: Literal["docker", "podman"] = "docker"
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    socket: Optional[str] = Field(default=None, description="Backend socket path override")


class EncryptionConfig(BaseModel):
    """Logins file encryption settings."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    enabled: bool = False
    key: str = ""
    salt: str = ""

    @model_validator(mode="after")
    def validate_material(self):
        """Key and salt are mandatory once encryption is enabled."""
        if self.enabled:
            missing = [name for name in ("key", "salt") if not getattr(self, name)]
            if missing:
                raise ValueError(f"encryption enabled but empty: {', '.join(missing)}")
        return self


class AccessConfig(BaseModel):
    """Where users come from."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    logins: str = Field(..., min_length=1, description="Path to the users file")
    encryption: EncryptionConfig = Field(default_factory=EncryptionConfig)


class ContainersConfig(BaseModel):
    """Settings applied to every container."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    labels: Dict[str, str] = Field(default_factory=dict)


class GeneralConfig(BaseModel):
    """General section."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    operator: OperatorConfig = Field(default_factory=OperatorConfig)
    access: AccessConfig
    containers: ContainersConfig = Field(default_factory=ContainersConfig)


class SvcadmConfig(BaseModel):
    """Main configuration model."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    general: GeneralConfig
    services: List[ServiceSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_services(self):
        """Names and container names are unique; enabled services have enabled prerequisites."""
        # Imported here: the scheduler depends on the models package
        from svcadm.core.scheduler import dependency_graph

        errors = []
        seen_names = set()
        seen_containers = set()
        for service in self.services:
            if service.name in seen_names:
                errors.append(f"duplicate service: {service.name}")
            seen_names.add(service.name)
            if service.container.name in seen_containers:
                errors.append(f"duplicate container name: {service.container.name}")
            seen_containers.add(service.container.name)

        enabled = {s.name for s in self.services if s.enabled}
        graph = dependency_graph(self.services)
        for name in sorted(enabled):
            missing = sorted(graph.get(name, set()) - enabled)
            if missing:
                errors.append(f"{name} requires disabled service(s): {', '.join(missing)}")

        if errors:
            raise ValueError("; ".join(errors))
        return self

    def enabled_services(self) -> List[ServiceSpec]:
        """Enabled services in declaration order."""
        return [s for s in self.services if s.enabled]

    def get_service(self, name: str) -> Optional[ServiceSpec]:
        """Service by name."""
        for service in self.services:
            if service.name == name:
                return service
        return None
