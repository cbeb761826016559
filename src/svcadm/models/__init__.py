"""Pydantic models for configuration and validation."""

from svcadm.models.config import (
    SvcadmConfig,
    GeneralConfig,
    OperatorConfig,
    NetworkConfig,
    AccessConfig,
    EncryptionConfig,
    ContainersConfig,
)
from svcadm.models.service import ServiceSpec, ImageRef, ContainerConfig, PersistenceConfig, BackupConfig
from svcadm.models.users import User, UserSet
from svcadm.models.runtime import RuntimeArtifacts, ContainerRunSpec

__all__ = [
    "SvcadmConfig",
    "GeneralConfig",
    "OperatorConfig",
    "NetworkConfig",
    "AccessConfig",
    "EncryptionConfig",
    "ContainersConfig",
    "ServiceSpec",
    "ImageRef",
    "ContainerConfig",
    "PersistenceConfig",
    "BackupConfig",
    "User",
    "UserSet",
    "RuntimeArtifacts",
    "ContainerRunSpec",
]
